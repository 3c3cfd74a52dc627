"""
Activity log recorder.
Append-only activity log with integrity hashing.
"""
import hashlib
import json
import uuid
from datetime import datetime
from typing import Optional, Dict, Any

import structlog
from sqlalchemy.orm import Session

from ..models.enums import ActivityAction, ActivityEntity
from ..models.models import ActivityLog, utcnow
from ..config import settings

logger = structlog.get_logger(__name__)


def _integrity_hash(
    *,
    user_id: Optional[uuid.UUID],
    action: ActivityAction,
    entity: ActivityEntity,
    entity_id: uuid.UUID,
    description: str,
    context: Optional[Dict[str, Any]],
    created_at: datetime,
    secret: str,
) -> str:
    canonical_data = {
        "user_id": str(user_id) if user_id else None,
        "action": action.value,
        "entity": entity.value,
        "entity_id": str(entity_id),
        "description": description,
        "context": context,
        "created_at": created_at.isoformat(),
    }
    # Remove None values and sort keys for consistency
    canonical_data = {k: v for k, v in canonical_data.items() if v is not None}
    canonical_json = json.dumps(canonical_data, sort_keys=True, default=str)
    return hashlib.sha256(f"{canonical_json}:{secret}".encode()).hexdigest()


def record_activity(
    db: Session,
    *,
    user_id: Optional[uuid.UUID],
    action: ActivityAction,
    entity: ActivityEntity,
    entity_id: uuid.UUID,
    description: str,
    context: Optional[Dict[str, Any]] = None,
    integrity_secret: Optional[str] = None,
) -> Optional[ActivityLog]:
    """
    Append an activity log entry to the current unit of work.

    The entry is flushed, not committed: it lands in the same transaction as
    the mutation it describes and is rolled back with it.

    Args:
        db: Database session
        user_id: Acting user. Operations without an authenticated actor are not logged.
        action: CREATE|UPDATE|DELETE|RENEW
        entity: Entity type the action applies to
        entity_id: Entity ID
        description: Human readable summary
        context: Opaque structured payload (reason, job type, field diff, ...)
        integrity_secret: Secret for integrity hash (defaults to JWT_SECRET)

    Returns:
        Created ActivityLog, or None when there is no actor
    """
    if user_id is None:
        return None

    created_at = utcnow()
    secret = settings.jwt_secret if integrity_secret is None else integrity_secret
    integrity_hash = None
    if secret:
        integrity_hash = _integrity_hash(
            user_id=user_id,
            action=action,
            entity=entity,
            entity_id=entity_id,
            description=description,
            context=context,
            created_at=created_at,
            secret=secret,
        )

    entry = ActivityLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=entity_id,
        description=description,
        context=context,
        integrity_hash=integrity_hash,
        created_at=created_at,
    )
    db.add(entry)
    db.flush()
    logger.info(
        "activity_recorded",
        action=action.value,
        entity=entity.value,
        entity_id=str(entity_id),
        user_id=str(user_id),
    )
    return entry


def compute_diff(before: Dict, after: Dict) -> Dict:
    """
    Compute a diff between two dictionaries.

    Args:
        before: Before state
        after: After state

    Returns:
        Dict with before/after values for changed fields
    """
    diff = {}
    all_keys = set(before.keys()) | set(after.keys())

    for key in all_keys:
        before_val = before.get(key)
        after_val = after.get(key)

        if before_val != after_val:
            diff[key] = {
                "before": before_val,
                "after": after_val,
            }

    return diff
