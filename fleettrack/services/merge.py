"""
Partial-update merging for PUT payloads.

Rule per field of an ``*Update`` schema:
- absent from the request      -> column left unchanged
- present with a value         -> column set
- present and explicitly null  -> column cleared, unless the column is
                                  required, in which case the null is ignored
"""
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable

from pydantic import BaseModel


def jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, list):
        return [jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    return value


def snapshot(row: Any, fields: Iterable[str]) -> Dict[str, Any]:
    """JSON-safe copy of selected columns, for activity log diffs."""
    return {f: jsonable(getattr(row, f)) for f in fields}


def apply_partial_update(row: Any, payload: BaseModel, required: Iterable[str] = ()) -> Dict[str, Any]:
    """Merge the fields set on ``payload`` into ``row``; returns what was applied."""
    required = set(required)
    applied = {}
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is None and key in required:
            continue
        setattr(row, key, value)
        applied[key] = value
    return applied
