from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy import create_engine
from .config import settings
from .errors import NotFoundError


# Configure connection pool for better performance
_pool_args = {} if settings.database_url.startswith("sqlite") else {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_recycle": 3600,  # Recycle connections after 1 hour
}

engine = create_engine(
    settings.database_url,
    future=True,
    pool_pre_ping=True,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    **_pool_args,
)

# IMPORTANT: do not use scoped_session with async frameworks; create a fresh Session per request
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Run a block of store mutations as one unit of work.

    Commits when the block exits normally. Any exception rolls back every
    write made in the block and is re-raised to the caller.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def get_or_raise(db: Session, model, entity_id, label: Optional[str] = None):
    """Load a row by primary key or raise NotFoundError."""
    row = db.get(model, entity_id) if entity_id is not None else None
    if row is None:
        raise NotFoundError(f"{label or model.__name__} not found")
    return row
