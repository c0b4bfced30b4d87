"""Database session management and transaction helpers.

Provides:
- Request-scoped database sessions via get_db() dependency
- transaction() for all-or-nothing state transitions
- insert_or_conflict() for inserts guarded by a uniqueness constraint
"""

from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from tandem.db.engine import get_engine


def create_session_factory(engine: Any = None) -> sessionmaker[Session]:
    """Create a session factory bound to an engine."""
    if engine is None:
        engine = get_engine()

    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


_SessionLocal: sessionmaker[Session] | None = None


def get_session_factory() -> sessionmaker[Session]:
    """Get or create the default session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = create_session_factory()
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that provides a database session.

    Yields:
        A database session that is automatically closed after use.
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Generator[None, None, None]:
    """Context manager for database transactions.

    Commits on success, rolls back on exception. Every multi-entity state
    transition runs inside one of these, so a failure part-way through never
    leaves a partially applied transition behind.

    Usage:
        with transaction(db):
            db.execute(...)
            db.execute(...)
        # Committed if no exception
    """
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def insert_or_conflict(db: Session, *instances: Any) -> bool:
    """Add and flush instances inside a savepoint.

    Instances are flushed one at a time in the order given, so a parent row
    can be passed ahead of the rows that reference it.

    Returns False (with the savepoint rolled back and the outer transaction
    intact) when the flush violates a uniqueness constraint, True otherwise.
    """
    try:
        with db.begin_nested():
            for instance in instances:
                db.add(instance)
                db.flush()
    except IntegrityError:
        for instance in instances:
            if instance in db:
                db.expunge(instance)
        return False
    return True
