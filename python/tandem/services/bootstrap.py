"""User bootstrap service.

Provides race-safe user creation on first login.
"""

import secrets
from uuid import UUID

from sqlalchemy.orm import Session

from tandem.db.models import User
from tandem.db.session import insert_or_conflict, transaction
from tandem.logging import get_logger

logger = get_logger(__name__)

# Pairing codes are 8 uppercase hex characters
PAIRING_CODE_BYTES = 4
MAX_CODE_ATTEMPTS = 5


def generate_pairing_code() -> str:
    return secrets.token_hex(PAIRING_CODE_BYTES).upper()


def ensure_user(db: Session, user_id: UUID, display_name: str | None = None) -> User:
    """Ensure the user row exists, creating it with a fresh pairing code.

    This function is race-safe and idempotent:
    - Concurrent first requests for the same user converge on one row
    - A pairing-code collision is retried with a new code

    Args:
        db: Database session.
        user_id: The user's ID (from JWT sub claim).
        display_name: Initial display name, only used when creating the row.

    Returns:
        The user.

    Raises:
        RuntimeError: If no unique pairing code could be allocated.
    """
    with transaction(db):
        user = db.get(User, user_id)
        if user is not None:
            return user

        for _ in range(MAX_CODE_ATTEMPTS):
            candidate = User(
                id=user_id,
                pairing_code=generate_pairing_code(),
                display_name=display_name,
            )
            if insert_or_conflict(db, candidate):
                logger.info("user.bootstrapped", user_id=str(user_id))
                return candidate

            # Either another request created this user, or the code collided
            user = db.get(User, user_id, populate_existing=True)
            if user is not None:
                return user

        logger.error("user.bootstrap_failed", user_id=str(user_id))
        raise RuntimeError(f"Failed to allocate a pairing code for user {user_id}")
