"""Identity and pairing registry.

Resolves users, answers "who is my partner", and is the single place that
decides whether a user currently belongs to an active couple. A user row
that says ``paired`` while its couple is missing or no longer active is
treated as single.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tandem.db.models import Couple, CoupleStatus, User
from tandem.db.session import transaction
from tandem.db.types import utc_now
from tandem.errors import ApiError, ApiErrorCode, ForbiddenError
from tandem.logging import get_logger
from tandem.schemas.identity import (
    PublicUserOut,
    RelationshipHistoryOut,
    UpdateProfileRequest,
    UserProfileOut,
)

logger = get_logger(__name__)


# =============================================================================
# Lookups
# =============================================================================


def resolve_user_by_code(db: Session, code: str) -> User | None:
    """Find a user by pairing code (case-insensitive)."""
    normalized = code.strip().upper()
    if not normalized:
        return None
    return db.scalar(select(User).where(func.upper(User.pairing_code) == normalized))


def resolve_user_by_id(db: Session, user_id: UUID) -> User | None:
    return db.get(User, user_id)


def get_user_or_401(db: Session, user_id: UUID | None) -> User:
    """Load the acting user; a missing identity is an authentication failure."""
    if user_id is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "Authentication required")
    user = db.get(User, user_id)
    if user is None:
        raise ApiError(ApiErrorCode.E_UNAUTHENTICATED, "User not found")
    return user


def is_active(couple: Couple | None) -> bool:
    return couple is not None and couple.status == CoupleStatus.active.value


def partner_id_of(couple: Couple, user_id: UUID) -> UUID:
    """Return the other partner's ID.

    Raises:
        ValueError: If user_id is not a partner of the couple.
    """
    if couple.partner1_id == user_id:
        return couple.partner2_id
    if couple.partner2_id == user_id:
        return couple.partner1_id
    raise ValueError(f"user {user_id} is not a partner of couple {couple.id}")


def current_couple(db: Session, user: User, *, for_update: bool = False) -> Couple | None:
    """Return the user's active couple, or None.

    Stale references (couple missing, not active, or not listing the user)
    are logged and treated as no couple.
    """
    if user.couple_id is None:
        return None

    stmt = (
        select(Couple)
        .where(Couple.id == user.couple_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    couple = db.scalar(stmt)

    if not is_active(couple) or not couple.has_partner(user.id):
        logger.warning(
            "identity.stale_couple_reference",
            user_id=str(user.id),
            couple_id=str(user.couple_id),
        )
        return None
    return couple


def require_active_couple(
    db: Session,
    user_id: UUID | None,
    *,
    missing_code: ApiErrorCode = ApiErrorCode.E_NO_ACTIVE_RELATIONSHIP,
    for_update: bool = False,
) -> tuple[User, Couple]:
    """Load the user and their active couple or raise the failed precondition.

    Args:
        db: Database session.
        user_id: Acting user.
        missing_code: Error code used when the user has no couple reference.
        for_update: Lock the couple row for the rest of the transaction.

    Raises:
        ApiError(E_UNAUTHENTICATED): No identity or unknown user.
        ForbiddenError(missing_code): User has no couple reference.
        ForbiddenError(E_RELATIONSHIP_NOT_ACTIVE): Couple missing or not active.
    """
    user = get_user_or_401(db, user_id)
    if user.couple_id is None:
        raise ForbiddenError(missing_code, "You are not currently in a relationship")

    couple = current_couple(db, user, for_update=for_update)
    if couple is None:
        raise ForbiddenError(
            ApiErrorCode.E_RELATIONSHIP_NOT_ACTIVE, "Your relationship is not active"
        )
    return user, couple


# =============================================================================
# Profile
# =============================================================================


def to_public_user(user: User) -> PublicUserOut:
    return PublicUserOut.model_validate(user)


def _profile_out(db: Session, user: User) -> UserProfileOut:
    # A stale paired flag is reported as single
    paired = current_couple(db, user) is not None
    return UserProfileOut(
        id=user.id,
        pairing_code=user.pairing_code,
        display_name=user.display_name,
        relationship_status="paired" if paired else "single",
        couple_id=user.couple_id if paired else None,
        past_relationship_exists=user.past_relationship_exists,
        relationship_history=[
            RelationshipHistoryOut.model_validate(entry) for entry in user.relationship_history
        ],
    )


def get_profile(db: Session, user_id: UUID) -> UserProfileOut:
    user = get_user_or_401(db, user_id)
    return _profile_out(db, user)


def update_profile(db: Session, user_id: UUID, req: UpdateProfileRequest) -> UserProfileOut:
    """Update the viewer's display name.

    Raises:
        ApiError(E_NAME_INVALID): Name is blank after trimming.
    """
    name = req.display_name.strip()
    if not name:
        raise ApiError(ApiErrorCode.E_NAME_INVALID, "Display name cannot be blank")

    with transaction(db):
        user = get_user_or_401(db, user_id)
        user.display_name = name
        user.updated_at = utc_now()

    return _profile_out(db, user)
