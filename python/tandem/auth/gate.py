"""Consent-gated authorization.

Every consent-gated operation goes through ``authorize_feature``, which
composes the identity, pairing and consent lookups into one decision:

1. An authenticated identity is required        -> E_UNAUTHENTICATED
2. The identity must reference a couple         -> E_NO_ACTIVE_RELATIONSHIP
3. That couple must be active                   -> E_RELATIONSHIP_NOT_ACTIVE
4. The couple must have a consent ledger        -> E_CONSENT_NOT_CONFIGURED
5. Both partners must have enabled the feature  -> E_CONSENT_REQUIRED
6. The resolved couple and ledger are returned as a CoupleContext

The decision is re-evaluated from storage on every request, so a revocation
takes effect on the very next request.

Routes declare the gate as a dependency:

    @router.get("/memories")
    def list_memories(ctx: Annotated[CoupleContext, Depends(require_consent(ConsentType.memory_access))]):
        ...
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated
from uuid import UUID

from fastapi import Depends
from sqlalchemy.orm import Session

from tandem.auth.middleware import Viewer, get_optional_viewer
from tandem.db.models import ConsentLedger, ConsentType, Couple
from tandem.db.session import get_db
from tandem.errors import ApiErrorCode, ConsentRequiredError, ForbiddenError
from tandem.logging import get_logger
from tandem.services import identity as identity_service
from tandem.services.consent import active_features, get_ledger, load_partner_rows

logger = get_logger(__name__)


@dataclass(frozen=True)
class CoupleContext:
    """Result of a successful gate check, handed to the downstream operation."""

    viewer_id: UUID
    couple: Couple
    ledger: ConsentLedger | None

    @property
    def couple_id(self) -> UUID:
        return self.couple.id

    @property
    def partner_id(self) -> UUID:
        return identity_service.partner_id_of(self.couple, self.viewer_id)

    @property
    def is_partner1(self) -> bool:
        return self.couple.partner1_id == self.viewer_id


def authorize_active_couple(db: Session, user_id: UUID | None) -> CoupleContext:
    """Steps 1-3, plus the ledger if one exists."""
    user, couple = identity_service.require_active_couple(db, user_id)
    return CoupleContext(viewer_id=user.id, couple=couple, ledger=get_ledger(db, couple.id))


def authorize_feature(db: Session, user_id: UUID | None, feature: ConsentType) -> CoupleContext:
    """Steps 1-6 for a consent-gated feature.

    Raises:
        ApiError(E_UNAUTHENTICATED)
        ForbiddenError(E_NO_ACTIVE_RELATIONSHIP / E_RELATIONSHIP_NOT_ACTIVE /
                       E_CONSENT_NOT_CONFIGURED)
        ConsentRequiredError: Naming the missing toggle.
    """
    user, couple = identity_service.require_active_couple(db, user_id)

    ledger = get_ledger(db, couple.id)
    if ledger is None:
        raise ForbiddenError(
            ApiErrorCode.E_CONSENT_NOT_CONFIGURED, "Consent settings not found"
        )

    if feature not in active_features(load_partner_rows(db, ledger.id)):
        logger.info("consent.gate_denied", couple_id=str(couple.id), feature=feature.value)
        raise ConsentRequiredError(feature.value)

    return CoupleContext(viewer_id=user.id, couple=couple, ledger=ledger)


# =============================================================================
# FastAPI dependencies
# =============================================================================


def require_active_couple() -> Callable[..., CoupleContext]:
    """Dependency factory: the viewer must be in an active couple."""

    def dependency(
        viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
        db: Annotated[Session, Depends(get_db)],
    ) -> CoupleContext:
        return authorize_active_couple(db, viewer.user_id if viewer else None)

    return dependency


def require_consent(feature: ConsentType) -> Callable[..., CoupleContext]:
    """Dependency factory: both partners must currently consent to ``feature``."""

    def dependency(
        viewer: Annotated[Viewer | None, Depends(get_optional_viewer)],
        db: Annotated[Session, Depends(get_db)],
    ) -> CoupleContext:
        return authorize_feature(db, viewer.user_id if viewer else None, feature)

    dependency.__name__ = f"require_consent_{feature.name}"
    return dependency
