"""Location sharing routes (locationSharing consent)."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tandem.api.deps import get_db
from tandem.auth.gate import CoupleContext, require_consent
from tandem.db.models import ConsentType
from tandem.responses import success_response
from tandem.schemas.content import ShareLocationRequest
from tandem.services import location as location_service

router = APIRouter()

LocationSharing = Annotated[CoupleContext, Depends(require_consent(ConsentType.location_sharing))]


@router.put("/location")
def share_location(
    ctx: LocationSharing,
    body: ShareLocationRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Publish or refresh the viewer's position."""
    result = location_service.share_location(db, ctx, body)
    return success_response(result.model_dump(mode="json"))


@router.delete("/location")
def stop_sharing(
    ctx: LocationSharing,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = location_service.stop_sharing(db, ctx)
    return success_response(result.model_dump(mode="json"))


@router.get("/location/partner")
def get_partner_location(
    ctx: LocationSharing,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = location_service.get_partner_location(db, ctx)
    return success_response(result.model_dump(mode="json"))


@router.get("/location/status")
def get_location_status(
    ctx: LocationSharing,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = location_service.get_my_status(db, ctx)
    return success_response(result.model_dump(mode="json"))
