"""Couple routes: pairing requests, breakup and relationship details.

Routes are transport-only:
- Extract viewer_user_id from request.state
- Call exactly one service function
- Return success(...) or raise ApiError

IMPORTANT: Static routes (/couples/requests, /couples/me) are registered
BEFORE dynamic routes (/couples/requests/{couple_id}/...).
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from tandem.api.deps import get_db
from tandem.auth.middleware import Viewer, get_viewer
from tandem.responses import success_response
from tandem.schemas.pairing import CreatePairRequest, DissolveRequest, SetStartDateRequest
from tandem.services import pairing as pairing_service

router = APIRouter()


# =============================================================================
# Pairing requests
# =============================================================================


@router.post("/couples/requests", status_code=201)
def request_pairing(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: CreatePairRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Propose a pairing to the owner of a pairing code."""
    result = pairing_service.request_pairing(db, viewer.user_id, body.pairing_code)
    return success_response(result.model_dump(mode="json"))


@router.get("/couples/requests")
def list_pending_requests(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Pending requests the viewer has received and sent."""
    result = pairing_service.list_pending_requests(db, viewer.user_id)
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Current relationship
# =============================================================================


@router.get("/couples/me")
def get_relationship(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = pairing_service.get_relationship_info(db, viewer.user_id)
    return success_response(result.model_dump(mode="json"))


@router.put("/couples/me/start-date")
def set_start_date(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    body: SetStartDateRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Set the relationship start date (past or today only)."""
    result = pairing_service.set_relationship_start_date(db, viewer.user_id, body.start_date)
    return success_response(result.model_dump(mode="json"))


@router.get("/couples/me/certificate")
def get_certificate(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = pairing_service.get_certificate(db, viewer.user_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/couples/me/dissolve")
def dissolve(
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
    body: Annotated[DissolveRequest | None, Body()] = None,
) -> dict:
    """End the relationship. The optional note is stored without an author."""
    note = body.anonymous_note if body else None
    result = pairing_service.dissolve(db, viewer.user_id, note)
    return success_response(result.model_dump(mode="json"))


# =============================================================================
# Responding to a request
# =============================================================================


@router.post("/couples/requests/{couple_id}/accept")
def accept_pairing(
    couple_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Accept a request addressed to the viewer. Only the first answer wins."""
    result = pairing_service.accept_pairing(db, viewer.user_id, couple_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/couples/requests/{couple_id}/reject")
def reject_pairing(
    couple_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    result = pairing_service.reject_pairing(db, viewer.user_id, couple_id)
    return success_response(result.model_dump(mode="json"))


@router.post("/couples/requests/{couple_id}/cancel")
def cancel_pairing(
    couple_id: UUID,
    viewer: Annotated[Viewer, Depends(get_viewer)],
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Withdraw a request the viewer sent."""
    result = pairing_service.cancel_pairing(db, viewer.user_id, couple_id)
    return success_response(result.model_dump(mode="json"))
