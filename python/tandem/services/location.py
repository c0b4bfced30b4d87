"""Location sharing service layer.

Each partner has at most one location row per couple, updated in place.
Coordinates are never logged.
"""

import math
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from tandem.auth.gate import CoupleContext
from tandem.db.models import LocationShare
from tandem.db.session import insert_or_conflict, transaction
from tandem.db.types import utc_now
from tandem.errors import ApiErrorCode, InvalidRequestError, NotFoundError
from tandem.logging import get_logger
from tandem.schemas.content import LocationOut, LocationStatusOut, ShareLocationRequest

logger = get_logger(__name__)


def validate_coordinates(latitude: float, longitude: float) -> None:
    """
    Raises:
        InvalidRequestError(E_INVALID_COORDINATES)
    """
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_COORDINATES, "Coordinates must be finite numbers"
        )
    if not -90 <= latitude <= 90:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_COORDINATES, "Latitude must be between -90 and 90"
        )
    if not -180 <= longitude <= 180:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_COORDINATES, "Longitude must be between -180 and 180"
        )


def _location_out(share: LocationShare) -> LocationOut:
    return LocationOut(
        shared_by=share.shared_by,
        latitude=share.latitude,
        longitude=share.longitude,
        accuracy=share.accuracy,
        shared_at=share.shared_at,
        is_active=share.is_active,
    )


def _own_share(db: Session, ctx: CoupleContext) -> LocationShare | None:
    return db.scalar(
        select(LocationShare)
        .where(
            LocationShare.couple_id == ctx.couple_id,
            LocationShare.shared_by == ctx.viewer_id,
        )
        .execution_options(populate_existing=True)
    )


def share_location(
    db: Session, ctx: CoupleContext, req: ShareLocationRequest, now: datetime | None = None
) -> LocationOut:
    """Publish the viewer's current location to their partner (upsert)."""
    validate_coordinates(req.latitude, req.longitude)
    now = now or utc_now()

    with transaction(db):
        share = _own_share(db, ctx)
        if share is None:
            share = LocationShare(couple_id=ctx.couple_id, shared_by=ctx.viewer_id)
            if not insert_or_conflict(db, _apply(share, req, now)):
                # A concurrent share from the same user created the row first
                share = _own_share(db, ctx)
        _apply(share, req, now)
        db.flush()
        result = _location_out(share)

    logger.info("location.shared", couple_id=str(ctx.couple_id))
    return result


def _apply(share: LocationShare, req: ShareLocationRequest, now: datetime) -> LocationShare:
    share.latitude = req.latitude
    share.longitude = req.longitude
    share.accuracy = req.accuracy
    share.is_active = True
    share.shared_at = now
    share.updated_at = now
    return share


def stop_sharing(db: Session, ctx: CoupleContext, now: datetime | None = None) -> LocationStatusOut:
    now = now or utc_now()

    with transaction(db):
        share = _own_share(db, ctx)
        if share is not None and share.is_active:
            share.is_active = False
            share.updated_at = now
            logger.info("location.stopped", couple_id=str(ctx.couple_id))

    return LocationStatusOut(is_sharing=False, shared_at=share.shared_at if share else None)


def get_partner_location(db: Session, ctx: CoupleContext) -> LocationOut:
    """
    Raises:
        NotFoundError(E_LOCATION_NOT_FOUND): Partner is not sharing.
    """
    share = db.scalar(
        select(LocationShare).where(
            LocationShare.couple_id == ctx.couple_id,
            LocationShare.shared_by == ctx.partner_id,
            LocationShare.is_active.is_(True),
        )
    )
    if share is None:
        raise NotFoundError(
            ApiErrorCode.E_LOCATION_NOT_FOUND, "Your partner is not sharing their location"
        )
    return _location_out(share)


def get_my_status(db: Session, ctx: CoupleContext) -> LocationStatusOut:
    share = _own_share(db, ctx)
    if share is None:
        return LocationStatusOut(is_sharing=False, shared_at=None)
    return LocationStatusOut(is_sharing=share.is_active, shared_at=share.shared_at)
