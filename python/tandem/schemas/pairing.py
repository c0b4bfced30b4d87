"""Pairing and relationship Pydantic schemas.

Contains request and response models for the couple endpoints.
"""

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from tandem.schemas.identity import PublicUserOut, RelationshipHistoryOut

CoupleStatusValue = Literal["pending", "active", "dissolved"]
PairRequestStatusValue = Literal["pending", "accepted", "rejected", "cancelled"]

__all__ = [
    "CoupleStatusValue",
    "PairRequestStatusValue",
    "CreatePairRequest",
    "DissolveRequest",
    "SetStartDateRequest",
    "PairRequestOut",
    "CoupleOut",
    "PendingRequestOut",
    "PendingRequestsOut",
    "DissolveOut",
    "RelationshipInfoOut",
    "CertificateOut",
]

# =============================================================================
# Request Schemas
# =============================================================================


class CreatePairRequest(BaseModel):
    """Request body for proposing a pairing."""

    pairing_code: str = Field(
        ..., min_length=1, max_length=32, description="The target user's pairing code"
    )


class DissolveRequest(BaseModel):
    """Request body for ending the relationship."""

    anonymous_note: str | None = Field(
        default=None,
        description="Optional anonymous note (first 300 characters kept, no author reference)",
    )


class SetStartDateRequest(BaseModel):
    """Request body for setting the relationship start date."""

    start_date: date = Field(..., description="Date the relationship started (not in the future)")


# =============================================================================
# Response Schemas
# =============================================================================


class PairRequestOut(BaseModel):
    from_user_id: UUID
    to_user_id: UUID
    status: PairRequestStatusValue
    created_at: datetime
    responded_at: datetime | None


class CoupleOut(BaseModel):
    """Response schema for a couple."""

    id: UUID
    status: CoupleStatusValue
    partner1_id: UUID
    partner2_id: UUID
    request: PairRequestOut
    paired_at: datetime | None
    relationship_start_date: datetime | None
    dissolved_at: datetime | None
    created_at: datetime


class PendingRequestOut(BaseModel):
    """A pending pairing request as seen by one of its two parties."""

    couple_id: UUID
    direction: Literal["incoming", "outgoing"]
    counterpart: PublicUserOut
    created_at: datetime


class PendingRequestsOut(BaseModel):
    incoming: list[PendingRequestOut]
    outgoing: list[PendingRequestOut]


class DissolveOut(BaseModel):
    """Result of a breakup."""

    couple_id: UUID
    dissolved_at: datetime
    archived_memories: int
    history_entry: RelationshipHistoryOut


class RelationshipInfoOut(BaseModel):
    couple_id: UUID
    partner: PublicUserOut
    paired_at: datetime | None
    relationship_start_date: datetime | None
    start_date_set: bool
    days_together: int


class CertificateOut(BaseModel):
    """Data behind the relationship certificate (rendering happens elsewhere)."""

    couple_id: UUID
    partners: list[PublicUserOut]
    paired_at: datetime | None
    relationship_start_date: datetime | None
    disclaimer: str
