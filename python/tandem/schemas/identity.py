"""User and relationship-history Pydantic schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

RelationshipStatusValue = Literal["single", "paired"]

__all__ = [
    "RelationshipStatusValue",
    "UpdateProfileRequest",
    "PublicUserOut",
    "RelationshipHistoryOut",
    "UserProfileOut",
]


# =============================================================================
# Request Schemas
# =============================================================================


class UpdateProfileRequest(BaseModel):
    """Request body for updating the viewer's profile."""

    display_name: str = Field(
        ..., min_length=1, max_length=100, description="Display name (1-100 chars)"
    )


# =============================================================================
# Response Schemas
# =============================================================================


class PublicUserOut(BaseModel):
    """What one user may see about another."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    pairing_code: str
    display_name: str | None


class RelationshipHistoryOut(BaseModel):
    """A permanent past-relationship summary."""

    model_config = ConfigDict(from_attributes=True)

    couple_id: UUID
    partner_id: UUID | None
    partner_name: str | None
    partner_code: str | None
    started_at: datetime
    ended_at: datetime
    duration_days: int
    initiated_breakup: bool


class UserProfileOut(BaseModel):
    """The viewer's own profile."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    pairing_code: str
    display_name: str | None
    relationship_status: RelationshipStatusValue
    couple_id: UUID | None
    past_relationship_exists: bool
    relationship_history: list[RelationshipHistoryOut]
