"""Memory, location and upload Pydantic schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

MemoryStatusValue = Literal["active", "archived", "deleted"]

__all__ = [
    "MemoryStatusValue",
    "CreateMemoryRequest",
    "MemoryOut",
    "MemoryPageOut",
    "ShareLocationRequest",
    "LocationOut",
    "LocationStatusOut",
    "SignUploadRequest",
    "SignedUploadOut",
]

# =============================================================================
# Memories
# =============================================================================


class CreateMemoryRequest(BaseModel):
    content_ref: str = Field(..., min_length=1, max_length=512)
    caption: str | None = Field(default=None, max_length=500)


class MemoryOut(BaseModel):
    id: UUID
    uploaded_by: UUID
    caption: str | None
    status: MemoryStatusValue
    created_at: datetime
    view_url: str | None = None


class MemoryPageOut(BaseModel):
    memories: list[MemoryOut]
    page: int
    limit: int
    total: int


# =============================================================================
# Location
# =============================================================================


class ShareLocationRequest(BaseModel):
    """Coordinates are range-checked by the service so the error names them."""

    latitude: float
    longitude: float
    accuracy: float | None = Field(default=None, ge=0)


class LocationOut(BaseModel):
    shared_by: UUID
    latitude: float
    longitude: float
    accuracy: float | None
    shared_at: datetime
    is_active: bool


class LocationStatusOut(BaseModel):
    is_sharing: bool
    shared_at: datetime | None


# =============================================================================
# Uploads
# =============================================================================


class SignUploadRequest(BaseModel):
    content_type: str = Field(..., description="MIME type, e.g. image/jpeg or audio/mp4 for voice notes")


class SignedUploadOut(BaseModel):
    path: str
    token: str
    expires_in: int
