"""Streak photo Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

__all__ = [
    "SubmitStreakPhotoRequest",
    "StreakSummaryOut",
    "StreakPhotoOut",
    "SubmitStreakPhotoOut",
    "StreakStatusOut",
    "ViewStreakPhotoOut",
]


class SubmitStreakPhotoRequest(BaseModel):
    """Request body for submitting an already-uploaded streak photo."""

    content_ref: str = Field(
        ..., min_length=1, max_length=512, description="Storage path returned by upload signing"
    )


class StreakSummaryOut(BaseModel):
    current_streak: int
    longest_streak: int
    last_streak_date: date | None


class StreakPhotoOut(BaseModel):
    """A live streak photo.

    ``view_url`` is only populated for the uploader's own photos; the partner
    obtains one by viewing, which retires the photo.
    """

    id: UUID
    uploaded_by: UUID
    expires_at: datetime
    created_at: datetime
    view_url: str | None = None


class SubmitStreakPhotoOut(BaseModel):
    photo: StreakPhotoOut
    streak: StreakSummaryOut
    active_photos_count: int


class StreakStatusOut(BaseModel):
    streak: StreakSummaryOut
    my_photo: StreakPhotoOut | None
    partner_photo: StreakPhotoOut | None
    all_photos: list[StreakPhotoOut]
    my_photos_count: int
    partner_photos_count: int
    view_window_seconds: int


class ViewStreakPhotoOut(BaseModel):
    photo_id: UUID
    viewed_at: datetime
    view_url: str
    view_window_seconds: int
