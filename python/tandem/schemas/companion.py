"""Mood, walkie-talkie, chat and calendar Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tandem.db.models import BuzzKind, MoodType

__all__ = [
    "SetMoodRequest",
    "MoodOut",
    "CurrentMoodOut",
    "MoodPageOut",
    "MoodTypeOut",
    "SendBuzzRequest",
    "BuzzOut",
    "PendingBuzzesOut",
    "SendVoiceMessageRequest",
    "VoiceMessageOut",
    "PendingVoiceMessagesOut",
    "WalkieStatusOut",
    "SendChatMessageRequest",
    "ChatMessageOut",
    "ChatPageOut",
    "MarkReadOut",
    "UnreadCountOut",
    "CreateImportantDateRequest",
    "ImportantDateOut",
    "UpcomingDateOut",
    "CalendarOut",
]

# =============================================================================
# Mood
# =============================================================================


class SetMoodRequest(BaseModel):
    mood: MoodType
    note: str | None = Field(default=None, description="Short note, cut to 100 characters")


class MoodOut(BaseModel):
    id: UUID
    user_id: UUID
    mood: MoodType
    emoji: str
    note: str | None
    created_at: datetime


class CurrentMoodOut(BaseModel):
    """Latest mood, or null when none has been set yet."""

    mood: MoodOut | None


class MoodPageOut(BaseModel):
    moods: list[MoodOut]
    page: int
    limit: int
    total: int


class MoodTypeOut(BaseModel):
    value: MoodType
    label: str
    emoji: str


# =============================================================================
# Walkie-talkie
# =============================================================================


class SendBuzzRequest(BaseModel):
    kind: BuzzKind = BuzzKind.single


class BuzzOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sender_id: UUID
    kind: BuzzKind
    created_at: datetime


class PendingBuzzesOut(BaseModel):
    buzzes: list[BuzzOut]
    count: int


class SendVoiceMessageRequest(BaseModel):
    content_ref: str = Field(
        ..., min_length=1, max_length=512, description="Storage path returned by upload signing"
    )
    duration_s: float = Field(..., ge=0, le=60)


class VoiceMessageOut(BaseModel):
    """``listen_url`` is only filled in for the recipient."""

    id: UUID
    sender_id: UUID
    duration_s: float
    listened_at: datetime | None
    created_at: datetime
    listen_url: str | None = None


class PendingVoiceMessagesOut(BaseModel):
    messages: list[VoiceMessageOut]
    count: int


class WalkieStatusOut(BaseModel):
    pending_buzzes: int
    pending_voice: int
    has_notifications: bool


# =============================================================================
# Chat
# =============================================================================


class SendChatMessageRequest(BaseModel):
    body: str = Field(..., max_length=5000)


class ChatMessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    sender_id: UUID
    body: str
    read_at: datetime | None
    created_at: datetime


class ChatPageOut(BaseModel):
    messages: list[ChatMessageOut]
    page: int
    limit: int
    total: int
    has_more: bool
    unread_count: int


class MarkReadOut(BaseModel):
    marked: int


class UnreadCountOut(BaseModel):
    unread_count: int


# =============================================================================
# Calendar
# =============================================================================


class CreateImportantDateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    date: date
    emoji: str | None = Field(default=None, max_length=16)
    is_recurring: bool = False
    reminder_enabled: bool = True


class ImportantDateOut(BaseModel):
    id: UUID
    created_by: UUID
    title: str
    description: str | None
    date: date
    emoji: str
    is_recurring: bool
    reminder_enabled: bool
    created_at: datetime


class UpcomingDateOut(BaseModel):
    """Next occurrence of a date within the look-ahead window."""

    id: UUID
    title: str
    emoji: str
    occurs_on: date
    days_until: int


class CalendarOut(BaseModel):
    dates: list[ImportantDateOut]
    upcoming: list[UpcomingDateOut]
