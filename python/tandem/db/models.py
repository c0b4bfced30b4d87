"""SQLAlchemy ORM models for Tandem.

Defines all database tables using SQLAlchemy 2.x declarative patterns.
Lifecycle enums are Python enums stored as text with CHECK constraints so the
schema stays portable between PostgreSQL (deployments) and SQLite (tests).
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum as PyEnum
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from tandem.db.types import UTCDateTime, utc_now


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# Enums
# =============================================================================


class RelationshipStatus(str, PyEnum):
    """Relationship status as seen from a single user."""

    single = "single"
    paired = "paired"


class CoupleStatus(str, PyEnum):
    """Couple lifecycle states.

    States:
        pending: Pairing requested, waiting for the target to respond
        active: Request accepted, the couple is a joint entity
        dissolved: Terminal. Reached by rejection, cancellation or breakup
    """

    pending = "pending"
    active = "active"
    dissolved = "dissolved"


class PairRequestStatus(str, PyEnum):
    """Status of the pairing request embedded in a couple."""

    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    cancelled = "cancelled"


class ConsentType(str, PyEnum):
    """Consent toggles. Values are the wire names."""

    photo_sharing = "photoSharing"
    memory_access = "memoryAccess"
    location_sharing = "locationSharing"


class ConsentSource(str, PyEnum):
    """Who caused a consent flag flip."""

    partner = "partner"
    dissolution = "dissolution"


class MemoryStatus(str, PyEnum):
    """Soft-delete lifecycle for shared memories."""

    active = "active"
    archived = "archived"
    deleted = "deleted"


# Consent toggle -> PartnerConsent column
CONSENT_COLUMNS: dict[ConsentType, str] = {
    ConsentType.photo_sharing: "photo_sharing",
    ConsentType.memory_access: "memory_access",
    ConsentType.location_sharing: "location_sharing",
}


def _in_check(column: str, enum_cls: type[PyEnum]) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


# =============================================================================
# Identity
# =============================================================================


class User(Base):
    """User account model.

    The user ID matches the Supabase auth user ID (sub claim). ``couple_id``
    is a weak reference: the user never owns the couple's lifecycle.
    """

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    pairing_code: Mapped[str] = mapped_column(String(8), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    relationship_status: Mapped[str] = mapped_column(
        Text, nullable=False, default=RelationshipStatus.single.value
    )
    couple_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    past_relationship_exists: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(
            _in_check("relationship_status", RelationshipStatus),
            name="ck_users_relationship_status",
        ),
    )

    relationship_history: Mapped[list["RelationshipHistoryEntry"]] = relationship(
        "RelationshipHistoryEntry",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="RelationshipHistoryEntry.ended_at",
    )


class RelationshipHistoryEntry(Base):
    """Permanent summary of a past relationship, one per partner per breakup.

    Partner and couple references are plain columns, never foreign keys, so
    the entry survives whatever happens to the other account.
    """

    __tablename__ = "relationship_history"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    couple_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    partner_id: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    partner_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    partner_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ended_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    duration_days: Mapped[int] = mapped_column(Integer, nullable=False)
    initiated_breakup: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint("duration_days >= 0", name="ck_relationship_history_duration"),
    )

    user: Mapped["User"] = relationship("User", back_populates="relationship_history")


# =============================================================================
# Pairing
# =============================================================================


@dataclass(frozen=True)
class PairRequest:
    """Read-only view of the pairing request embedded in a couple."""

    from_user_id: UUID
    to_user_id: UUID
    status: PairRequestStatus
    created_at: datetime
    responded_at: datetime | None


def make_pair_key(user_a: UUID, user_b: UUID) -> str:
    """Order-independent key identifying the two people in a couple."""
    low, high = sorted((str(user_a).lower(), str(user_b).lower()))
    return f"{low}:{high}"


class Couple(Base):
    """Joint entity formed by two distinct users.

    The row is created eagerly when the pairing is requested. ``partner1`` is
    always the initiator, which is a label and not a ranking.
    """

    __tablename__ = "couples"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    partner1_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    partner2_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    pair_key: Mapped[str] = mapped_column(String(73), nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=CoupleStatus.pending.value
    )

    # Embedded pairing request
    request_from_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    request_to_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    request_status: Mapped[str] = mapped_column(
        Text, nullable=False, default=PairRequestStatus.pending.value
    )
    request_created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utc_now
    )
    request_responded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    paired_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    relationship_start_date: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    dissolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(_in_check("status", CoupleStatus), name="ck_couples_status"),
        CheckConstraint(
            _in_check("request_status", PairRequestStatus), name="ck_couples_request_status"
        ),
        CheckConstraint("partner1_id <> partner2_id", name="ck_couples_distinct_partners"),
        Index(
            "uix_couples_open_pair",
            "pair_key",
            unique=True,
            postgresql_where=text("status IN ('pending', 'active')"),
            sqlite_where=text("status IN ('pending', 'active')"),
        ),
        Index("ix_couples_request_to", "request_to_id", "status"),
    )

    @property
    def pair_request(self) -> PairRequest:
        return PairRequest(
            from_user_id=self.request_from_id,
            to_user_id=self.request_to_id,
            status=PairRequestStatus(self.request_status),
            created_at=self.request_created_at,
            responded_at=self.request_responded_at,
        )

    @property
    def partner_ids(self) -> tuple[UUID, UUID]:
        return (self.partner1_id, self.partner2_id)

    def has_partner(self, user_id: UUID) -> bool:
        return user_id in self.partner_ids


class CoupleSeat(Base):
    """Claim held by a user while they are in a pending or active couple.

    The primary key on ``user_id`` is what makes "at most one open couple per
    user" a storage-level guarantee instead of a check-then-act.
    """

    __tablename__ = "couple_seats"

    user_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    couple_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("couples.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)


class AnonymousReview(Base):
    """Breakup note. Deliberately has no author column."""

    __tablename__ = "anonymous_reviews"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    couple_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("couples.id"), nullable=False, index=True
    )
    review_text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(
            "length(review_text) BETWEEN 1 AND 300", name="ck_anonymous_reviews_length"
        ),
    )


# =============================================================================
# Consent
# =============================================================================


class ConsentLedger(Base):
    """Per-couple consent record. Created when the couple becomes active."""

    __tablename__ = "consent_ledgers"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    couple_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("couples.id"), nullable=False, unique=True
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    partners: Mapped[list["PartnerConsent"]] = relationship(
        "PartnerConsent", back_populates="ledger", cascade="all, delete-orphan"
    )


class PartnerConsent(Base):
    """One partner's half of the ledger. Only that partner ever writes it."""

    __tablename__ = "partner_consents"

    ledger_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("consent_ledgers.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), primary_key=True)
    photo_sharing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    memory_access: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    location_sharing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    ledger: Mapped["ConsentLedger"] = relationship("ConsentLedger", back_populates="partners")

    def flag(self, consent_type: ConsentType) -> bool:
        return bool(getattr(self, CONSENT_COLUMNS[consent_type]))

    def set_flag(self, consent_type: ConsentType, enabled: bool) -> None:
        setattr(self, CONSENT_COLUMNS[consent_type], enabled)

    def flags(self) -> dict[str, bool]:
        return {consent_type.value: self.flag(consent_type) for consent_type in ConsentType}


class ConsentHistoryEntry(Base):
    """Append-only audit log of consent flag flips."""

    __tablename__ = "consent_history"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    ledger_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("consent_ledgers.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
    consent_type: Mapped[str] = mapped_column(Text, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False)
    source: Mapped[str] = mapped_column(
        Text, nullable=False, default=ConsentSource.partner.value
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(
            _in_check("consent_type", ConsentType), name="ck_consent_history_type"
        ),
        CheckConstraint(_in_check("source", ConsentSource), name="ck_consent_history_source"),
        Index("ix_consent_history_ledger_created", "ledger_id", "created_at"),
    )


# =============================================================================
# Streaks
# =============================================================================


class StreakPhoto(Base):
    """Ephemeral photo with a 24h TTL that is retired on first partner view."""

    __tablename__ = "streak_photos"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    couple_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("couples.id"), nullable=False)
    uploaded_by: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    content_ref: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, index=True)
    viewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    viewed_by: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    is_expired: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index("ix_streak_photos_live", "couple_id", "uploaded_by", "is_expired"),
    )

    def is_live(self, now: datetime) -> bool:
        return not self.is_expired and self.expires_at > now


class StreakCounter(Base):
    """Per-couple streak aggregate."""

    __tablename__ = "streak_counters"

    couple_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("couples.id"), primary_key=True)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_streak_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    partner1_last_photo_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    partner2_last_photo_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(
            "current_streak >= 0 AND longest_streak >= current_streak",
            name="ck_streak_counters_values",
        ),
    )


# =============================================================================
# Feature collaborators
# =============================================================================


class Memory(Base):
    """Shared photo memory. Never hard-deleted."""

    __tablename__ = "memories"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    couple_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("couples.id"), nullable=False)
    uploaded_by: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    content_ref: Mapped[str] = mapped_column(Text, nullable=False)
    caption: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, default=MemoryStatus.active.value
    )
    deleted_by: Mapped[UUID | None] = mapped_column(Uuid, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        CheckConstraint(_in_check("status", MemoryStatus), name="ck_memories_status"),
        CheckConstraint(
            "caption IS NULL OR length(caption) <= 500", name="ck_memories_caption_length"
        ),
        Index("ix_memories_couple_status_created", "couple_id", "status", "created_at"),
    )


class LocationShare(Base):
    """Latest location a partner has shared with the couple."""

    __tablename__ = "location_shares"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    couple_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("couples.id"), nullable=False)
    shared_by: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    accuracy: Mapped[float | None] = mapped_column(Float, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    shared_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint("couple_id", "shared_by", name="uq_location_shares_couple_user"),
        CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_location_shares_latitude"),
        CheckConstraint("longitude BETWEEN -180 AND 180", name="ck_location_shares_longitude"),
    )


# =============================================================================
# Companion features
# =============================================================================
#
# Rows below belong to one couple and carry ``archived_at``; dissolution stamps
# it and every read filters on ``archived_at IS NULL``.


class MoodType(str, PyEnum):
    happy = "happy"
    excited = "excited"
    calm = "calm"
    tired = "tired"
    sad = "sad"
    stressed = "stressed"
    loving = "loving"
    angry = "angry"
    anxious = "anxious"
    neutral = "neutral"


class BuzzKind(str, PyEnum):
    """Vibration pattern played on the partner's device."""

    single = "single"
    double = "double"
    long = "long"


class Mood(Base):
    """A partner's mood at a point in time. The latest row is the current mood."""

    __tablename__ = "moods"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    couple_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("couples.id"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    mood: Mapped[str] = mapped_column(Text, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    archived_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(_in_check("mood", MoodType), name="ck_moods_mood"),
        CheckConstraint("note IS NULL OR length(note) <= 100", name="ck_moods_note_length"),
        Index("ix_moods_couple_user_created", "couple_id", "user_id", "created_at"),
    )


class Buzz(Base):
    """A "thinking of you" vibration sent to the partner."""

    __tablename__ = "buzzes"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    couple_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("couples.id"), nullable=False)
    sender_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    recipient_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    kind: Mapped[str] = mapped_column(Text, nullable=False, default=BuzzKind.single.value)
    delivered_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    archived_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(_in_check("kind", BuzzKind), name="ck_buzzes_kind"),
        Index("ix_buzzes_recipient_pending", "couple_id", "recipient_id", "delivered_at"),
    )


class VoiceMessage(Base):
    """Walkie-talkie voice note (audio hosted in storage)."""

    __tablename__ = "voice_messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    couple_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("couples.id"), nullable=False)
    sender_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    recipient_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    content_ref: Mapped[str] = mapped_column(Text, nullable=False)
    duration_s: Mapped[float] = mapped_column(Float, nullable=False)
    listened_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    archived_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("duration_s BETWEEN 0 AND 60", name="ck_voice_messages_duration"),
        Index("ix_voice_messages_recipient_pending", "couple_id", "recipient_id", "listened_at"),
    )


class ChatMessage(Base):
    """Text message between partners. Kept after either partner hides it."""

    __tablename__ = "chat_messages"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    couple_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("couples.id"), nullable=False)
    sender_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    recipient_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    archived_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "length(body) BETWEEN 1 AND 5000", name="ck_chat_messages_body_length"
        ),
        Index("ix_chat_messages_couple_created", "couple_id", "created_at"),
    )


class HiddenChatMessage(Base):
    """Per-user deletion of a chat message; the partner still sees it."""

    __tablename__ = "hidden_chat_messages"

    message_id: Mapped[UUID] = mapped_column(
        Uuid, ForeignKey("chat_messages.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), primary_key=True)
    hidden_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)


class ImportantDate(Base):
    """Anniversary, birthday or other date on the couple's shared calendar."""

    __tablename__ = "important_dates"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    couple_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("couples.id"), nullable=False)
    created_by: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    emoji: Mapped[str] = mapped_column(Text, nullable=False, default="❤️")
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reminder_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utc_now)
    archived_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("length(title) BETWEEN 1 AND 100", name="ck_important_dates_title"),
        CheckConstraint(
            "description IS NULL OR length(description) <= 500",
            name="ck_important_dates_description",
        ),
        Index("ix_important_dates_couple_date", "couple_id", "event_date"),
    )
