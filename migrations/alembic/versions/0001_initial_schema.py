"""Initial schema - users, couples, consent ledger, streaks, memories, location

Revision ID: 0001
Revises:
Create Date: 2026-10-16

Lifecycle enums are stored as text guarded by CHECK constraints. The partial
unique index on couples.pair_key and the couple_seats primary key enforce
that a user is in at most one pending or active couple.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def upgrade() -> None:
    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("pairing_code", sa.String(8), nullable=False),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column(
            "relationship_status", sa.Text(), server_default="single", nullable=False
        ),
        sa.Column("couple_id", sa.UUID(), nullable=True),
        sa.Column(
            "past_relationship_exists", sa.Boolean(), server_default="false", nullable=False
        ),
        _created_at(),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("pairing_code", name="uq_users_pairing_code"),
        sa.CheckConstraint(
            "relationship_status IN ('single', 'paired')",
            name="ck_users_relationship_status",
        ),
    )

    op.create_table(
        "relationship_history",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("couple_id", sa.UUID(), nullable=False),
        sa.Column("partner_id", sa.UUID(), nullable=True),
        sa.Column("partner_name", sa.Text(), nullable=True),
        sa.Column("partner_code", sa.String(8), nullable=True),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("ended_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("duration_days", sa.Integer(), nullable=False),
        sa.Column("initiated_breakup", sa.Boolean(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.CheckConstraint("duration_days >= 0", name="ck_relationship_history_duration"),
    )
    op.create_index("ix_relationship_history_user_id", "relationship_history", ["user_id"])

    # ==========================================================================
    # couples table (embeds the pairing request)
    # ==========================================================================
    op.create_table(
        "couples",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("partner1_id", sa.UUID(), nullable=False),
        sa.Column("partner2_id", sa.UUID(), nullable=False),
        sa.Column("pair_key", sa.String(73), nullable=False),
        sa.Column("status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("request_from_id", sa.UUID(), nullable=False),
        sa.Column("request_to_id", sa.UUID(), nullable=False),
        sa.Column("request_status", sa.Text(), server_default="pending", nullable=False),
        _created_at("request_created_at"),
        sa.Column("request_responded_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("paired_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("relationship_start_date", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("dissolved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["partner1_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["partner2_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["request_from_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["request_to_id"], ["users.id"]),
        sa.CheckConstraint(
            "status IN ('pending', 'active', 'dissolved')", name="ck_couples_status"
        ),
        sa.CheckConstraint(
            "request_status IN ('pending', 'accepted', 'rejected', 'cancelled')",
            name="ck_couples_request_status",
        ),
        sa.CheckConstraint("partner1_id <> partner2_id", name="ck_couples_distinct_partners"),
    )
    op.create_index(
        "uix_couples_open_pair",
        "couples",
        ["pair_key"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'active')"),
    )
    op.create_index("ix_couples_request_to", "couples", ["request_to_id", "status"])

    op.create_table(
        "couple_seats",
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("couple_id", sa.UUID(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("user_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_couple_seats_couple_id", "couple_seats", ["couple_id"])

    # No author column, by construction
    op.create_table(
        "anonymous_reviews",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("couple_id", sa.UUID(), nullable=False),
        sa.Column("review_text", sa.Text(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.CheckConstraint(
            "length(review_text) BETWEEN 1 AND 300", name="ck_anonymous_reviews_length"
        ),
    )
    op.create_index("ix_anonymous_reviews_couple_id", "anonymous_reviews", ["couple_id"])

    # ==========================================================================
    # consent
    # ==========================================================================
    op.create_table(
        "consent_ledgers",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("couple_id", sa.UUID(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.UniqueConstraint("couple_id", name="uq_consent_ledgers_couple_id"),
    )

    op.create_table(
        "partner_consents",
        sa.Column("ledger_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("photo_sharing", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("memory_access", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("location_sharing", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("last_updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("ledger_id", "user_id"),
        sa.ForeignKeyConstraint(["ledger_id"], ["consent_ledgers.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )

    op.create_table(
        "consent_history",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("ledger_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("consent_type", sa.Text(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("source", sa.Text(), server_default="partner", nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["ledger_id"], ["consent_ledgers.id"], ondelete="CASCADE"),
        sa.CheckConstraint(
            "consent_type IN ('photoSharing', 'memoryAccess', 'locationSharing')",
            name="ck_consent_history_type",
        ),
        sa.CheckConstraint(
            "source IN ('partner', 'dissolution')", name="ck_consent_history_source"
        ),
    )
    op.create_index(
        "ix_consent_history_ledger_created", "consent_history", ["ledger_id", "created_at"]
    )

    # ==========================================================================
    # streaks
    # ==========================================================================
    op.create_table(
        "streak_photos",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("couple_id", sa.UUID(), nullable=False),
        sa.Column("uploaded_by", sa.UUID(), nullable=False),
        sa.Column("content_ref", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("viewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("viewed_by", sa.UUID(), nullable=True),
        sa.Column("is_expired", sa.Boolean(), server_default="false", nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.ForeignKeyConstraint(["uploaded_by"], ["users.id"]),
    )
    op.create_index("ix_streak_photos_expires_at", "streak_photos", ["expires_at"])
    op.create_index(
        "ix_streak_photos_live", "streak_photos", ["couple_id", "uploaded_by", "is_expired"]
    )

    op.create_table(
        "streak_counters",
        sa.Column("couple_id", sa.UUID(), nullable=False),
        sa.Column("current_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("longest_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_streak_date", sa.Date(), nullable=True),
        sa.Column("partner1_last_photo_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("partner2_last_photo_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("couple_id"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.CheckConstraint(
            "current_streak >= 0 AND longest_streak >= current_streak",
            name="ck_streak_counters_values",
        ),
    )

    # ==========================================================================
    # memories and location
    # ==========================================================================
    op.create_table(
        "memories",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("couple_id", sa.UUID(), nullable=False),
        sa.Column("uploaded_by", sa.UUID(), nullable=False),
        sa.Column("content_ref", sa.Text(), nullable=False),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), server_default="active", nullable=False),
        sa.Column("deleted_by", sa.UUID(), nullable=True),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.ForeignKeyConstraint(["uploaded_by"], ["users.id"]),
        sa.CheckConstraint(
            "status IN ('active', 'archived', 'deleted')", name="ck_memories_status"
        ),
        sa.CheckConstraint(
            "caption IS NULL OR length(caption) <= 500", name="ck_memories_caption_length"
        ),
    )
    op.create_index(
        "ix_memories_couple_status_created", "memories", ["couple_id", "status", "created_at"]
    )

    op.create_table(
        "location_shares",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("couple_id", sa.UUID(), nullable=False),
        sa.Column("shared_by", sa.UUID(), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("accuracy", sa.Float(), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        _created_at("shared_at"),
        _created_at("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.ForeignKeyConstraint(["shared_by"], ["users.id"]),
        sa.UniqueConstraint("couple_id", "shared_by", name="uq_location_shares_couple_user"),
        sa.CheckConstraint("latitude BETWEEN -90 AND 90", name="ck_location_shares_latitude"),
        sa.CheckConstraint(
            "longitude BETWEEN -180 AND 180", name="ck_location_shares_longitude"
        ),
    )


def downgrade() -> None:
    op.drop_table("location_shares")
    op.drop_index("ix_memories_couple_status_created", table_name="memories")
    op.drop_table("memories")
    op.drop_table("streak_counters")
    op.drop_index("ix_streak_photos_live", table_name="streak_photos")
    op.drop_index("ix_streak_photos_expires_at", table_name="streak_photos")
    op.drop_table("streak_photos")
    op.drop_index("ix_consent_history_ledger_created", table_name="consent_history")
    op.drop_table("consent_history")
    op.drop_table("partner_consents")
    op.drop_table("consent_ledgers")
    op.drop_index("ix_anonymous_reviews_couple_id", table_name="anonymous_reviews")
    op.drop_table("anonymous_reviews")
    op.drop_index("ix_couple_seats_couple_id", table_name="couple_seats")
    op.drop_table("couple_seats")
    op.drop_index("ix_couples_request_to", table_name="couples")
    op.drop_index("uix_couples_open_pair", table_name="couples")
    op.drop_table("couples")
    op.drop_index("ix_relationship_history_user_id", table_name="relationship_history")
    op.drop_table("relationship_history")
    op.drop_table("users")
