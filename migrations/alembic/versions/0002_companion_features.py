"""Companion features - chat, moods, buzzes, voice notes, important dates

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-16

Every table carries archived_at, stamped when the couple dissolves.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.TIMESTAMP(timezone=True), nullable=True)
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("now()"),
        nullable=False,
    )


def _couple_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("couple_id", sa.UUID(), nullable=False),
    ]


def upgrade() -> None:
    # ==========================================================================
    # moods
    # ==========================================================================
    op.create_table(
        "moods",
        *_couple_columns(),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("mood", sa.Text(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("archived_at", nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.CheckConstraint(
            "mood IN ('happy', 'excited', 'calm', 'tired', 'sad', 'stressed', "
            "'loving', 'angry', 'anxious', 'neutral')",
            name="ck_moods_mood",
        ),
        sa.CheckConstraint("note IS NULL OR length(note) <= 100", name="ck_moods_note_length"),
    )
    op.create_index(
        "ix_moods_couple_user_created", "moods", ["couple_id", "user_id", "created_at"]
    )

    # ==========================================================================
    # walkie-talkie
    # ==========================================================================
    op.create_table(
        "buzzes",
        *_couple_columns(),
        sa.Column("sender_id", sa.UUID(), nullable=False),
        sa.Column("recipient_id", sa.UUID(), nullable=False),
        sa.Column("kind", sa.Text(), server_default="single", nullable=False),
        _timestamp("delivered_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("archived_at", nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"]),
        sa.CheckConstraint("kind IN ('single', 'double', 'long')", name="ck_buzzes_kind"),
    )
    op.create_index(
        "ix_buzzes_recipient_pending", "buzzes", ["couple_id", "recipient_id", "delivered_at"]
    )

    op.create_table(
        "voice_messages",
        *_couple_columns(),
        sa.Column("sender_id", sa.UUID(), nullable=False),
        sa.Column("recipient_id", sa.UUID(), nullable=False),
        sa.Column("content_ref", sa.Text(), nullable=False),
        sa.Column("duration_s", sa.Float(), nullable=False),
        _timestamp("listened_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("archived_at", nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"]),
        sa.CheckConstraint("duration_s BETWEEN 0 AND 60", name="ck_voice_messages_duration"),
    )
    op.create_index(
        "ix_voice_messages_recipient_pending",
        "voice_messages",
        ["couple_id", "recipient_id", "listened_at"],
    )

    # ==========================================================================
    # chat
    # ==========================================================================
    op.create_table(
        "chat_messages",
        *_couple_columns(),
        sa.Column("sender_id", sa.UUID(), nullable=False),
        sa.Column("recipient_id", sa.UUID(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        _timestamp("read_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("archived_at", nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["recipient_id"], ["users.id"]),
        sa.CheckConstraint(
            "length(body) BETWEEN 1 AND 5000", name="ck_chat_messages_body_length"
        ),
    )
    op.create_index(
        "ix_chat_messages_couple_created", "chat_messages", ["couple_id", "created_at"]
    )

    op.create_table(
        "hidden_chat_messages",
        sa.Column("message_id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        _timestamp("hidden_at"),
        sa.PrimaryKeyConstraint("message_id", "user_id"),
        sa.ForeignKeyConstraint(["message_id"], ["chat_messages.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )

    # ==========================================================================
    # calendar
    # ==========================================================================
    op.create_table(
        "important_dates",
        *_couple_columns(),
        sa.Column("created_by", sa.UUID(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("event_date", sa.Date(), nullable=False),
        sa.Column("emoji", sa.Text(), server_default="❤️", nullable=False),
        sa.Column("is_recurring", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("reminder_enabled", sa.Boolean(), server_default="true", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        _timestamp("archived_at", nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["couple_id"], ["couples.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.CheckConstraint("length(title) BETWEEN 1 AND 100", name="ck_important_dates_title"),
        sa.CheckConstraint(
            "description IS NULL OR length(description) <= 500",
            name="ck_important_dates_description",
        ),
    )
    op.create_index(
        "ix_important_dates_couple_date", "important_dates", ["couple_id", "event_date"]
    )


def downgrade() -> None:
    op.drop_index("ix_important_dates_couple_date", table_name="important_dates")
    op.drop_table("important_dates")
    op.drop_table("hidden_chat_messages")
    op.drop_index("ix_chat_messages_couple_created", table_name="chat_messages")
    op.drop_table("chat_messages")
    op.drop_index("ix_voice_messages_recipient_pending", table_name="voice_messages")
    op.drop_table("voice_messages")
    op.drop_index("ix_buzzes_recipient_pending", table_name="buzzes")
    op.drop_table("buzzes")
    op.drop_index("ix_moods_couple_user_created", table_name="moods")
    op.drop_table("moods")
