"""Initial events, guests, scans, invitations and messages schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

JSONB_TYPE = postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    event_type_enum = sa.Enum(
        "WEDDING", "CONFERENCE", "PARTY", "CORPORATE", "OTHER", name="eventtype"
    )
    event_status_enum = sa.Enum("ACTIVE", "COMPLETED", "CANCELLED", name="eventstatus")

    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("organizer_id", sa.String(length=64)),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", event_type_enum, nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.String(length=5)),
        sa.Column("location", sa.String(length=200), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("welcome_message", sa.String(length=500)),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("status", event_status_enum, nullable=False),
        sa.Column("settings", JSONB_TYPE, nullable=False),
        sa.Column("total_guests", sa.Integer(), nullable=False),
        sa.Column("confirmed_guests", sa.Integer(), nullable=False),
        sa.Column("scanned_guests", sa.Integer(), nullable=False),
        sa.Column("total_scans", sa.Integer(), nullable=False),
        sa.Column("scan_rate", sa.Float(), nullable=False),
        sa.Column("last_scan_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_events_organizer", "events", ["organizer_id"])
    op.create_index("ix_events_date", "events", ["date"])

    guest_status_enum = sa.Enum("PENDING", "CONFIRMED", "CANCELLED", name="gueststatus")

    op.create_table(
        "guests",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("first_name", sa.String(length=50), nullable=False),
        sa.Column("last_name", sa.String(length=50), nullable=False),
        sa.Column("email", sa.String(length=255)),
        sa.Column("phone", sa.String(length=20)),
        sa.Column("company", sa.String(length=100)),
        sa.Column("notes", sa.String(length=500)),
        sa.Column("seats", sa.Integer(), nullable=False),
        sa.Column("status", guest_status_enum, nullable=False),
        sa.Column("qr_code", sa.String(length=64), nullable=False, unique=True),
        sa.Column("scanned", sa.Boolean(), nullable=False),
        sa.Column("scanned_at", sa.DateTime(timezone=True)),
        sa.Column("scan_count", sa.Integer(), nullable=False),
        sa.Column("scan_history", JSONB_TYPE, nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("confirmation_history", JSONB_TYPE, nullable=False),
        sa.Column("category", sa.String(length=50), nullable=False),
        sa.Column("table_number", sa.String(length=20)),
        sa.Column("special_requirements", sa.String(length=500)),
        sa.Column("invitation_sent", sa.Boolean(), nullable=False),
        sa.Column("confirmed", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_guests_event", "guests", ["event_id"])
    op.create_index("ix_guests_event_email", "guests", ["event_id", "email"])
    op.create_index("ix_guests_event_status", "guests", ["event_id", "status"])

    scan_type_enum = sa.Enum("ENTRY", "EXIT", "VALIDATION", name="scantype")

    op.create_table(
        "scans",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "guest_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("guests.id", ondelete="CASCADE"),
        ),
        sa.Column("scanner_id", sa.String(length=64)),
        sa.Column("scanner_name", sa.String(length=100)),
        sa.Column("location", sa.String(length=200)),
        sa.Column("type", scan_type_enum, nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("error_message", sa.Text()),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_scans_event", "scans", ["event_id"])
    op.create_index("ix_scans_guest", "scans", ["guest_id"])
    op.create_index("ix_scans_scanned_at", "scans", ["scanned_at"])

    invitation_status_enum = sa.Enum(
        "PENDING",
        "SENT",
        "OPENED",
        "ACCEPTED",
        "DECLINED",
        "FAILED",
        "EXPIRED",
        name="invitationstatus",
    )

    op.create_table(
        "invitations",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "guest_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("guests.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token", sa.String(length=64), nullable=False, unique=True),
        sa.Column("guest_email", sa.String(length=255)),
        sa.Column("guest_name", sa.String(length=120)),
        sa.Column("channel", sa.String(length=20), nullable=False),
        sa.Column("status", invitation_status_enum, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True)),
        sa.Column("opened_at", sa.DateTime(timezone=True)),
        sa.Column("open_count", sa.Integer(), nullable=False),
        sa.Column("responded_at", sa.DateTime(timezone=True)),
        sa.Column("response_message", sa.String(length=500)),
        sa.Column("plus_ones", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("error", sa.Text()),
        *_timestamps(),
    )
    op.create_index("ix_invitations_event", "invitations", ["event_id"])
    op.create_index("ix_invitations_guest", "invitations", ["guest_id"])

    message_type_enum = sa.Enum("MESSAGE", "WISH", "COMMENT", name="messagetype")
    message_status_enum = sa.Enum(
        "PENDING", "APPROVED", "REJECTED", name="messagestatus"
    )

    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "event_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("author", sa.String(length=100), nullable=False),
        sa.Column("author_email", sa.String(length=255)),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("type", message_type_enum, nullable=False),
        sa.Column("status", message_status_enum, nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("likes", sa.Integer(), nullable=False),
        sa.Column("moderated_at", sa.DateTime(timezone=True)),
        sa.Column("moderated_by", sa.String(length=64)),
        sa.Column("moderation_reason", sa.String(length=500)),
        sa.Column("published_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index("ix_messages_event_status", "messages", ["event_id", "status"])


def downgrade() -> None:
    op.drop_index("ix_messages_event_status", table_name="messages")
    op.drop_table("messages")
    sa.Enum(name="messagestatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="messagetype").drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_invitations_guest", table_name="invitations")
    op.drop_index("ix_invitations_event", table_name="invitations")
    op.drop_table("invitations")
    sa.Enum(name="invitationstatus").drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_scans_scanned_at", table_name="scans")
    op.drop_index("ix_scans_guest", table_name="scans")
    op.drop_index("ix_scans_event", table_name="scans")
    op.drop_table("scans")
    sa.Enum(name="scantype").drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_guests_event_status", table_name="guests")
    op.drop_index("ix_guests_event_email", table_name="guests")
    op.drop_index("ix_guests_event", table_name="guests")
    op.drop_table("guests")
    sa.Enum(name="gueststatus").drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_events_date", table_name="events")
    op.drop_index("ix_events_organizer", table_name="events")
    op.drop_table("events")
    sa.Enum(name="eventstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="eventtype").drop(op.get_bind(), checkfirst=True)
