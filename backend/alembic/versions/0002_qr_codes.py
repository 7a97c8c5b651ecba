"""Invitation and table QR codes; failed scan error codes.

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

JSONB_TYPE = postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite")


def upgrade() -> None:
    qr_code_type_enum = sa.Enum("INVITATION", "TABLE", name="qrcodetype")

    op.create_table(
        "qr_codes",
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
        sa.Column("type", qr_code_type_enum, nullable=False),
        sa.Column("payload", JSONB_TYPE, nullable=False),
        sa.Column("raw_data", sa.Text(), nullable=False, unique=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("is_expired", sa.Boolean(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column("scan_count", sa.Integer(), nullable=False),
        sa.Column("max_scans", sa.Integer(), nullable=False),
        sa.Column("last_scanned_at", sa.DateTime(timezone=True)),
        sa.Column("scan_history", JSONB_TYPE, nullable=False),
        sa.Column("generated_by", sa.String(length=64), nullable=False),
        sa.Column("table_number", sa.String(length=20)),
        sa.Column("table_name", sa.String(length=100)),
        sa.Column("capacity", sa.Integer()),
        sa.Column("location", sa.String(length=200)),
        sa.Column("category", sa.String(length=50)),
        sa.Column("content", JSONB_TYPE, nullable=False),
        sa.Column("assigned_guests", JSONB_TYPE, nullable=False),
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
        sa.UniqueConstraint("event_id", "type", "guest_id", name="uq_qr_codes_guest"),
        sa.UniqueConstraint(
            "event_id", "type", "table_number", name="uq_qr_codes_table"
        ),
    )
    op.create_index("ix_qr_codes_event", "qr_codes", ["event_id"])
    op.create_index("ix_qr_codes_expires_at", "qr_codes", ["expires_at"])

    op.add_column("scans", sa.Column("error_code", sa.String(length=32)))


def downgrade() -> None:
    op.drop_column("scans", "error_code")

    op.drop_index("ix_qr_codes_expires_at", table_name="qr_codes")
    op.drop_index("ix_qr_codes_event", table_name="qr_codes")
    op.drop_table("qr_codes")
    sa.Enum(name="qrcodetype").drop(op.get_bind(), checkfirst=True)
