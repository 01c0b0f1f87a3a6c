"""Initial schema: churches, users, invites, events, registrations.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "churches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("pastor", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("church_id", sa.String(36), sa.ForeignKey("churches.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('county_admin', 'church_admin')", name="check_user_role"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "pending_invites",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(100), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("church_id", sa.String(36), sa.ForeignKey("churches.id"), nullable=True),
        sa.Column("invite_token", sa.String(64), nullable=False),
        sa.Column("invited_by", sa.String(36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('county_admin', 'church_admin')", name="check_invite_role"),
    )
    op.create_index("ix_pending_invites_email", "pending_invites", ["email"])
    op.create_index("ix_pending_invites_invite_token", "pending_invites", ["invite_token"], unique=True)

    op.create_table(
        "events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("church_id", sa.String(36), sa.ForeignKey("churches.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("event_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("image_url", sa.String(1000), nullable=True),
        sa.Column("external_registration_url", sa.String(1000), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("spots_remaining", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("has_unlimited_capacity", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_free", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("price", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.CheckConstraint("capacity >= 0", name="check_event_capacity_non_negative"),
        sa.CheckConstraint("spots_remaining >= 0", name="check_spots_remaining_non_negative"),
        sa.CheckConstraint("spots_remaining <= capacity", name="check_spots_remaining_lte_capacity"),
        sa.CheckConstraint("price IS NULL OR price >= 0", name="check_event_price_non_negative"),
    )
    op.create_index("ix_events_church_id", "events", ["church_id"])
    # Events are almost always read by date ("upcoming events")
    op.create_index("ix_events_event_date", "events", ["event_date"])
    # Public listing: WHERE is_published AND event_date >= now ORDER BY event_date
    op.create_index("ix_events_published_date", "events", ["is_published", "event_date"])

    op.create_table(
        "registrations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "event_id",
            sa.String(36),
            sa.ForeignKey("events.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("attendee_name", sa.String(100), nullable=False),
        sa.Column("attendee_email", sa.String(255), nullable=False),
        sa.Column("attendee_phone", sa.String(20), nullable=True),
        sa.Column("num_tickets", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("total_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("registration_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("hold_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_in", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmation_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.CheckConstraint("num_tickets > 0", name="check_registration_tickets_positive"),
        sa.CheckConstraint(
            "registration_status IN ('pending', 'confirmed', 'cancelled')",
            name="check_registration_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('free', 'pending', 'paid', 'failed')",
            name="check_payment_status",
        ),
    )
    op.create_index("ix_registrations_event_id", "registrations", ["event_id"])
    op.create_index("ix_registrations_attendee_email", "registrations", ["attendee_email"])
    # Sweeper scan: pending holds ordered by expiry
    op.create_index(
        "ix_registrations_status_hold",
        "registrations",
        ["registration_status", "hold_expires_at"],
    )


def downgrade() -> None:
    op.drop_table("registrations")
    op.drop_table("events")
    op.drop_table("pending_invites")
    op.drop_table("users")
    op.drop_table("churches")
