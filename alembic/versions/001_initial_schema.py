"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all initial tables for the Trailhead booking engine:
- Trips and trip dates (seat inventory)
- Bookings and cancellations
- Payments and refunds
- Disputes and audit logs
- Referral earnings
- Finance health runs
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    """Create all database tables."""

    # ==================== TRIPS ====================
    op.create_table(
        "trips",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("guide_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("price_per_person", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("min_group_size", sa.Integer, server_default="1"),
        sa.Column("max_group_size", sa.Integer, nullable=False),
        sa.Column("referral_payout_percent", sa.Numeric(4, 2), server_default="1.0"),
        sa.Column("is_instant_book", sa.Boolean, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("price_per_person >= 0", name="ck_trips_price_non_negative"),
        sa.CheckConstraint("min_group_size >= 1", name="ck_trips_min_group"),
        sa.CheckConstraint("max_group_size >= min_group_size", name="ck_trips_group_bounds"),
        sa.CheckConstraint(
            "referral_payout_percent >= 0 AND referral_payout_percent <= 2",
            name="ck_trips_referral_percent",
        ),
    )

    op.create_table(
        "trip_dates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "trip_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("trips.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("start_date", sa.Date, nullable=False, index=True),
        sa.Column("end_date", sa.Date, nullable=False),
        sa.Column("spots_total", sa.Integer, nullable=False),
        sa.Column("spots_available", sa.Integer, nullable=False),
        sa.Column("price_override", sa.Numeric(12, 2)),
        sa.Column("is_available", sa.Boolean, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint("spots_total > 0", name="ck_trip_dates_spots_total_positive"),
        sa.CheckConstraint(
            "spots_available >= 0 AND spots_available <= spots_total",
            name="ck_trip_dates_spots_available_bounds",
        ),
        sa.CheckConstraint("end_date >= start_date", name="ck_trip_dates_date_order"),
    )

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_number", sa.String(20), nullable=False, unique=True, index=True),
        sa.Column("trip_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("trips.id"), nullable=False, index=True),
        sa.Column(
            "trip_date_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("trip_dates.id"), nullable=False, index=True
        ),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("guide_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("referrer_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("participant_count", sa.Integer, nullable=False),
        # Pricing (frozen at creation)
        sa.Column("price_per_person", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("commission_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("hosting_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("guide_payout", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), server_default="USD"),
        # Status
        sa.Column("status", sa.String(20), server_default="pending", index=True),
        sa.Column("payment_status", sa.String(20), server_default="unpaid"),
        sa.Column("payment_reference", sa.String(100)),
        # Refunds
        sa.Column("refund_status", sa.String(20), server_default="none"),
        sa.Column("refund_amount", sa.Numeric(12, 2), server_default="0.00"),
        sa.Column("refund_failure_reason", sa.Text),
        # Cancellation
        sa.Column("cancelled_by", sa.String(10)),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("participant_count >= 1", name="ck_bookings_participants"),
        sa.CheckConstraint(
            "total_price = commission_amount + hosting_fee + guide_payout",
            name="ck_bookings_split_reconciles",
        ),
        sa.CheckConstraint("guide_payout >= 0", name="ck_bookings_payout_non_negative"),
        sa.CheckConstraint(
            "refund_amount >= 0 AND refund_amount <= total_price",
            name="ck_bookings_refund_bounds",
        ),
    )

    op.create_table(
        "cancellations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True
        ),
        sa.Column("initiated_by", sa.String(10), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reason", sa.Text),
        sa.Column("days_until_trip", sa.Integer, nullable=False),
        sa.Column("refund_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("refund_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ==================== DISPUTES ====================
    op.create_table(
        "disputes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True
        ),
        sa.Column("initiator_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("reason", sa.String(30), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("status", sa.String(20), server_default="open"),
        sa.Column("resolution", sa.String(20)),
        sa.Column("refund_amount", sa.Numeric(12, 2)),
        sa.Column("refund_status", sa.String(20), server_default="none"),
        sa.Column("failure_reason", sa.Text),
        sa.Column("admin_notes", sa.Text),
        sa.Column("resolved_by", postgresql.UUID(as_uuid=True)),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
        *_timestamps(),
    )
    op.create_index(
        "uq_disputes_booking_open",
        "disputes",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("status = 'open'"),
    )

    # ==================== PAYMENTS ====================
    op.create_table(
        "payments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True
        ),
        sa.Column("customer_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(3), server_default="USD"),
        sa.Column("gateway", sa.String(30), nullable=False),
        sa.Column("transaction_id", sa.String(100)),
        sa.Column("idempotency_key", sa.String(64), nullable=False, unique=True),
        sa.Column("gateway_response", postgresql.JSONB),
        sa.Column("status", sa.String(20), server_default="completed"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "refunds",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True
        ),
        sa.Column("dispute_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("disputes.id")),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("reason", sa.Text),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("failure_reason", sa.Text),
        sa.Column("gateway", sa.String(30), nullable=False),
        sa.Column("gateway_refund_id", sa.String(100)),
        sa.Column("idempotency_key", sa.String(64), nullable=False, index=True),
        sa.Column("processed_by", postgresql.UUID(as_uuid=True)),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ==================== REFERRALS ====================
    op.create_table(
        "referral_earnings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, unique=True
        ),
        sa.Column("trip_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("trips.id"), nullable=False, index=True),
        sa.Column("referrer_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("earnings_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("referral_payout_percent", sa.Numeric(4, 2), nullable=False),
        sa.Column("status", sa.String(20), server_default="pending", index=True),
        sa.Column("failure_reason", sa.Text),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # ==================== ADMIN ====================
    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("actor_role", sa.String(20)),
        sa.Column("action", sa.String(100), nullable=False, index=True),
        sa.Column("resource_type", sa.String(50), nullable=False, index=True),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True)),
        sa.Column("old_values", postgresql.JSONB),
        sa.Column("new_values", postgresql.JSONB),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )

    op.create_table(
        "finance_health_runs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("checks", postgresql.JSONB, nullable=False),
        sa.Column("counts", postgresql.JSONB, nullable=False),
        sa.Column("trigger", sa.String(30), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_ms", sa.Integer, nullable=False),
        sa.Column("error_message", sa.Text),
    )


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_table("finance_health_runs")
    op.drop_table("audit_logs")
    op.drop_table("referral_earnings")
    op.drop_table("refunds")
    op.drop_table("payments")
    op.drop_index("uq_disputes_booking_open", table_name="disputes")
    op.drop_table("disputes")
    op.drop_table("cancellations")
    op.drop_table("bookings")
    op.drop_table("trip_dates")
    op.drop_table("trips")
