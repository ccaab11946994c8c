"""Admin-related database models."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from trailhead.database import Base
from trailhead.utils.clock import utcnow


class AuditLog(Base):
    """Audit log for financial actions (append-only)."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)
    actor_role: Mapped[str | None] = mapped_column(String(20))

    # Action details
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)

    # Changes
    old_values: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"))
    new_values: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"))

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )


class Dispute(Base):
    """Dispute raised by a customer against a booking."""

    __tablename__ = "disputes"
    __table_args__ = (
        # At most one open dispute per booking
        Index(
            "uq_disputes_booking_open",
            "booking_id",
            unique=True,
            postgresql_where=text("status = 'open'"),
            sqlite_where=text("status = 'open'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    initiator_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    # Details
    reason: Mapped[str] = mapped_column(
        String(30), nullable=False
    )  # guide_no_show, not_as_described, safety_concern, billing_issue, other
    description: Mapped[str] = mapped_column(Text, nullable=False)

    # Status: open → resolved
    status: Mapped[str] = mapped_column(String(20), default="open")

    # Resolution
    resolution: Mapped[str | None] = mapped_column(String(20))  # approved, denied
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    refund_status: Mapped[str] = mapped_column(
        String(20), default="none"
    )  # none, pending, failed, completed
    failure_reason: Mapped[str | None] = mapped_column(Text)
    admin_notes: Mapped[str | None] = mapped_column(Text)
    resolved_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow
    )
