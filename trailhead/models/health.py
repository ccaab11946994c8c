"""Finance health check persistence models."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from trailhead.database import Base
from trailhead.utils.clock import utcnow


class FinanceHealthRun(Base):
    """Persisted finance health check results."""

    __tablename__ = "finance_health_runs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Result
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # OK, WARNING, ERROR
    checks: Mapped[list] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    counts: Mapped[dict] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=False)

    # Trigger info
    trigger: Mapped[str] = mapped_column(String(30), nullable=False)  # scheduled, manual

    # Timing
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False)

    # Metadata
    error_message: Mapped[str | None] = mapped_column(Text)
