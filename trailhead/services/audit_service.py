"""Financial audit trail service."""

from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.models.admin import AuditLog


def _jsonable(values: dict[str, Any] | None) -> dict[str, Any] | None:
    """Render Decimal and UUID values as strings for the JSON columns."""
    if values is None:
        return None
    return {
        key: str(value) if isinstance(value, (Decimal, UUID)) else value
        for key, value in values.items()
    }


class AuditService:
    """Service for immutable financial audit logging."""

    async def log_financial_action(
        self,
        db: AsyncSession,
        actor_id: UUID | None,
        action: str,
        resource_type: str,
        resource_id: UUID,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
        actor_role: str | None = None,
    ) -> AuditLog:
        """Log a financial action (immutable).

        Args:
            db: Database session
            actor_id: Actor performing the action (None for system jobs)
            action: Action name (e.g., "booking_cancel")
            resource_type: Resource type (e.g., "booking", "dispute")
            resource_id: Resource ID
            old_values: Previous state
            new_values: New state
            actor_role: customer, guide or admin

        Returns:
            Created audit log entry
        """
        audit = AuditLog(
            actor_id=actor_id,
            actor_role=actor_role,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values=_jsonable(old_values),
            new_values=_jsonable(new_values),
        )
        db.add(audit)
        return audit

    async def log_status_change(
        self,
        db: AsyncSession,
        actor_id: UUID | None,
        action: str,
        resource_type: str,
        resource_id: UUID,
        old_status: str | None,
        new_status: str,
        actor_role: str | None = None,
        **extra: Any,
    ) -> AuditLog:
        """Log a status transition with optional extra values."""
        return await self.log_financial_action(
            db=db,
            actor_id=actor_id,
            actor_role=actor_role,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values={"status": old_status} if old_status else None,
            new_values={"status": new_status, **extra},
        )

    async def list_for_resource(
        self,
        db: AsyncSession,
        resource_type: str,
        resource_id: UUID,
    ) -> list[AuditLog]:
        """Audit trail of one resource, oldest first."""
        result = await db.execute(
            select(AuditLog)
            .where(AuditLog.resource_type == resource_type, AuditLog.resource_id == resource_id)
            .order_by(AuditLog.created_at)
        )
        return list(result.scalars().all())


audit_service = AuditService()
