"""Admin endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.api.deps import get_db, get_query_admin
from trailhead.domain.cancellation_policy import get_policy_description
from trailhead.models.health import FinanceHealthRun
from trailhead.schemas.common import Actor
from trailhead.services.audit_service import audit_service
from trailhead.services.finance_health_service import finance_health_service

router = APIRouter()


class HealthCheckResult(BaseModel):
    name: str
    status: str
    message: str
    details: dict


class FinanceHealthResponse(BaseModel):
    """Schema for a finance health report."""

    run_id: UUID | None = None
    status: str
    checks: list[HealthCheckResult]
    counts: dict[str, int]


@router.get("/finance-health", response_model=FinanceHealthResponse)
async def get_finance_health(
    admin: Annotated[Actor, Depends(get_query_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    record: Annotated[bool, Query(description="Persist this run")] = False,
) -> FinanceHealthResponse:
    """Run the financial integrity checks (admin only)."""
    if record:
        run = await finance_health_service.run_and_record(db, trigger="manual")
        return FinanceHealthResponse(run_id=run.id, status=run.status, checks=run.checks, counts=run.counts)

    report = await finance_health_service.run_all_checks(db)
    return FinanceHealthResponse(status=report["status"], checks=report["checks"], counts=report["counts"])


@router.get("/finance-health/runs", response_model=list[FinanceHealthResponse])
async def list_finance_health_runs(
    admin: Annotated[Actor, Depends(get_query_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> list[FinanceHealthResponse]:
    """Most recent persisted health runs."""
    result = await db.execute(
        select(FinanceHealthRun).order_by(FinanceHealthRun.started_at.desc()).limit(limit)
    )
    return [
        FinanceHealthResponse(run_id=run.id, status=run.status, checks=run.checks, counts=run.counts)
        for run in result.scalars().all()
    ]


@router.get("/audit-logs/{resource_type}/{resource_id}")
async def get_audit_trail(
    resource_type: str,
    resource_id: UUID,
    admin: Annotated[Actor, Depends(get_query_admin)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[dict]:
    """Audit trail of one resource (admin only)."""
    entries = await audit_service.list_for_resource(db, resource_type, resource_id)
    return [
        {
            "id": str(entry.id),
            "actor_id": str(entry.actor_id) if entry.actor_id else None,
            "actor_role": entry.actor_role,
            "action": entry.action,
            "old_values": entry.old_values,
            "new_values": entry.new_values,
            "created_at": entry.created_at.isoformat(),
        }
        for entry in entries
    ]


@router.get("/cancellation-policy")
async def cancellation_policy() -> dict:
    """Human-readable cancellation policy."""
    return {"policy": get_policy_description()}
