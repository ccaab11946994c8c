"""Celery background tasks."""

import asyncio
import logging

from celery import shared_task
from sqlalchemy.ext.asyncio import async_sessionmaker

from trailhead.database import create_engine
from trailhead.services.finance_health_service import finance_health_service

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context."""
    return asyncio.run(coro)


@shared_task(bind=True, max_retries=3)
def run_finance_health_check(self):
    """Run and persist the finance health checks.

    Runs daily at the configured hour (default 04:00 UTC).
    """
    try:
        return run_async(_run_finance_health_check())
    except Exception as exc:
        logger.exception("Finance health check task failed")
        raise self.retry(exc=exc, countdown=300)


async def _run_finance_health_check() -> dict:
    # Each task run owns its event loop, so it also owns its engine
    engine = create_engine()
    try:
        async with async_sessionmaker(engine, expire_on_commit=False)() as db:
            run = await finance_health_service.run_and_record(db, trigger="scheduled")
            await db.commit()
            return {"run_id": str(run.id), "status": run.status, "duration_ms": run.duration_ms}
    finally:
        await engine.dispose()
