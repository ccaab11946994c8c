"""Shared test fixtures.

Each test gets its own file-backed SQLite database so concurrent sessions
see each other's commits, plus a scriptable fake payment processor.
"""

import asyncio
import os
import uuid
from collections.abc import AsyncGenerator
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from trailhead.api.deps import get_payment_processor
from trailhead.database import get_db, init_db
from trailhead.gateways.base import (
    ChargeResult,
    GatewayType,
    OperationStatus,
    PaymentProcessor,
    RefundResult,
)
from trailhead.main import app
from trailhead.models.trip import Trip, TripDate
from trailhead.schemas.common import Actor, ActorRole

# Fixed clock for service tests
NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class FakeProcessor(PaymentProcessor):
    """In-memory processor whose outcomes can be scripted per call.

    Outcomes are consumed in order; when the script runs out every call
    succeeds. "timeout" sleeps past the payment timeout.
    """

    def __init__(self):
        self.charge_outcomes: list[str] = []
        self.refund_outcomes: list[str] = []
        self.charges: list[dict] = []
        self.refunds: list[dict] = []
        self.sleep_seconds = 1.0

    @property
    def gateway_type(self) -> GatewayType:
        return GatewayType.MANUAL

    async def _outcome(self, outcomes: list[str]) -> OperationStatus:
        outcome = outcomes.pop(0) if outcomes else "succeeded"
        if outcome == "timeout":
            await asyncio.sleep(self.sleep_seconds)
            return OperationStatus.SUCCEEDED
        return OperationStatus(outcome)

    async def charge(self, amount, currency, reference_id, idempotency_key, description="", payment_method=None):
        self.charges.append({"amount": amount, "reference_id": reference_id, "idempotency_key": idempotency_key})
        status = await self._outcome(self.charge_outcomes)
        return ChargeResult(
            status=status,
            transaction_id=f"ch_{reference_id}",
            error_message=None if status == OperationStatus.SUCCEEDED else "card declined",
        )

    async def refund(self, transaction_id, amount, currency, idempotency_key, reason=""):
        self.refunds.append(
            {"transaction_id": transaction_id, "amount": amount, "idempotency_key": idempotency_key}
        )
        status = await self._outcome(self.refund_outcomes)
        return RefundResult(
            status=status,
            refund_id=f"re_{len(self.refunds)}",
            error_message=None if status == OperationStatus.SUCCEEDED else "processor unavailable",
        )


def make_actor(role: ActorRole | str, actor_id: uuid.UUID | None = None) -> Actor:
    return Actor(id=actor_id or uuid.uuid4(), role=ActorRole(role))


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'trailhead.db'}",
        connect_args={"timeout": 30},
    )
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def processor() -> FakeProcessor:
    return FakeProcessor()


@pytest.fixture
def guide() -> Actor:
    return make_actor(ActorRole.GUIDE)


@pytest.fixture
def customer() -> Actor:
    return make_actor(ActorRole.CUSTOMER)


@pytest.fixture
def admin() -> Actor:
    return make_actor(ActorRole.ADMIN)


async def seed_trip(
    db: AsyncSession,
    guide: Actor,
    price: Decimal = Decimal("450.00"),
    spots: int = 10,
    start_date: date | None = None,
    duration_days: int = 2,
    max_group_size: int = 10,
    is_instant_book: bool = False,
    referral_payout_percent: Decimal = Decimal("1.0"),
) -> tuple[Trip, TripDate]:
    """Insert an active trip with one date and commit."""
    start_date = start_date or (NOW + timedelta(days=30)).date()
    trip = Trip(
        guide_id=guide.id,
        title="Ridge Traverse",
        price_per_person=price,
        currency="USD",
        min_group_size=1,
        max_group_size=max_group_size,
        referral_payout_percent=referral_payout_percent,
        is_instant_book=is_instant_book,
        is_active=True,
    )
    db.add(trip)
    await db.flush()
    trip_date = TripDate(
        trip_id=trip.id,
        start_date=start_date,
        end_date=start_date + timedelta(days=duration_days),
        spots_total=spots,
        spots_available=spots,
        is_available=True,
    )
    db.add(trip_date)
    await db.commit()
    return trip, trip_date


@pytest.fixture
async def client(session_factory, processor) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_processor] = lambda: processor
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
