"""Financial health check service (read-only validation)."""

import logging
import time
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trailhead.domain.booking_state import SEAT_HOLDING_STATUSES, BookingStatus, PaymentStatus, RefundStatus
from trailhead.domain.dispute_state import DisputeStatus
from trailhead.domain.earning_state import EarningStatus
from trailhead.models.admin import Dispute
from trailhead.models.booking import Booking
from trailhead.models.health import FinanceHealthRun
from trailhead.models.payment import Payment, Refund
from trailhead.models.referral import ReferralEarning
from trailhead.models.trip import TripDate

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"


def _result(name: str, status: HealthStatus, message: str, details: dict | None = None) -> dict:
    return {"name": name, "status": status.value, "message": message, "details": details or {}}


class FinanceHealthService:
    """Read-only financial integrity validator."""

    async def run_all_checks(self, db: AsyncSession) -> dict[str, Any]:
        """Run all financial health checks."""
        checks = []
        overall_status = HealthStatus.OK

        check_methods = [
            self._check_seat_conservation,
            self._check_split_reconciliation,
            self._check_refund_bounds,
            self._check_open_dispute_uniqueness,
            self._check_earning_payment_state,
            self._check_unsettled_refunds,
        ]

        for check_method in check_methods:
            result = await check_method(db)
            checks.append(result)

            if result["status"] == HealthStatus.ERROR.value:
                overall_status = HealthStatus.ERROR
            elif result["status"] == HealthStatus.WARNING.value and overall_status != HealthStatus.ERROR:
                overall_status = HealthStatus.WARNING

        counts = await self._get_counts(db)

        return {
            "status": overall_status.value,
            "checks": checks,
            "counts": counts,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    async def run_and_record(self, db: AsyncSession, trigger: str = "manual") -> FinanceHealthRun:
        """Run all checks and persist the outcome."""
        started_at = datetime.now(UTC)
        start = time.monotonic()
        report = await self.run_all_checks(db)

        run = FinanceHealthRun(
            status=report["status"],
            checks=report["checks"],
            counts=report["counts"],
            trigger=trigger,
            started_at=started_at,
            completed_at=datetime.now(UTC),
            duration_ms=int((time.monotonic() - start) * 1000),
        )
        db.add(run)
        await db.flush()

        for check in report["checks"]:
            if check["status"] == HealthStatus.ERROR.value:
                logger.error(f"Finance health check {check['name']} failed: {check['message']}")
            elif check["status"] == HealthStatus.WARNING.value:
                logger.warning(f"Finance health check {check['name']}: {check['message']}")
        logger.info(f"Finance health run {run.id} ({trigger}): {run.status} in {run.duration_ms}ms")
        return run

    async def _check_seat_conservation(self, db: AsyncSession) -> dict:
        """spots_available == spots_total - seats held by active bookings."""
        held = (
            select(
                Booking.trip_date_id.label("trip_date_id"),
                func.sum(Booking.participant_count).label("held"),
            )
            .where(Booking.status.in_([s.value for s in SEAT_HOLDING_STATUSES]))
            .group_by(Booking.trip_date_id)
            .subquery()
        )
        result = await db.execute(
            select(
                TripDate.id,
                TripDate.spots_total,
                TripDate.spots_available,
                func.coalesce(held.c.held, 0),
            ).outerjoin(held, held.c.trip_date_id == TripDate.id)
        )
        mismatched = [
            {"trip_date_id": str(row[0]), "spots_total": row[1], "spots_available": row[2], "held": row[3]}
            for row in result.all()
            if row[2] != row[1] - row[3]
        ]

        if mismatched:
            return _result(
                "seat_conservation",
                HealthStatus.ERROR,
                f"{len(mismatched)} trip date(s) with inconsistent seat availability",
                {"trip_dates": mismatched[:50]},
            )
        return _result("seat_conservation", HealthStatus.OK, "Seat availability matches bookings")

    async def _check_split_reconciliation(self, db: AsyncSession) -> dict:
        """total_price == commission_amount + hosting_fee + guide_payout."""
        result = await db.execute(
            select(
                Booking.id,
                Booking.total_price,
                Booking.commission_amount,
                Booking.hosting_fee,
                Booking.guide_payout,
            )
        )
        # Compared in Python: not every backend does exact NUMERIC arithmetic
        broken = [
            str(row[0])
            for row in result.all()
            if row[1] != row[2] + row[3] + row[4] or row[4] < 0
        ]

        if broken:
            return _result(
                "split_reconciliation",
                HealthStatus.ERROR,
                f"{len(broken)} booking(s) whose split does not add up",
                {"booking_ids": broken[:50]},
            )
        return _result("split_reconciliation", HealthStatus.OK, "All booking splits reconcile")

    async def _check_refund_bounds(self, db: AsyncSession) -> dict:
        """Refunded amounts stay within the total and match completed refund records."""
        completed = (
            select(Refund.booking_id.label("booking_id"), func.sum(Refund.amount).label("refunded"))
            .where(Refund.status == RefundStatus.COMPLETED.value)
            .group_by(Refund.booking_id)
            .subquery()
        )
        result = await db.execute(
            select(
                Booking.id,
                Booking.total_price,
                Booking.refund_amount,
                func.coalesce(completed.c.refunded, 0),
            ).outerjoin(completed, completed.c.booking_id == Booking.id)
        )
        issues = []
        for booking_id, total_price, refund_amount, refunded in result.all():
            if refund_amount > total_price:
                issues.append({"booking_id": str(booking_id), "issue": "refund exceeds total"})
            elif refund_amount != refunded:
                issues.append({"booking_id": str(booking_id), "issue": "refund records mismatch"})

        if issues:
            return _result(
                "refund_bounds",
                HealthStatus.ERROR,
                f"{len(issues)} booking(s) with inconsistent refunds",
                {"issues": issues[:50]},
            )
        return _result("refund_bounds", HealthStatus.OK, "Refunds are within bounds")

    async def _check_open_dispute_uniqueness(self, db: AsyncSession) -> dict:
        """At most one open dispute per booking."""
        result = await db.execute(
            select(Dispute.booking_id, func.count().label("cnt"))
            .where(Dispute.status == DisputeStatus.OPEN.value)
            .group_by(Dispute.booking_id)
            .having(func.count() > 1)
        )
        duplicates = result.all()

        if duplicates:
            return _result(
                "open_dispute_uniqueness",
                HealthStatus.ERROR,
                f"{len(duplicates)} booking(s) have more than one open dispute",
                {"booking_ids": [str(d[0]) for d in duplicates]},
            )
        return _result("open_dispute_uniqueness", HealthStatus.OK, "No duplicate open disputes")

    async def _check_earning_payment_state(self, db: AsyncSession) -> dict:
        """Earnings exist only for bookings that were paid; none pending on cancelled bookings."""
        unpaid_result = await db.execute(
            select(ReferralEarning.id)
            .join(Booking, Booking.id == ReferralEarning.booking_id)
            .where(Booking.payment_status == PaymentStatus.UNPAID.value)
        )
        unpaid = [str(row[0]) for row in unpaid_result.all()]
        if unpaid:
            return _result(
                "earning_payment_state",
                HealthStatus.ERROR,
                f"{len(unpaid)} referral earning(s) on unpaid bookings",
                {"earning_ids": unpaid[:50]},
            )

        stale_result = await db.execute(
            select(ReferralEarning.id)
            .join(Booking, Booking.id == ReferralEarning.booking_id)
            .where(
                Booking.status == BookingStatus.CANCELLED.value,
                ReferralEarning.status.in_([EarningStatus.PENDING.value, EarningStatus.FAILED.value]),
            )
        )
        stale = [str(row[0]) for row in stale_result.all()]
        if stale:
            return _result(
                "earning_payment_state",
                HealthStatus.WARNING,
                f"{len(stale)} unpaid referral earning(s) on cancelled bookings",
                {"earning_ids": stale[:50]},
            )
        return _result("earning_payment_state", HealthStatus.OK, "Referral earnings match payments")

    async def _check_unsettled_refunds(self, db: AsyncSession) -> dict:
        """Refunds left pending or failed need a retry."""
        unsettled = [RefundStatus.PENDING.value, RefundStatus.FAILED.value]
        bookings = await db.execute(
            select(func.count()).select_from(Booking).where(Booking.refund_status.in_(unsettled))
        )
        disputes = await db.execute(
            select(func.count()).select_from(Dispute).where(Dispute.refund_status.in_(unsettled))
        )
        booking_count = bookings.scalar() or 0
        dispute_count = disputes.scalar() or 0

        if booking_count or dispute_count:
            return _result(
                "unsettled_refunds",
                HealthStatus.WARNING,
                f"{booking_count} booking(s) and {dispute_count} dispute(s) with unsettled refunds",
                {"bookings": booking_count, "disputes": dispute_count},
            )
        return _result("unsettled_refunds", HealthStatus.OK, "No unsettled refunds")

    async def _get_counts(self, db: AsyncSession) -> dict:
        """Get entity counts for reporting."""
        bookings = await db.execute(
            select(
                func.count(),
                func.sum(case((Booking.status == BookingStatus.CANCELLED.value, 1), else_=0)),
            ).select_from(Booking)
        )
        booking_total, cancelled = bookings.one()
        payments = await db.execute(select(func.count()).select_from(Payment))
        refunds = await db.execute(select(func.count()).select_from(Refund))
        disputes = await db.execute(select(func.count()).select_from(Dispute))
        earnings = await db.execute(select(func.count()).select_from(ReferralEarning))

        return {
            "bookings": booking_total or 0,
            "cancelled_bookings": cancelled or 0,
            "payments": payments.scalar() or 0,
            "refunds": refunds.scalar() or 0,
            "disputes": disputes.scalar() or 0,
            "referral_earnings": earnings.scalar() or 0,
        }


finance_health_service = FinanceHealthService()
