"""Immutability enforcement for financial records using SQLAlchemy events."""

import logging
from datetime import UTC, datetime

from sqlalchemy import event
from sqlalchemy.orm import attributes

from trailhead.core.exceptions import DataIntegrityError

logger = logging.getLogger(__name__)


class ImmutabilityViolationError(DataIntegrityError):
    """Raised when attempting to modify immutable financial records."""

    def __init__(self, model_name: str, operation: str, record_id: str, fields: list[str] | None = None):
        self.model_name = model_name
        self.operation = operation
        self.record_id = record_id
        self.fields = fields or []
        detail = f"Immutability violation: Cannot {operation} {model_name} record {record_id}."
        if self.fields:
            detail = f"{detail} Frozen fields changed: {', '.join(self.fields)}."
        super().__init__(detail)


def _log_immutability_violation(model_name: str, operation: str, record_id: str) -> None:
    """Log immutability violation for audit purposes."""
    logger.error(
        f"IMMUTABILITY_VIOLATION: Attempted to {operation} {model_name} "
        f"record_id={record_id} at {datetime.now(UTC).isoformat()}"
    )


def changed_frozen_fields(target, fields: tuple[str, ...]) -> list[str]:
    """Return the frozen attributes whose value differs from the loaded one."""
    changed = []
    for name in fields:
        history = attributes.get_history(target, name)
        if not history.has_changes() or not history.deleted:
            continue
        old, new = history.deleted[0], history.added[0] if history.added else None
        if old != new:
            changed.append(name)
    return changed


def register_immutability_enforcement():
    """Register SQLAlchemy event listeners for immutability enforcement.

    Must be called after models are imported but before session use.
    Safe to call more than once.
    """
    from trailhead.models.admin import AuditLog
    from trailhead.models.booking import FROZEN_FINANCIAL_FIELDS, Booking

    if event.contains(Booking, "before_update", prevent_booking_split_update):
        return

    event.listen(Booking, "before_update", prevent_booking_split_update)
    event.listen(Booking, "before_delete", prevent_booking_delete)
    event.listen(AuditLog, "before_update", prevent_audit_update)
    event.listen(AuditLog, "before_delete", prevent_audit_delete)

    logger.info(
        f"Immutability enforcement registered for bookings ({len(FROZEN_FINANCIAL_FIELDS)} "
        "frozen fields) and audit logs"
    )


# ============ Booking: frozen split, never deleted ============


def prevent_booking_split_update(mapper, connection, target):
    """Reject changes to the monetary split of an existing booking."""
    from trailhead.models.booking import FROZEN_FINANCIAL_FIELDS

    changed = changed_frozen_fields(target, FROZEN_FINANCIAL_FIELDS)
    if changed:
        _log_immutability_violation("Booking", "UPDATE", str(target.id))
        raise ImmutabilityViolationError("Booking", "UPDATE", str(target.id), changed)


def prevent_booking_delete(mapper, connection, target):
    """Bookings are never deleted."""
    _log_immutability_violation("Booking", "DELETE", str(target.id))
    raise ImmutabilityViolationError("Booking", "DELETE", str(target.id))


# ============ AuditLog: Append-Only ============


def prevent_audit_update(mapper, connection, target):
    """Prevent updates to AuditLog (append-only)."""
    _log_immutability_violation("AuditLog", "UPDATE", str(target.id))
    raise ImmutabilityViolationError("AuditLog", "UPDATE", str(target.id))


def prevent_audit_delete(mapper, connection, target):
    """Prevent deletion of AuditLog (append-only)."""
    _log_immutability_violation("AuditLog", "DELETE", str(target.id))
    raise ImmutabilityViolationError("AuditLog", "DELETE", str(target.id))
