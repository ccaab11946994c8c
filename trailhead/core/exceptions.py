"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Malformed or out-of-range request data, rejected before any mutation."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


InvalidInput = ValidationError


class OutOfRange(ValidationError):
    """Configured value outside its permitted range."""

    def __init__(self, field: str, value: Any, low: Any, high: Any) -> None:
        super().__init__(f"{field} must be between {low} and {high}, got {value}")


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class AuthorizationError(AppException):
    """Authorization denied exception."""

    def __init__(self, detail: str = "You don't have permission to perform this action") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class InsufficientSpots(AppException):
    """Seat reservation failed; no booking was created."""

    def __init__(self, requested: int, trip_date_id: str | None = None) -> None:
        detail = f"Not enough spots available for {requested} participant(s)"
        if trip_date_id:
            detail = f"{detail} on trip date '{trip_date_id}'"
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidTransition(AppException):
    """State machine precondition violated, including lost double-submit races."""

    def __init__(self, detail: str = "This operation is not allowed for the current status") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class DuplicateDispute(AppException):
    """An open dispute already exists for the booking."""

    def __init__(self, booking_id: str) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"An open dispute already exists for booking '{booking_id}'",
        )


class DuplicateEarning(AppException):
    """A referral earning already exists for the booking."""

    def __init__(self, booking_id: str) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A referral earning already exists for booking '{booking_id}'",
        )


class AlreadyResolved(AppException):
    """Dispute was already resolved."""

    def __init__(self, dispute_id: str) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Dispute '{dispute_id}' is already resolved",
        )


class IdempotencyConflict(AppException):
    """Idempotency key reused for a request with different parameters."""

    def __init__(self, key: str) -> None:
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Idempotency key '{key[:12]}…' was already used for a different request",
        )


class PaymentProcessorError(AppException):
    """External payment processor failure."""

    def __init__(self, detail: str = "Payment processing failed") -> None:
        super().__init__(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)


class RefundPending(PaymentProcessorError):
    """Refund not confirmed by the processor yet; retry with the same idempotency key."""

    def __init__(self, detail: str = "Refund is pending confirmation from the payment processor") -> None:
        super().__init__(detail=detail)
        self.status_code = status.HTTP_504_GATEWAY_TIMEOUT


class DataIntegrityError(AppException):
    """Internal invariant violation. Not retryable."""

    def __init__(self, detail: str = "Data integrity violation") -> None:
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
