"""Core utilities: exceptions, idempotency and integrity guards."""

from trailhead.core.exceptions import (
    AlreadyResolved,
    AppException,
    AuthorizationError,
    DataIntegrityError,
    DuplicateDispute,
    DuplicateEarning,
    IdempotencyConflict,
    InsufficientSpots,
    InvalidInput,
    InvalidTransition,
    NotFoundError,
    OutOfRange,
    PaymentProcessorError,
    RefundPending,
    ValidationError,
)
from trailhead.core.idempotency import generate_idempotency_key
from trailhead.core.immutability import ImmutabilityViolationError

__all__ = [
    "AlreadyResolved",
    "AppException",
    "AuthorizationError",
    "DataIntegrityError",
    "DuplicateDispute",
    "DuplicateEarning",
    "IdempotencyConflict",
    "ImmutabilityViolationError",
    "InsufficientSpots",
    "InvalidInput",
    "InvalidTransition",
    "NotFoundError",
    "OutOfRange",
    "PaymentProcessorError",
    "RefundPending",
    "ValidationError",
    "generate_idempotency_key",
]
