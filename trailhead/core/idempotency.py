"""Idempotency keys for payment processor calls.

A key is derived from the operation, the entity and the parameters that
define the request. Retrying the same request reuses its key; a different
request (another amount, a fresh attempt after a failure) gets a new one.
"""

import hashlib
import json
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from trailhead.core.exceptions import IdempotencyConflict


@dataclass
class _Entry:
    fingerprint: str
    result: Any
    expires_at: datetime


class IdempotencyStore:
    """In-memory record of processor results by idempotency key.

    Real processors deduplicate on the key themselves; this store gives the
    manual gateway the same replay semantics.
    """

    def __init__(self, ttl: timedelta = timedelta(hours=24)):
        self._entries: dict[str, _Entry] = {}
        self._ttl = ttl

    def _purge_expired(self, now: datetime) -> None:
        for key in [k for k, entry in self._entries.items() if entry.expires_at <= now]:
            del self._entries[key]

    def replay(self, key: str, fingerprint: str) -> Any | None:
        """Result previously recorded for ``key``, or None.

        Raises:
            IdempotencyConflict: The key was used for a different request
        """
        self._purge_expired(datetime.now(UTC))
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.fingerprint != fingerprint:
            raise IdempotencyConflict(key)
        return entry.result

    def record(self, key: str, fingerprint: str, result: Any) -> None:
        self._entries[key] = _Entry(
            fingerprint=fingerprint,
            result=result,
            expires_at=datetime.now(UTC) + self._ttl,
        )

    def __contains__(self, key: str) -> bool:
        self._purge_expired(datetime.now(UTC))
        return key in self._entries


def generate_idempotency_key(
    operation: str,
    entity_id: UUID | str,
    params: dict[str, Any] | None = None,
) -> str:
    """Generate a deterministic idempotency key.

    Args:
        operation: Operation name (e.g., "booking_charge", "dispute_refund")
        entity_id: Primary entity ID
        params: Parameters that distinguish one request from another

    Returns:
        SHA256 hex digest of operation + entity + params
    """
    key_data = {
        "operation": operation,
        "entity_id": str(entity_id),
        "params": params or {},
    }
    key_str = json.dumps(key_data, sort_keys=True, default=str)
    return hashlib.sha256(key_str.encode()).hexdigest()
