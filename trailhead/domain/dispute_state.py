"""Dispute state machine.

States: open → resolved. Resolution is terminal.
"""

from enum import Enum

from trailhead.core.exceptions import AlreadyResolved


class DisputeStatus(str, Enum):
    OPEN = "open"
    RESOLVED = "resolved"


class DisputeResolution(str, Enum):
    APPROVED = "approved"
    DENIED = "denied"


class DisputeReason(str, Enum):
    GUIDE_NO_SHOW = "guide_no_show"
    NOT_AS_DESCRIBED = "not_as_described"
    SAFETY_CONCERN = "safety_concern"
    BILLING_ISSUE = "billing_issue"
    OTHER = "other"


DISPUTE_TRANSITIONS: dict[DisputeStatus, set[DisputeStatus]] = {
    DisputeStatus.OPEN: {DisputeStatus.RESOLVED},
    DisputeStatus.RESOLVED: set(),
}


def assert_dispute_transition(dispute_id: str, current_status: str, new_status: str) -> None:
    """Validate dispute state transition."""
    allowed = DISPUTE_TRANSITIONS.get(DisputeStatus(current_status), set())
    if DisputeStatus(new_status) not in allowed:
        raise AlreadyResolved(dispute_id)
