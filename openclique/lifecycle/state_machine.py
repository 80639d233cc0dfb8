"""State machine for quest operational status.

Terminal statuses (completed, cancelled, revoked) have no outgoing edges;
cancelled and revoked quests can only leave the board via soft delete.
"""

from __future__ import annotations

from types import MappingProxyType

from openclique.exceptions import InvalidTransitionError
from openclique.models import QuestStatus, ReviewStatus

VALID_TRANSITIONS: MappingProxyType[QuestStatus, frozenset[QuestStatus]] = MappingProxyType({
    QuestStatus.draft: frozenset({QuestStatus.open, QuestStatus.paused}),
    QuestStatus.open: frozenset({
        QuestStatus.closed,
        QuestStatus.paused,
        QuestStatus.cancelled,
        QuestStatus.revoked,
    }),
    QuestStatus.closed: frozenset({
        QuestStatus.completed,
        QuestStatus.cancelled,
        QuestStatus.open,
    }),
    QuestStatus.paused: frozenset({
        QuestStatus.open,
        QuestStatus.cancelled,
        QuestStatus.revoked,
    }),
    QuestStatus.completed: frozenset(),
    QuestStatus.cancelled: frozenset(),
    QuestStatus.revoked: frozenset(),
})

TERMINAL_STATUSES = frozenset(
    status for status, targets in VALID_TRANSITIONS.items() if not targets
)

REASON_REQUIRED = frozenset({QuestStatus.cancelled, QuestStatus.revoked})

# Soft delete is only permitted from these
DELETABLE_STATUSES = frozenset({QuestStatus.cancelled, QuestStatus.revoked})

STATUS_DISPLAY: MappingProxyType[QuestStatus, str] = MappingProxyType({
    QuestStatus.draft: "Draft",
    QuestStatus.open: "Live",
    QuestStatus.closed: "Signups Closed",
    QuestStatus.completed: "Completed",
    QuestStatus.cancelled: "Cancelled",
    QuestStatus.paused: "Paused",
    QuestStatus.revoked: "Revoked",
})

REVIEW_STATUS_DISPLAY: MappingProxyType[ReviewStatus, str] = MappingProxyType({
    ReviewStatus.pending: "Pending Review",
    ReviewStatus.approved: "Approved",
    ReviewStatus.rejected: "Rejected",
    ReviewStatus.needs_changes: "Needs Changes",
})


def coerce_status(value: str | QuestStatus) -> QuestStatus | None:
    """Return the QuestStatus for a raw value, or None if it is not one."""
    try:
        return QuestStatus(value)
    except ValueError:
        return None


def is_transition_allowed(current: str | QuestStatus, target: str | QuestStatus) -> bool:
    """Check whether a transition from current to target is an edge of the graph."""
    source = coerce_status(current)
    destination = coerce_status(target)
    if source is None or destination is None:
        return False
    return destination in VALID_TRANSITIONS[source]


def get_allowed_transitions(current: str | QuestStatus) -> frozenset[QuestStatus]:
    """Outgoing edges for a status; empty for terminal or unknown statuses."""
    source = coerce_status(current)
    if source is None:
        return frozenset()
    return VALID_TRANSITIONS[source]


def requires_reason(target: str | QuestStatus) -> bool:
    """Whether entering target needs a non-empty reason."""
    return coerce_status(target) in REASON_REQUIRED


def validate_transition(current: str | QuestStatus, target: str | QuestStatus) -> None:
    """Validate a status transition, raising InvalidTransitionError if invalid."""
    if not is_transition_allowed(current, target):
        raise InvalidTransitionError(_label(current), _label(target))


def _label(status: str | QuestStatus) -> str:
    return status.value if isinstance(status, QuestStatus) else str(status)
