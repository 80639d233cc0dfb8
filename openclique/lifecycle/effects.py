"""Typed field effects and side effects produced by the lifecycle planner.

Each field effect knows which quest columns it writes. A ``QuestUpdate``
merges its effects, in order, into the single payload of one UPDATE
statement, so either every column changes or none does.

Side effects (audit, ops events, notifications) are plain records executed
after the primary write by ``openclique.lifecycle.dispatcher``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union
from uuid import UUID

from openclique.models import Quest, QuestStatus, ReviewStatus


# ---------------------------------------------------------------------------
# Field effects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SetStatus:
    status: QuestStatus
    previous_status: QuestStatus

    def columns(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "previous_status": self.previous_status.value,
        }


@dataclass(frozen=True)
class EnterPaused:
    at: datetime
    reason: str | None

    def columns(self) -> dict[str, Any]:
        return {"paused_at": self.at, "paused_reason": self.reason}


@dataclass(frozen=True)
class LeavePaused:
    def columns(self) -> dict[str, Any]:
        return {"paused_at": None, "paused_reason": None}


@dataclass(frozen=True)
class EnterRevoked:
    at: datetime
    reason: str

    def columns(self) -> dict[str, Any]:
        return {"revoked_at": self.at, "revoked_reason": self.reason}


@dataclass(frozen=True)
class EnterCancelled:
    at: datetime
    reason: str

    def columns(self) -> dict[str, Any]:
        return {"cancelled_at": self.at, "cancelled_reason": self.reason}


@dataclass(frozen=True)
class RecordReview:
    """Review decision; the revision counter is bumped in SQL, not from the read."""

    review_status: ReviewStatus
    admin_notes: str | None

    def columns(self) -> dict[str, Any]:
        return {
            "review_status": self.review_status.value,
            "admin_notes": self.admin_notes,
            "revision_count": Quest.revision_count + 1,
        }


@dataclass(frozen=True)
class Publish:
    """Review escape hatch: put the quest live without consulting the transition table."""

    at: datetime

    def columns(self) -> dict[str, Any]:
        return {"status": QuestStatus.open.value, "published_at": self.at}


@dataclass(frozen=True)
class MarkDeleted:
    at: datetime

    def columns(self) -> dict[str, Any]:
        return {"deleted_at": self.at}


FieldEffect = Union[
    SetStatus,
    EnterPaused,
    LeavePaused,
    EnterRevoked,
    EnterCancelled,
    RecordReview,
    Publish,
    MarkDeleted,
]


@dataclass(frozen=True)
class QuestUpdate:
    effects: tuple[FieldEffect, ...]

    def values(self) -> dict[str, Any]:
        """Merge effects into one column payload; later effects win on overlap."""
        merged: dict[str, Any] = {}
        for effect in self.effects:
            merged.update(effect.columns())
        return merged

    def __bool__(self) -> bool:
        return bool(self.effects)


# ---------------------------------------------------------------------------
# Side effects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditRecord:
    action: str
    target_table: str
    target_id: str
    old_values: dict[str, Any]
    new_values: dict[str, Any]
    actor_id: UUID | None = None


@dataclass(frozen=True)
class OpsEventRecord:
    event_type: str
    entity_refs: dict[str, Any]
    before_state: dict[str, Any]
    after_state: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NotificationRequest:
    user_id: UUID
    notification_type: str
    title: str
    body: str
    link: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


SideEffect = Union[AuditRecord, OpsEventRecord, NotificationRequest]


@dataclass(frozen=True)
class LifecyclePlan:
    """Everything one operation will do: one update, then best-effort side effects.

    ``expected_status`` is the status the plan was computed from; it guards
    the UPDATE when version-checked updates are enabled. ``target_status`` is
    the validated destination of a status transition.
    """

    update: QuestUpdate
    side_effects: tuple[SideEffect, ...] = ()
    expected_status: QuestStatus | None = None
    target_status: QuestStatus | None = None
