"""Custom exceptions for the quest lifecycle engine.

Validation failures are raised inside the engine and converted into a
``LifecycleResult`` at the boundary of each public operation, so callers
only ever see one failure shape.
"""

import enum


class LifecycleErrorCode(str, enum.Enum):
    not_found = "not_found"
    invalid_transition = "invalid_transition"
    missing_reason = "missing_reason"
    invalid_state = "invalid_state"
    has_active_references = "has_active_references"
    persistence_failure = "persistence_failure"
    concurrent_modification = "concurrent_modification"
    invalid_action = "invalid_action"


class QuestLifecycleError(Exception):
    """Base exception for quest lifecycle errors."""

    def __init__(
        self,
        message: str,
        error_type: LifecycleErrorCode = LifecycleErrorCode.invalid_state,
    ):
        self.message = message
        self.error_type = error_type
        super().__init__(message)


class QuestNotFoundError(QuestLifecycleError):
    """Raised when a quest id does not resolve to a live row."""

    def __init__(self, quest_id: str):
        super().__init__(f"Quest '{quest_id}' not found", LifecycleErrorCode.not_found)
        self.quest_id = quest_id


class InvalidTransitionError(QuestLifecycleError):
    """Raised when a status change is not an edge of the transition graph."""

    def __init__(self, current_status: str, target_status: str):
        super().__init__(
            f"Cannot transition from {current_status} to {target_status}",
            LifecycleErrorCode.invalid_transition,
        )
        self.current_status = current_status
        self.target_status = target_status


class MissingReasonError(QuestLifecycleError):
    """Raised when a reason-required status is requested without a reason."""

    def __init__(self, target_status: str):
        super().__init__(
            f"Reason is required when setting status to {target_status}",
            LifecycleErrorCode.missing_reason,
        )
        self.target_status = target_status


class InvalidQuestStateError(QuestLifecycleError):
    """Raised when an operation's status precondition does not hold."""

    def __init__(self, message: str):
        super().__init__(message, LifecycleErrorCode.invalid_state)


class ActiveReferencesError(QuestLifecycleError):
    """Raised when a quest still has non-dropped signups."""

    def __init__(self, active_count: int):
        super().__init__(
            f"Cannot delete quest with active signups ({active_count})",
            LifecycleErrorCode.has_active_references,
        )
        self.active_count = active_count


class PersistenceError(QuestLifecycleError):
    """Raised when the store rejects the primary write."""

    def __init__(self, message: str):
        super().__init__(message, LifecycleErrorCode.persistence_failure)


class ConcurrentModificationError(QuestLifecycleError):
    """Raised when a version-checked update matched no row."""

    def __init__(self, quest_id: str, expected_status: str):
        super().__init__(
            f"Quest '{quest_id}' is no longer {expected_status}; re-fetch and retry",
            LifecycleErrorCode.concurrent_modification,
        )
        self.quest_id = quest_id
        self.expected_status = expected_status


class InvalidReviewActionError(QuestLifecycleError):
    """Raised for review actions outside approve/reject/request_changes."""

    def __init__(self, action: str):
        super().__init__(f"Invalid review action '{action}'", LifecycleErrorCode.invalid_action)
        self.action = action
