"""Notification text for quest lifecycle and review events."""

from openclique.models import QuestStatus

STATUS_MESSAGES: dict[QuestStatus, str] = {
    QuestStatus.draft: "has been moved to draft",
    QuestStatus.open: "is now live and accepting signups",
    QuestStatus.closed: "is now closed for signups",
    QuestStatus.completed: "has been marked as completed",
    QuestStatus.cancelled: "has been cancelled",
    QuestStatus.paused: "has been temporarily paused",
    QuestStatus.revoked: "has been revoked by an administrator",
}

REVIEW_MESSAGES: dict[str, str] = {
    "approve": "has been approved",
    "reject": "has been rejected",
    "request_changes": "requires changes before approval",
}

REVIEW_NOTIFICATION_TYPES: dict[str, str] = {
    "approve": "quest_approved",
    "reject": "quest_rejected",
    "request_changes": "quest_changes_requested",
}

# Statuses that fan out to participants when notify_users is set
PARTICIPANT_NOTICES: dict[QuestStatus, tuple[str, str]] = {
    QuestStatus.paused: (
        "Quest Paused",
        "The quest has been temporarily paused. {detail}",
    ),
    QuestStatus.cancelled: (
        "Quest Cancelled",
        "Unfortunately, this quest has been cancelled. {detail}",
    ),
    QuestStatus.revoked: (
        "Quest Revoked",
        "This quest has been removed by an administrator. {detail}",
    ),
}

_PARTICIPANT_DEFAULT_DETAIL: dict[QuestStatus, str] = {
    QuestStatus.paused: "We'll update you when it resumes.",
    QuestStatus.cancelled: "We apologize for any inconvenience.",
    QuestStatus.revoked: "We apologize for any inconvenience.",
}


def status_change_title(quest_title: str) -> str:
    return f"Quest Update: {quest_title}"


def status_change_body(quest_title: str, new_status: QuestStatus, reason: str | None = None) -> str:
    """Creator-facing body for a status change, with the reason appended if given."""
    message = STATUS_MESSAGES.get(new_status, f"status changed to {new_status.value}")
    text = f"{message}. Reason: {reason}" if reason else message
    return f'Your quest "{quest_title}" {text}'


def review_title(quest_title: str) -> str:
    return f"Quest Review: {quest_title}"


def review_body(quest_title: str, action: str, admin_notes: str | None = None) -> str:
    """Creator-facing body for a review decision, with admin notes appended if given."""
    message = REVIEW_MESSAGES[action]
    text = f"{message}. Admin notes: {admin_notes}" if admin_notes else message
    return f'Your quest "{quest_title}" {text}'


def participant_notice(
    quest_title: str, new_status: QuestStatus, reason: str | None = None
) -> tuple[str, str] | None:
    """(title, body) for signed-up users, or None if the status is not announced."""
    template = PARTICIPANT_NOTICES.get(new_status)
    if template is None:
        return None
    prefix, body = template
    detail = reason or _PARTICIPANT_DEFAULT_DETAIL[new_status]
    return f"{prefix}: {quest_title}", body.format(detail=detail)
