from __future__ import annotations

from bithub.domain import PrivateMessage, TopicDraft
from bithub.errors import ValidationError


def normalize_handle(handle: str) -> str:
    """Drop the leading ``@`` from a user handle."""
    return handle.strip().lstrip("@")


def check_content(raw: str, max_length: int) -> None:
    if not raw or not raw.strip():
        raise ValidationError("Content (raw) is required.")
    if len(raw) > max_length:
        raise ValidationError(f"Content exceeds maximum length ({len(raw)} > {max_length}).")


def check_private_message(payload: PrivateMessage, max_length: int) -> list[str]:
    """Validate a PM payload and return its normalized recipients."""
    recipients = [normalize_handle(r) for r in payload.recipients]
    if not recipients or not all(recipients):
        raise ValidationError("Invalid PM payload: at least one recipient is required.")
    if not payload.title.strip():
        raise ValidationError("Invalid PM payload: title is required.")
    check_content(payload.raw, max_length)
    return recipients


def check_topic(draft: TopicDraft, max_length: int) -> int:
    """Validate a new-topic draft and return its category id."""
    if draft.category_id is None or draft.category_id <= 0:
        raise ValidationError("A positive category id is required to create a topic.")
    if not draft.title.strip():
        raise ValidationError("Title is required.")
    check_content(draft.raw, max_length)
    return draft.category_id


def check_positive_id(value: int | None, label: str) -> int:
    if value is None or value <= 0:
        raise ValidationError(f"{label} must be a positive integer.")
    return value


def check_chat_message(channel_id: int, message: str) -> None:
    check_positive_id(channel_id, "Channel id")
    if not message or not message.strip():
        raise ValidationError("Chat message is required.")
