"""Factory for creating Message and MessageGroupMetadata instances from raw data.

This module creates typed model instances from the JSON payload delivered by
the message service. Already-typed models are passed through unchanged so that
callers holding models keep referential identity.
"""

from typing import Any, Optional, Sequence, Union, cast

from ..models import Message, MessageGroupMetadata


MessageLike = Union[Message, dict[str, Any]]
MessageGroupLike = Union[MessageGroupMetadata, dict[str, Any]]


def _require_sequence(value: Any, name: str) -> None:
    # A str is a Sequence too, and would iterate into characters
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise TypeError(f"{name} must be a list, got {type(value).__name__}")


def create_message(data: MessageLike) -> Message:
    """Create a Message from a JSON dictionary.

    Args:
        data: Dictionary parsed from JSON, or an existing Message

    Returns:
        The Message model (the same object when ``data`` already is one)

    Raises:
        pydantic.ValidationError: If the data is not message shaped
    """
    if isinstance(data, Message):
        return data
    return Message.model_validate(data)


def create_messages(messages: Sequence[MessageLike]) -> list[Message]:
    """Create Messages from a list of dictionaries and/or Message models."""
    _require_sequence(messages, "messages")
    return [create_message(item) for item in messages]


def create_message_group(data: MessageGroupLike) -> MessageGroupMetadata:
    if isinstance(data, MessageGroupMetadata):
        return data
    return MessageGroupMetadata.model_validate(data)


def create_message_groups(
    message_groups: Optional[Sequence[MessageGroupLike]],
) -> list[MessageGroupMetadata]:
    """Create group metadata models; ``None`` means no groups."""
    if message_groups is None:
        return []
    _require_sequence(message_groups, "message_groups")
    return [create_message_group(item) for item in message_groups]


def load_payload(data: Any) -> tuple[list[Message], list[MessageGroupMetadata], dict[str, int]]:
    """Split a decoded JSON document into messages, groups and branch choices.

    Accepts either a bare list of messages or an object of the form
    ``{"messages": [...], "messageGroups": [...], "activeBranches": {...}}``.
    """
    if isinstance(data, list):
        return create_messages(cast(list[Any], data)), [], {}
    if not isinstance(data, dict):
        raise TypeError(
            f"Expected a list of messages or an object, got {type(data).__name__}"
        )
    payload = cast(dict[str, Any], data)
    messages = create_messages(payload.get("messages", []))
    groups = create_message_groups(payload.get("messageGroups"))
    active_branches = {
        str(parent_id): int(index)
        for parent_id, index in (payload.get("activeBranches") or {}).items()
    }
    return messages, groups, active_branches
