"""Serialization phase: hand-off copies for the rendering layer.

Two relabelings are applied to the message map and to the flat list:

- assistant messages flagged ``metadata.isSupervisor`` are shown as
  ``role="supervisor"`` (the stored role stays ``assistant`` so the message
  can be replayed to a model API unchanged)
- assistant messages that called tools keep only usage/performance counters
  in their metadata; nothing left means no metadata at all

Messages needing neither are passed through as the same object, so callers can
use identity checks to skip re-rendering unchanged rows.
"""

from typing import Any, Mapping, Sequence

from .models import USAGE_PERFORMANCE_FIELDS, Message, MessageMetadata, MessageRole


def display_role(message: Message) -> MessageRole:
    """Role the rendering layer should see for ``message``."""
    if message.role == MessageRole.ASSISTANT and message.is_supervisor:
        return MessageRole.SUPERVISOR
    return message.role


def minimize_metadata(message: Message) -> MessageMetadata | None:
    """Return the allow-listed part of the metadata, or None if empty."""
    if message.metadata is None:
        return None
    kept = message.metadata.filtered(USAGE_PERFORMANCE_FIELDS)
    return MessageMetadata(**kept) if kept else None


def serialize_message(message: Message) -> Message:
    """Apply supervisor relabeling and metadata minimization to one message."""
    update: dict[str, Any] = {}

    role = display_role(message)
    if role != message.role:
        update["role"] = role

    # Checked on the stored role so supervisor turns with tools are minimized too
    if (
        message.role == MessageRole.ASSISTANT
        and message.has_tools
        and message.metadata is not None
    ):
        update["metadata"] = minimize_metadata(message)

    if not update:
        return message
    return message.model_copy(update=update)


def serialize_message_map(message_map: Mapping[str, Message]) -> dict[str, Message]:
    """Build the output message map; never mutates ``message_map``."""
    return {
        message_id: serialize_message(message)
        for message_id, message in message_map.items()
    }


def _serialize_row(row: Message, serialized_map: Mapping[str, Message]) -> Message:
    if row.role != MessageRole.ASSISTANT_GROUP or not row.children:
        serialized = serialized_map.get(row.id)
        return serialized if serialized is not None else serialize_message(row)

    opener = row.children[0]
    children = [
        serialized_map.get(child.id) or serialize_message(child)
        for child in row.children
    ]
    update: dict[str, Any] = {"children": children}
    if display_role(opener) == MessageRole.SUPERVISOR:
        update["role"] = MessageRole.SUPERVISOR
    return row.model_copy(update=update)


def serialize_flat_list(
    flat_list: Sequence[Message], serialized_map: Mapping[str, Message]
) -> list[Message]:
    """Relabel flat-list rows consistently with the serialized message map.

    Plain rows reuse the serialized map entry for the same id. Composite rows
    get serialized children, and become ``supervisor`` rows when their
    opening message is supervisor-authored.
    """
    return [_serialize_row(row, serialized_map) for row in flat_list]
