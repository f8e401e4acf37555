"""Factory modules for creating typed objects from raw data."""

from .message_factory import (
    # Input coercion
    MessageGroupLike,
    MessageLike,
    create_message,
    create_message_group,
    create_message_groups,
    create_messages,
    load_payload,
)
from .row_factory import (
    # Composite rows
    aggregate_usage,
    create_group_row,
)

__all__ = [
    # Input coercion
    "MessageLike",
    "MessageGroupLike",
    "create_message",
    "create_messages",
    "create_message_group",
    "create_message_groups",
    "load_payload",
    # Composite rows
    "aggregate_usage",
    "create_group_row",
]
