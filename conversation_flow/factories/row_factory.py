"""Factory for composite flat-list rows.

A composite row reuses the Message envelope: it takes its identity from the
message that opens the group and carries the member messages as ``children``.
"""

from typing import Any, Optional, Sequence

from ..models import ADDITIVE_USAGE_FIELDS, Message, MessageMetadata, MessageRole


def aggregate_usage(members: Sequence[Message]) -> Optional[MessageMetadata]:
    """Sum the additive usage counters of the group members.

    Non-numeric values are skipped. Returns None when no member reports usage.
    """
    totals: dict[str, Any] = {}
    for member in members:
        if member.metadata is None:
            continue
        for key, value in member.metadata.filtered(ADDITIVE_USAGE_FIELDS).items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            totals[key] = totals.get(key, 0) + value
    if not totals:
        return None
    return MessageMetadata(**totals)


def create_group_row(
    members: Sequence[Message],
    role: MessageRole = MessageRole.ASSISTANT_GROUP,
) -> Message:
    """Create an assistant group row from its member messages.

    Args:
        members: Member messages in chronological order, opening message first.
        role: Role of the row (assistantGroup, or supervisor once relabeled).

    Returns:
        A new Message whose ``children`` are the members.
    """
    first = members[0]
    return Message(
        id=first.id,
        role=role,
        content=first.content,
        parentId=first.parentId,
        agentId=first.agentId,
        threadId=first.threadId,
        groupId=first.groupId,
        metadata=aggregate_usage(members),
        children=list(members),
    )
