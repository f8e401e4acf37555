"""Pre-indexing normalization of scoped messages.

Grouping decisions compare ``agentId`` of adjacent messages. Messages produced
by a sub-agent call carry the calling agent's id, so two different sub-agents
answering under the same parent would look like one agent. Rewriting their
``agentId`` to ``metadata.subAgentId`` before indexing keeps them apart.

Only ``scope == "sub_agent"`` is rewritten. Group/supervisor orchestration is
handled at serialization by a role relabel instead.
"""

from typing import Sequence

from .models import Message, MessageScope


def is_sub_agent_message(message: Message) -> bool:
    metadata = message.metadata
    return (
        metadata is not None
        and metadata.scope == MessageScope.SUB_AGENT
        and metadata.sub_agent_id is not None
    )


def normalize_message(message: Message) -> Message:
    """Return ``message`` with ``agentId`` set to its sub-agent id, if scoped.

    Messages that need no rewrite are returned as the same object.
    """
    if not is_sub_agent_message(message) or message.metadata is None:
        return message
    sub_agent_id = message.metadata.sub_agent_id
    if message.agentId == sub_agent_id:
        return message
    return message.model_copy(update={"agentId": sub_agent_id})


def normalize_messages(messages: Sequence[Message]) -> list[Message]:
    """Normalize all messages, preserving length and order."""
    return [normalize_message(message) for message in messages]
