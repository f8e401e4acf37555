"""Conversation flow engine.

Turns a flat, backend-delivered message list into an O(1) message map, a
semantic display tree for branch/thread navigation and a flat list for
virtualized rendering.
"""

from .models import (
    AssistantGroupNode,
    BranchNode,
    BranchPolicy,
    CompareNode,
    ContextNode,
    GroupMode,
    Message,
    MessageGroupMetadata,
    MessageMetadata,
    MessageNode,
    MessageRole,
    MessageScope,
    ParseResult,
    ToolInvocation,
    ToolResult,
    USAGE_PERFORMANCE_FIELDS,
)
from .engine import parse

__all__ = [
    "parse",
    "AssistantGroupNode",
    "BranchNode",
    "BranchPolicy",
    "CompareNode",
    "ContextNode",
    "GroupMode",
    "Message",
    "MessageGroupMetadata",
    "MessageMetadata",
    "MessageNode",
    "MessageRole",
    "MessageScope",
    "ParseResult",
    "ToolInvocation",
    "ToolResult",
    "USAGE_PERFORMANCE_FIELDS",
]
