"""Pydantic models for conversation flow input and output structures.

Input models mirror the JSON payload delivered by the message service
(camelCase field names). Output models describe the display tree and the
flat list handed to the rendering layer.
"""

from enum import Enum
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    """Message role classification.

    Using str as base class keeps plain string comparisons working.

    Input roles (from the message service):
    - SYSTEM, USER, ASSISTANT, TOOL

    Display roles (derived during parsing):
    - SUPERVISOR, ASSISTANT_GROUP
    """

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"

    SUPERVISOR = "supervisor"
    ASSISTANT_GROUP = "assistantGroup"


class MessageScope(str, Enum):
    """Known values of ``metadata.scope``."""

    MAIN = "main"
    SUB_AGENT = "sub_agent"
    GROUP = "group"


class BranchPolicy(str, Enum):
    """Which child is active at a branch point when nothing selects one."""

    LATEST = "latest"
    FIRST = "first"


class GroupMode(str, Enum):
    COMPARE = "compare"
    MANUAL = "manual"


# Usage and performance counters kept on assistant messages that used tools.
USAGE_PERFORMANCE_FIELDS: frozenset[str] = frozenset(
    {
        "acceptedPredictionTokens",
        "cost",
        "duration",
        "inputAudioTokens",
        "inputCacheMissTokens",
        "inputCachedTokens",
        "inputCitationTokens",
        "inputImageTokens",
        "inputTextTokens",
        "inputWriteCacheTokens",
        "latency",
        "outputAudioTokens",
        "outputImageTokens",
        "outputReasoningTokens",
        "outputTextTokens",
        "rejectedPredictionTokens",
        "totalInputTokens",
        "totalOutputTokens",
        "totalTokens",
        "tps",
        "ttft",
    }
)

# Counters that can be summed across the members of an assistant group.
# Rates and per-request timings (tps, ttft, latency) are not additive.
ADDITIVE_USAGE_FIELDS: frozenset[str] = USAGE_PERFORMANCE_FIELDS - {
    "latency",
    "tps",
    "ttft",
}


# =============================================================================
# Input Models
# =============================================================================


class MessageMetadata(BaseModel):
    """Open metadata bag attached to a message.

    The keys the engine reads are declared but left untyped, since history
    written by older clients may hold any JSON value there. The properties
    below interpret them; a value of the wrong shape reads as absent.
    Everything else (usage counters, provider specific flags) is kept as extra
    fields and passed through.
    """

    model_config = ConfigDict(extra="allow")

    scope: Any = None
    subAgentId: Any = None
    isSupervisor: Any = None
    activeBranchIndex: Any = None

    @property
    def sub_agent_id(self) -> Optional[str]:
        value = self.subAgentId
        return value if isinstance(value, str) and value else None

    @property
    def is_supervisor(self) -> bool:
        return bool(self.isSupervisor)

    @property
    def active_branch_index(self) -> Optional[int]:
        value = self.activeBranchIndex
        # bool is an int subclass
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return None

    def filtered(self, allowed: frozenset[str]) -> dict[str, Any]:
        """Return only the keys in ``allowed`` that carry a value."""
        return {
            key: value
            for key, value in self.model_dump(exclude_none=True).items()
            if key in allowed
        }


class ToolResult(BaseModel):
    """Reference from a tool invocation to the message holding its result."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    content: Optional[str] = None
    error: Optional[Any] = None


class ToolInvocation(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    apiName: Optional[str] = None
    identifier: Optional[str] = None
    arguments: Optional[str] = None
    type: Optional[str] = None
    result: Optional[ToolResult] = None

    @property
    def result_id(self) -> Optional[str]:
        return self.result.id if self.result is not None else None


class Message(BaseModel):
    """A single chat message as delivered by the message service.

    The same envelope is reused for composite display rows: those carry
    ``role="assistantGroup"`` (or ``"supervisor"``) and a ``children`` list.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    role: MessageRole
    content: Optional[str] = None
    parentId: Optional[str] = None
    agentId: Optional[str] = None
    threadId: Optional[str] = None
    groupId: Optional[str] = None
    tools: Optional[list[ToolInvocation]] = None
    metadata: Optional[MessageMetadata] = None
    children: Optional[list["Message"]] = None

    @property
    def has_tools(self) -> bool:
        return bool(self.tools)

    @property
    def is_supervisor(self) -> bool:
        return self.metadata is not None and self.metadata.is_supervisor


class MessageGroupMetadata(BaseModel):
    """Grouping hints for compare layouts and manually ordered siblings."""

    model_config = ConfigDict(extra="allow")

    id: str
    mode: GroupMode = GroupMode.MANUAL
    parentMessageId: Optional[str] = None
    activeMessageId: Optional[str] = None
    messageIds: Optional[list[str]] = None
    title: Optional[str] = None


# =============================================================================
# Display Tree Models
# =============================================================================


class MessageNode(BaseModel):
    type: Literal["message"] = "message"
    id: str
    role: MessageRole


class AssistantGroupNode(BaseModel):
    """One logical assistant turn spanning several raw messages.

    ``children`` holds the member messages in chronological order: text
    block, tool results, next text block, and so on.
    """

    type: Literal["assistantGroup"] = "assistantGroup"
    id: str
    role: MessageRole = MessageRole.ASSISTANT_GROUP
    agentId: Optional[str] = None
    children: list[MessageNode]


class BranchNode(BaseModel):
    """Alternate continuations (regenerate/edit) of the same parent message."""

    type: Literal["branch"] = "branch"
    id: str
    parentMessageId: str
    activeBranchIndex: int
    branches: list[list["ContextNode"]]


class CompareNode(BaseModel):
    """Side by side outputs of a compare group."""

    type: Literal["compare"] = "compare"
    id: str
    messageId: str
    groupId: Optional[str] = None
    activeColumnId: Optional[str] = None
    columns: list[list["ContextNode"]]


ContextNode = Union[MessageNode, AssistantGroupNode, BranchNode, CompareNode]

BranchNode.model_rebuild()
CompareNode.model_rebuild()


class ParseResult(BaseModel):
    """Output of :func:`conversation_flow.parse`."""

    messageMap: dict[str, Message]
    displayTree: list[ContextNode]
    flatList: list[Message]
    threads: dict[str, list[ContextNode]] = Field(default_factory=dict)

    def to_json_dict(self) -> dict[str, Any]:
        """Plain JSON-safe representation with unset optional fields dropped."""
        return self.model_dump(mode="json", exclude_none=True)
