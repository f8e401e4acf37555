"""Priority-ordered structural patterns for grouping raw messages.

Each pattern pairs a predicate on the message at the current position with a
collector that decides how many consecutive messages belong to the node the
pattern builds. Patterns are tried top to bottom and the first match wins, so
the list is ordered from most to least specific.

Supervisor flags are not a pattern: a supervisor-authored assistant turn
groups exactly like any other assistant turn and is relabeled later.
"""

from dataclasses import dataclass
from typing import Callable, Sequence

from ..models import Message, MessageRole


@dataclass(frozen=True)
class Pattern:
    """A predicate + collector pair.

    Attributes:
        name: Pattern identifier, recorded on the resulting Grouping.
        matches: Predicate on the message opening the node.
        collect: Given the run and the start index, returns the end index
            (exclusive) of the messages that form the node.
        composite: True if the node aggregates several messages.
    """

    name: str
    matches: Callable[[Message], bool]
    collect: Callable[[Sequence[Message], int], int]
    composite: bool = False


@dataclass
class Grouping:
    """Messages selected by one pattern match."""

    pattern: str
    members: list[Message]
    composite: bool

    @property
    def opener(self) -> Message:
        return self.members[0]


def _single(messages: Sequence[Message], start: int) -> int:  # noqa: ARG001
    return start + 1


def opens_tool_group(message: Message) -> bool:
    return message.role == MessageRole.ASSISTANT and message.has_tools


def collect_tool_group(messages: Sequence[Message], start: int) -> int:
    """Extend an assistant turn over its tool results and follow-up blocks.

    The group continues over tool messages and assistant messages of the same
    agent. An assistant message without tool calls is the closing text block:
    it is included and ends the group. Any other role, or a different
    ``agentId``, ends the group before that message. A tool message without an
    ``agentId`` belongs to the agent that called it.
    """
    agent_id = messages[start].agentId
    end = start + 1
    while end < len(messages):
        message = messages[end]
        inherits_agent = message.role == MessageRole.TOOL and message.agentId is None
        if message.agentId != agent_id and not inherits_agent:
            break
        if message.role == MessageRole.TOOL:
            end += 1
        elif message.role == MessageRole.ASSISTANT:
            end += 1
            if not message.has_tools:
                break
        else:
            break
    return end


def is_user(message: Message) -> bool:
    return message.role == MessageRole.USER


DEFAULT_PATTERNS: tuple[Pattern, ...] = (
    Pattern(
        name="assistant_tool_group",
        matches=opens_tool_group,
        collect=collect_tool_group,
        composite=True,
    ),
    Pattern(name="user", matches=is_user, collect=_single),
    Pattern(name="single", matches=lambda message: True, collect=_single),
)


def match_pattern(
    messages: Sequence[Message],
    start: int,
    patterns: Sequence[Pattern] = DEFAULT_PATTERNS,
) -> Pattern:
    """Return the first pattern matching ``messages[start]``."""
    for pattern in patterns:
        if pattern.matches(messages[start]):
            return pattern
    raise ValueError(f"No pattern matches message {messages[start].id}")


def group_messages(
    messages: Sequence[Message],
    patterns: Sequence[Pattern] = DEFAULT_PATTERNS,
) -> list[Grouping]:
    """Split a branch-free run of messages into display groupings.

    Args:
        messages: Consecutive messages on the parent chain, in order
        patterns: Priority-ordered patterns, most specific first

    Returns:
        Groupings covering every message exactly once, in order
    """
    groupings: list[Grouping] = []
    index = 0
    while index < len(messages):
        pattern = match_pattern(messages, index, patterns)
        # Always consume at least the opening message
        end = max(pattern.collect(messages, index), index + 1)
        groupings.append(
            Grouping(
                pattern=pattern.name,
                members=list(messages[index:end]),
                composite=pattern.composite,
            )
        )
        index = end
    return groupings
