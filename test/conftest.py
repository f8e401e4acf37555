"""Pytest configuration and shared fixtures."""

from typing import Any, Callable, Optional

import pytest

MessageFactory = Callable[..., dict[str, Any]]


def _make_message(
    id: str,
    role: str,
    parent_id: Optional[str] = None,
    content: Optional[str] = None,
    **fields: Any,
) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": id,
        "role": role,
        "content": content if content is not None else f"{role} {id}",
    }
    if parent_id is not None:
        data["parentId"] = parent_id
    data.update(fields)
    return data


@pytest.fixture
def make_message() -> MessageFactory:
    """Return a builder for raw message dicts.

    Usage: make_message("a1", "assistant", "u1", agentId="main", tools=[...])
    """
    return _make_message


@pytest.fixture
def tool_conversation(make_message: MessageFactory) -> list[dict[str, Any]]:
    """User -> assistant with two tool calls -> final answer -> follow-up turn.

    Expected rows: u1, group(a1, t1, t2, a2), u2, a3
    """
    return [
        make_message("u1", "user"),
        make_message(
            "a1",
            "assistant",
            "u1",
            agentId="main",
            tools=[
                {"id": "call_1", "apiName": "search", "result": {"id": "t1"}},
                {"id": "call_2", "apiName": "fetch", "result": {"id": "t2"}},
            ],
            metadata={
                "totalTokens": 100,
                "cost": 0.5,
                "tps": 40,
                "provider": "openai",
                "finishType": "tool_calls",
            },
        ),
        make_message("t1", "tool", "a1", agentId="main"),
        make_message("t2", "tool", "a1", agentId="main"),
        make_message(
            "a2",
            "assistant",
            "t2",
            agentId="main",
            metadata={"totalTokens": 50, "cost": 0.25},
        ),
        make_message("u2", "user", "a2"),
        make_message("a3", "assistant", "u2", agentId="main"),
    ]


@pytest.fixture
def branched_conversation(make_message: MessageFactory) -> list[dict[str, Any]]:
    """u1 answered twice (a1 older, a2 regenerated); each answer has a follow-up."""
    return [
        make_message("u1", "user"),
        make_message("a1", "assistant", "u1"),
        make_message("a2", "assistant", "u1"),
        make_message("u2", "user", "a1"),
        make_message("u3", "user", "a2"),
        make_message("a3", "assistant", "u3"),
    ]
