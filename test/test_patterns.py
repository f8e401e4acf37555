#!/usr/bin/env python3
"""Tests for priority-ordered grouping patterns."""

import pytest

from conversation_flow.factories import create_messages
from conversation_flow.transformation import (
    DEFAULT_PATTERNS,
    Pattern,
    group_messages,
    match_pattern,
)


def _groups(messages):
    return [
        (grouping.pattern, [member.id for member in grouping.members])
        for grouping in group_messages(create_messages(messages))
    ]


class TestPatternOrder:
    def test_most_specific_first(self):
        assert [p.name for p in DEFAULT_PATTERNS] == [
            "assistant_tool_group",
            "user",
            "single",
        ]

    def test_supervisor_with_tools_groups(self, make_message):
        # Tool grouping wins; supervisor flag does not block it
        messages = create_messages(
            [
                make_message(
                    "s1",
                    "assistant",
                    tools=[{"id": "c1"}],
                    metadata={"isSupervisor": True},
                )
            ]
        )

        assert match_pattern(messages, 0).name == "assistant_tool_group"

    def test_custom_pattern_list(self, make_message):
        never = Pattern(name="never", matches=lambda m: False, collect=lambda ms, i: i + 1)
        messages = create_messages([make_message("u1", "user")])

        with pytest.raises(ValueError, match="No pattern matches"):
            match_pattern(messages, 0, [never])


class TestGroupMessages:
    def test_tool_group_with_closing_text(self, tool_conversation):
        assert _groups(tool_conversation) == [
            ("user", ["u1"]),
            ("assistant_tool_group", ["a1", "t1", "t2", "a2"]),
            ("user", ["u2"]),
            ("single", ["a3"]),
        ]

    def test_multi_step_tool_group(self, make_message):
        messages = [
            make_message("a1", "assistant", tools=[{"id": "c1"}]),
            make_message("t1", "tool", "a1"),
            make_message("a2", "assistant", "t1", tools=[{"id": "c2"}]),
            make_message("t2", "tool", "a2"),
            make_message("a3", "assistant", "t2"),
            make_message("a4", "assistant", "a3"),
        ]

        assert _groups(messages) == [
            ("assistant_tool_group", ["a1", "t1", "a2", "t2", "a3"]),
            ("single", ["a4"]),
        ]

    def test_pending_tool_call_is_still_a_group(self, make_message):
        messages = [make_message("a1", "assistant", tools=[{"id": "c1"}])]

        assert _groups(messages) == [("assistant_tool_group", ["a1"])]

    def test_agent_change_starts_new_node(self, make_message):
        messages = [
            make_message("a1", "assistant", agentId="main", tools=[{"id": "c1"}]),
            make_message("t1", "tool", "a1", agentId="agentB"),
            make_message("a2", "assistant", "t1", agentId="main"),
        ]

        assert _groups(messages) == [
            ("assistant_tool_group", ["a1"]),
            ("single", ["t1"]),
            ("single", ["a2"]),
        ]

    def test_tool_without_agent_joins_caller(self, make_message):
        messages = [
            make_message("a1", "assistant", agentId="main", tools=[{"id": "c1"}]),
            make_message("t1", "tool", "a1"),
            make_message("a2", "assistant", "t1", agentId="main"),
        ]

        assert _groups(messages) == [("assistant_tool_group", ["a1", "t1", "a2"])]

    def test_assistant_without_agent_still_ends_group(self, make_message):
        messages = [
            make_message("a1", "assistant", agentId="main", tools=[{"id": "c1"}]),
            make_message("t1", "tool", "a1", agentId="main"),
            make_message("a2", "assistant", "t1"),
        ]

        assert _groups(messages) == [
            ("assistant_tool_group", ["a1", "t1"]),
            ("single", ["a2"]),
        ]

    def test_user_ends_group(self, make_message):
        messages = [
            make_message("a1", "assistant", tools=[{"id": "c1"}]),
            make_message("t1", "tool", "a1"),
            make_message("u1", "user", "t1"),
        ]

        assert _groups(messages) == [
            ("assistant_tool_group", ["a1", "t1"]),
            ("user", ["u1"]),
        ]

    def test_plain_assistant_and_system_are_single(self, make_message):
        messages = [
            make_message("s1", "system"),
            make_message("a1", "assistant", "s1"),
            make_message("t1", "tool", "a1"),
        ]

        assert _groups(messages) == [
            ("single", ["s1"]),
            ("single", ["a1"]),
            ("single", ["t1"]),
        ]

    def test_empty_run(self):
        assert group_messages([]) == []
