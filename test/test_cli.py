#!/usr/bin/env python3
"""Tests for CLI functionality and helper functions."""

import json
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from conversation_flow.cli import BRANCH_POLICY_ENV, format_flat_list, main
from conversation_flow.factories import create_messages


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    monkeypatch.delenv(BRANCH_POLICY_ENV, raising=False)
    return CliRunner()


def _write(tmp_path: Path, data: Any, name: str = "conversation.json") -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestJsonOutput:
    def test_bare_list(self, runner: CliRunner, tmp_path: Path, tool_conversation):
        path = _write(tmp_path, tool_conversation)

        result = runner.invoke(main, [str(path)])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [row["id"] for row in data["flatList"]] == ["u1", "a1", "u2", "a3"]
        assert data["flatList"][1]["role"] == "assistantGroup"

    def test_compact(self, runner: CliRunner, tmp_path: Path, make_message):
        path = _write(tmp_path, [make_message("u1", "user")])

        result = runner.invoke(main, [str(path), "--indent", "0"])

        assert result.exit_code == 0
        assert result.output.count("\n") == 1

    def test_payload_object_with_active_branches(
        self, runner: CliRunner, tmp_path: Path, branched_conversation
    ):
        path = _write(
            tmp_path,
            {"messages": branched_conversation, "activeBranches": {"u1": 0}},
        )

        result = runner.invoke(main, [str(path)])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [row["id"] for row in data["flatList"]] == ["u1", "a1", "u2"]


class TestFlatAndTreeOutput:
    def test_flat_format(self, runner: CliRunner, tmp_path: Path, tool_conversation):
        path = _write(tmp_path, tool_conversation)

        result = runner.invoke(main, [str(path), "--format", "flat"])

        assert result.exit_code == 0, result.output
        lines = result.output.splitlines()
        assert lines[0].startswith("  0  [user] u1")
        assert lines[1].startswith("  1  [assistantGroup] a1")
        assert lines[2].strip().startswith("- [assistant] a1")
        assert "- [tool] t2" in result.output

    def test_tree_format_marks_active_branch(
        self, runner: CliRunner, tmp_path: Path, branched_conversation
    ):
        path = _write(tmp_path, branched_conversation)

        result = runner.invoke(main, [str(path), "-f", "tree"])

        assert result.exit_code == 0, result.output
        assert "branch at u1 (active 2/2)" in result.output
        assert " [0]" in result.output
        assert "*[1]" in result.output

    def test_tree_format_shows_threads(
        self, runner: CliRunner, tmp_path: Path, make_message
    ):
        path = _write(
            tmp_path,
            [
                make_message("u1", "user"),
                make_message("tu1", "user", "u1", threadId="th1"),
            ],
        )

        result = runner.invoke(main, [str(path), "-f", "tree"])

        assert result.exit_code == 0, result.output
        assert "thread th1" in result.output
        assert "  user tu1" in result.output


class TestBranchOptions:
    def test_active_option(self, runner: CliRunner, tmp_path: Path, branched_conversation):
        path = _write(tmp_path, branched_conversation)

        result = runner.invoke(main, [str(path), "-f", "flat", "--active", "u1=0"])

        assert result.exit_code == 0, result.output
        assert "a2" not in result.output
        assert "[assistant] a1" in result.output

    def test_active_option_overrides_file(
        self, runner: CliRunner, tmp_path: Path, branched_conversation
    ):
        path = _write(
            tmp_path,
            {"messages": branched_conversation, "activeBranches": {"u1": 0}},
        )

        result = runner.invoke(main, [str(path), "-f", "flat", "--active", "u1=1"])

        assert result.exit_code == 0, result.output
        assert "[assistant] a2" in result.output

    def test_branch_policy_option(
        self, runner: CliRunner, tmp_path: Path, branched_conversation
    ):
        path = _write(tmp_path, branched_conversation)

        result = runner.invoke(main, [str(path), "-f", "flat", "--branch-policy", "first"])

        assert result.exit_code == 0, result.output
        assert "[assistant] a1" in result.output

    def test_branch_policy_from_environment(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, branched_conversation
    ):
        monkeypatch.setenv(BRANCH_POLICY_ENV, "FIRST")
        path = _write(tmp_path, branched_conversation)

        result = runner.invoke(main, [str(path), "-f", "flat"])

        assert result.exit_code == 0, result.output
        assert "[assistant] a1" in result.output
        assert "a2" not in result.output

    def test_option_beats_environment(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, branched_conversation
    ):
        monkeypatch.setenv(BRANCH_POLICY_ENV, "first")
        path = _write(tmp_path, branched_conversation)

        result = runner.invoke(
            main, [str(path), "-f", "flat", "--branch-policy", "latest"]
        )

        assert result.exit_code == 0, result.output
        assert "[assistant] a2" in result.output

    def test_invalid_environment_policy(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ):
        monkeypatch.setenv(BRANCH_POLICY_ENV, "sideways")
        path = _write(tmp_path, [])

        result = runner.invoke(main, [str(path)])

        assert result.exit_code == 2
        assert "Invalid value" in result.output

    @pytest.mark.parametrize("value", ["u1", "=1", "u1=x"])
    def test_bad_active_option(self, runner: CliRunner, tmp_path: Path, value):
        path = _write(tmp_path, [])

        result = runner.invoke(main, [str(path), "--active", value])

        assert result.exit_code == 2
        assert "Invalid value" in result.output


class TestErrors:
    def test_missing_file(self, runner: CliRunner, tmp_path: Path):
        result = runner.invoke(main, [str(tmp_path / "nope.json")])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_invalid_json(self, runner: CliRunner, tmp_path: Path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        result = runner.invoke(main, [str(path)])

        assert result.exit_code == 1
        assert "Error parsing" in result.output

    def test_invalid_message(self, runner: CliRunner, tmp_path: Path):
        path = _write(tmp_path, [{"id": "u1"}])

        result = runner.invoke(main, [str(path)])

        assert result.exit_code == 1
        assert "Error parsing" in result.output

    def test_scalar_payload(self, runner: CliRunner, tmp_path: Path):
        path = _write(tmp_path, "hello")

        result = runner.invoke(main, [str(path)])

        assert result.exit_code == 1
        assert "Expected a list of messages" in result.output


class TestFormatFlatList:
    def test_long_content_is_truncated(self):
        rows = create_messages([{"id": "u1", "role": "user", "content": "word " * 40}])

        line = format_flat_list(rows)

        assert line.endswith("...")
        assert len(line) < 90
