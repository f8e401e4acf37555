#!/usr/bin/env python3
"""CLI interface for inspecting conversation flow parse results."""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

import click
from pydantic import ValidationError

from .engine import parse
from .factories import load_payload
from .models import (
    AssistantGroupNode,
    BranchNode,
    BranchPolicy,
    CompareNode,
    ContextNode,
    Message,
    MessageNode,
    ParseResult,
)

PREVIEW_WIDTH = 60

BRANCH_POLICY_ENV = "CONVERSATION_FLOW_BRANCH_POLICY"


def _parse_active_option(
    ctx: click.Context,  # noqa: ARG001
    param: click.Parameter,  # noqa: ARG001
    values: tuple[str, ...],
) -> dict[str, int]:
    """Turn repeated KEY=INDEX options into a dict."""
    active: dict[str, int] = {}
    for value in values:
        key, sep, index = value.rpartition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=INDEX, got {value!r}")
        try:
            active[key] = int(index)
        except ValueError:
            raise click.BadParameter(
                f"branch index must be an integer, got {index!r}"
            ) from None
    return active


def _preview(content: Optional[str]) -> str:
    if not content:
        return ""
    text = " ".join(content.split())
    if len(text) > PREVIEW_WIDTH:
        text = text[: PREVIEW_WIDTH - 3] + "..."
    return text


def format_flat_list(rows: list[Message]) -> str:
    """One line per flat-list row, composite members indented below."""
    lines: list[str] = []
    for index, row in enumerate(rows):
        lines.append(f"{index:>3}  [{row.role.value}] {row.id}  {_preview(row.content)}")
        for child in row.children or []:
            lines.append(f"       - [{child.role.value}] {child.id}  {_preview(child.content)}")
    return "\n".join(lines)


def _format_nodes(nodes: list[ContextNode], depth: int, lines: list[str]) -> None:
    pad = "  " * depth
    for node in nodes:
        if isinstance(node, MessageNode):
            lines.append(f"{pad}{node.role.value} {node.id}")
        elif isinstance(node, AssistantGroupNode):
            members = ", ".join(child.id for child in node.children)
            lines.append(f"{pad}{node.role.value} {node.id} ({members})")
        elif isinstance(node, BranchNode):
            lines.append(
                f"{pad}branch at {node.parentMessageId} "
                f"(active {node.activeBranchIndex + 1}/{len(node.branches)})"
            )
            for index, branch in enumerate(node.branches):
                marker = "*" if index == node.activeBranchIndex else " "
                lines.append(f"{pad}  {marker}[{index}]")
                _format_nodes(branch, depth + 2, lines)
        elif isinstance(node, CompareNode):
            lines.append(f"{pad}compare at {node.messageId} (group {node.groupId})")
            for column in node.columns:
                column_id = column[0].id if column else ""
                marker = "*" if column_id == node.activeColumnId else " "
                lines.append(f"{pad}  {marker}[{column_id}]")
                _format_nodes(column, depth + 2, lines)


def format_display_tree(result: ParseResult) -> str:
    """Indented outline of the display tree and any reply threads."""
    lines: list[str] = []
    _format_nodes(result.displayTree, 0, lines)
    for thread_id, nodes in result.threads.items():
        lines.append(f"thread {thread_id}")
        _format_nodes(nodes, 1, lines)
    return "\n".join(lines)


def render_result(result: ParseResult, output_format: str, indent: int) -> str:
    if output_format == "flat":
        return format_flat_list(result.flatList)
    if output_format == "tree":
        return format_display_tree(result)
    data: dict[str, Any] = result.to_json_dict()
    return json.dumps(data, indent=indent or None, ensure_ascii=False)


@click.command()
@click.argument("input_path", type=click.Path(path_type=Path))
@click.option(
    "-f",
    "--format",
    "output_format",
    type=click.Choice(["json", "flat", "tree"]),
    default="json",
    help="Output format (default: json). 'flat' lists render rows, 'tree' outlines the display tree.",
)
@click.option(
    "--active",
    "active_branches",
    multiple=True,
    metavar="KEY=INDEX",
    callback=_parse_active_option,
    help="Select the active branch at KEY, a parent id or PARENT@AGENT for an agent lane (repeatable). Overrides activeBranches in the input file.",
)
@click.option(
    "--branch-policy",
    type=click.Choice([policy.value for policy in BranchPolicy], case_sensitive=False),
    envvar=BRANCH_POLICY_ENV,
    default=None,
    help=f"Branch shown when nothing selects one (default: ${BRANCH_POLICY_ENV} or latest).",
)
@click.option(
    "--indent",
    type=int,
    default=2,
    help="JSON indentation (default: 2, 0 for compact output).",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Show debug logging and full traceback on errors.",
)
def main(
    input_path: Path,
    output_format: str,
    active_branches: dict[str, int],
    branch_policy: Optional[str],
    indent: int,
    debug: bool,
) -> None:
    """Parse a conversation JSON file and print the result.

    INPUT_PATH: JSON file holding a list of messages, or an object with "messages" and optional "messageGroups" and "activeBranches".
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    try:
        data = json.loads(input_path.read_text(encoding="utf-8"))
        messages, groups, file_branches = load_payload(data)
        result = parse(
            messages,
            groups,
            active_branches={**file_branches, **active_branches},
            branch_policy=branch_policy,
        )
        click.echo(render_result(result, output_format, indent))

    except FileNotFoundError as e:
        click.echo(f"Error: {e}", err=True)
        if debug:
            import traceback

            traceback.print_exc()
        sys.exit(1)
    except (json.JSONDecodeError, ValidationError, TypeError, ValueError) as e:
        click.echo(f"Error parsing {input_path}: {e}", err=True)
        if debug:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
