"""Transformation phase: pattern grouping, display tree and flat list."""

from .patterns import (
    DEFAULT_PATTERNS,
    Grouping,
    Pattern,
    collect_tool_group,
    group_messages,
    match_pattern,
    opens_tool_group,
)
from .transformer import Transformer

__all__ = [
    "DEFAULT_PATTERNS",
    "Grouping",
    "Pattern",
    "Transformer",
    "collect_tool_group",
    "group_messages",
    "match_pattern",
    "opens_tool_group",
]
