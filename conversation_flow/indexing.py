"""Indexing phase: O(1) lookup structures over the normalized message list.

All structures are built in single passes over the input. Structural
anomalies (duplicate ids, dangling parents, cycles, unknown groups) are
resolved by policy here and logged at DEBUG, never raised:

- duplicate id: the last occurrence wins
- dangling parentId: the message becomes a root
- cycle with no root: the first unreached message in input order becomes a root
- unknown group reference: ignored
"""

import logging
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

from .models import BranchPolicy, Message, MessageGroupMetadata

logger = logging.getLogger(__name__)


@dataclass
class HelperMaps:
    """Lookup tables shared by the structuring and transformation phases.

    Attributes:
        message_map: id -> Message, in input order (first occurrence position).
        children_of: parent id -> child ids in input order. Includes thread
            entries; use ``thread_entry_ids`` to tell them apart.
        root_ids: Main-flow roots in input order.
        thread_roots: thread id -> ids of the messages that enter that thread.
        thread_entry_ids: Ids of all thread entry messages.
        groups_by_id: group id -> group metadata.
        group_by_parent: parent message id -> group shaping its children.
        active_branches: parent id -> caller-selected branch index.
        branch_policy: Fallback when no branch index applies.
    """

    message_map: dict[str, Message] = field(
        default_factory=lambda: {}  # type: dict[str, Message]
    )
    children_of: dict[str, list[str]] = field(
        default_factory=lambda: {}  # type: dict[str, list[str]]
    )
    root_ids: list[str] = field(
        default_factory=lambda: []  # type: list[str]
    )
    thread_roots: dict[str, list[str]] = field(
        default_factory=lambda: {}  # type: dict[str, list[str]]
    )
    thread_entry_ids: set[str] = field(
        default_factory=lambda: set()  # type: set[str]
    )
    groups_by_id: dict[str, MessageGroupMetadata] = field(
        default_factory=lambda: {}  # type: dict[str, MessageGroupMetadata]
    )
    group_by_parent: dict[str, MessageGroupMetadata] = field(
        default_factory=lambda: {}  # type: dict[str, MessageGroupMetadata]
    )
    active_branches: dict[str, int] = field(
        default_factory=lambda: {}  # type: dict[str, int]
    )
    branch_policy: BranchPolicy = BranchPolicy.LATEST

    def get(self, message_id: str) -> Optional[Message]:
        return self.message_map.get(message_id)

    def children(self, message_id: str) -> list[str]:
        return self.children_of.get(message_id, [])

    def is_thread_entry(self, message_id: str) -> bool:
        return message_id in self.thread_entry_ids


def _build_message_map(messages: Sequence[Message]) -> dict[str, Message]:
    message_map: dict[str, Message] = {}
    for message in messages:
        if message.id in message_map:
            logger.debug("Duplicate message id %s, keeping last occurrence", message.id)
        message_map[message.id] = message
    return message_map


def _is_thread_entry(message: Message, message_map: Mapping[str, Message]) -> bool:
    """A threaded message whose parent is missing or outside its thread."""
    if not message.threadId:
        return False
    parent = message_map.get(message.parentId) if message.parentId else None
    return parent is None or parent.threadId != message.threadId


def _find_unreached(
    message_map: Mapping[str, Message],
    children_of: Mapping[str, list[str]],
    start_ids: Sequence[str],
) -> list[str]:
    """Return ids not reachable from ``start_ids``, in input order.

    Each unreached component contributes its first message (in input order)
    as an extra start, so the result lists exactly the cycle-break roots.
    """
    reached: set[str] = set()

    def reach(start_id: str) -> None:
        stack = [start_id]
        while stack:
            current = stack.pop()
            if current in reached:
                continue
            reached.add(current)
            stack.extend(children_of.get(current, []))

    for start_id in start_ids:
        reach(start_id)

    extra: list[str] = []
    for message_id in message_map:
        if message_id not in reached:
            logger.debug("Cyclic ancestry at %s, treating it as a root", message_id)
            extra.append(message_id)
            reach(message_id)
    return extra


def _index_groups(
    message_groups: Sequence[MessageGroupMetadata],
    message_map: Mapping[str, Message],
) -> tuple[dict[str, MessageGroupMetadata], dict[str, MessageGroupMetadata]]:
    groups_by_id: dict[str, MessageGroupMetadata] = {}
    group_by_parent: dict[str, MessageGroupMetadata] = {}

    for group in message_groups:
        groups_by_id[group.id] = group

    for group in groups_by_id.values():
        parent_id = group.parentMessageId
        if parent_id is None:
            continue
        if parent_id in message_map:
            group_by_parent[parent_id] = group
        else:
            logger.debug(
                "Group %s references unknown parent %s, ignoring", group.id, parent_id
            )

    # Groups without an explicit parent are anchored through their members
    for message in message_map.values():
        if not message.groupId:
            continue
        group = groups_by_id.get(message.groupId)
        if group is None:
            logger.debug(
                "Message %s references unknown group %s, ignoring",
                message.id,
                message.groupId,
            )
            continue
        if (
            group.parentMessageId is None
            and message.parentId in message_map
            and message.parentId not in group_by_parent
        ):
            group_by_parent[message.parentId] = group

    return groups_by_id, group_by_parent


def build_helper_maps(
    messages: Sequence[Message],
    message_groups: Optional[Sequence[MessageGroupMetadata]] = None,
    *,
    active_branches: Optional[Mapping[str, int]] = None,
    branch_policy: BranchPolicy = BranchPolicy.LATEST,
) -> HelperMaps:
    """Build helper maps for O(1) access patterns.

    Args:
        messages: Normalized messages in chronological (input) order
        message_groups: Optional compare/manual grouping metadata
        active_branches: Optional parent id -> selected branch index
        branch_policy: Fallback branch selection policy

    Returns:
        HelperMaps shared by the later phases
    """
    message_map = _build_message_map(messages)

    children_of: dict[str, list[str]] = {}
    thread_roots: dict[str, list[str]] = {}
    thread_entry_ids: set[str] = set()
    root_set: set[str] = set()

    for message in message_map.values():
        parent_id = message.parentId
        has_parent = parent_id is not None and parent_id in message_map
        if has_parent:
            children_of.setdefault(parent_id, []).append(message.id)  # type: ignore[arg-type]
        elif parent_id is not None:
            logger.debug(
                "Message %s has unknown parent %s, treating it as a root",
                message.id,
                parent_id,
            )

        if _is_thread_entry(message, message_map):
            thread_entry_ids.add(message.id)
        elif not has_parent:
            root_set.add(message.id)

    start_ids = [mid for mid in message_map if mid in root_set or mid in thread_entry_ids]
    for message_id in _find_unreached(message_map, children_of, start_ids):
        message = message_map[message_id]
        if message.threadId:
            thread_entry_ids.add(message_id)
        else:
            root_set.add(message_id)

    for message_id in message_map:
        if message_id in thread_entry_ids:
            thread_id = message_map[message_id].threadId
            thread_roots.setdefault(thread_id, []).append(message_id)  # type: ignore[arg-type]

    groups_by_id, group_by_parent = _index_groups(message_groups or [], message_map)

    return HelperMaps(
        message_map=message_map,
        children_of=children_of,
        root_ids=[mid for mid in message_map if mid in root_set],
        thread_roots=thread_roots,
        thread_entry_ids=thread_entry_ids,
        groups_by_id=groups_by_id,
        group_by_parent=group_by_parent,
        active_branches=dict(active_branches or {}),
        branch_policy=branch_policy,
    )
