"""Transformation phase: semantic display nodes and the flat render list.

The tree pass turns every segment of the IdTree into display nodes, keeping
inactive branches and compare columns. The flatten pass walks only the main
flow straight from the helper maps, for the virtualized list. Both passes cut
segments with the same FlowWalker and group them with the same patterns, so a
depth-first walk of the display tree along active branches yields exactly the
messages of the flat list, in the same order.
"""

from typing import Sequence, Union

from ..factories import create_group_row
from ..indexing import HelperMaps
from ..models import (
    AssistantGroupNode,
    BranchNode,
    CompareNode,
    ContextNode,
    Message,
    MessageNode,
    MessageRole,
)
from ..serialization import display_role
from ..structuring import BranchKind, FlowWalker, IdBranch, IdSegment, IdTree
from .patterns import DEFAULT_PATTERNS, Grouping, Pattern, group_messages


class Transformer:
    """Applies the grouping patterns to segments of the conversation."""

    def __init__(
        self,
        helper_maps: HelperMaps,
        patterns: Sequence[Pattern] = DEFAULT_PATTERNS,
    ):
        self.helper_maps = helper_maps
        self.patterns = tuple(patterns)

    def _group(self, ids: Sequence[str]) -> list[Grouping]:
        message_map = self.helper_maps.message_map
        return group_messages([message_map[mid] for mid in ids], self.patterns)

    # -- Tree pass ------------------------------------------------------------

    def _grouping_node(self, grouping: Grouping) -> Union[MessageNode, AssistantGroupNode]:
        opener = grouping.opener
        if not grouping.composite:
            return MessageNode(id=opener.id, role=display_role(opener))

        role = (
            MessageRole.SUPERVISOR
            if display_role(opener) == MessageRole.SUPERVISOR
            else MessageRole.ASSISTANT_GROUP
        )
        return AssistantGroupNode(
            id=opener.id,
            role=role,
            agentId=opener.agentId,
            children=[
                MessageNode(id=member.id, role=display_role(member))
                for member in grouping.members
            ],
        )

    def _branch_node(self, branch: IdBranch) -> Union[BranchNode, CompareNode]:
        empty_options: list[list[ContextNode]] = [[] for _ in branch.options]
        if branch.kind == BranchKind.COMPARE:
            active_ids = branch.active_option.ids
            return CompareNode(
                id=f"{branch.key}::compare",
                messageId=branch.parent_id,
                groupId=branch.group_id,
                activeColumnId=active_ids[0] if active_ids else None,
                columns=empty_options,
            )
        return BranchNode(
            id=f"{branch.key}::branch",
            parentMessageId=branch.parent_id,
            activeBranchIndex=branch.active_index,
            branches=empty_options,
        )

    def transform_segments(self, segments: Sequence[IdSegment]) -> list[ContextNode]:
        """Transform segment trees into display nodes.

        Iterative: each branch node is created with empty option lists, and
        the lists owned by the node are filled as their segments come off the
        work stack.
        """
        result: list[ContextNode] = []
        stack: list[tuple[IdSegment, list[ContextNode]]] = [
            (segment, result) for segment in reversed(segments)
        ]

        while stack:
            segment, target = stack.pop()
            target.extend(self._grouping_node(g) for g in self._group(segment.ids))

            # Lanes continue in the same list, after this segment's nodes
            for lane in reversed(segment.lanes):
                stack.append((lane, target))

            branch = segment.branch
            if branch is None:
                continue
            node = self._branch_node(branch)
            target.append(node)
            slots = node.branches if isinstance(node, BranchNode) else node.columns
            for option, slot in reversed(list(zip(branch.options, slots))):
                stack.append((option, slot))

        return result

    def transform_all(self, id_tree: IdTree) -> list[ContextNode]:
        """Transform the main-flow forest into the display tree."""
        return self.transform_segments(id_tree.roots)

    def transform_threads(self, id_tree: IdTree) -> dict[str, list[ContextNode]]:
        """Transform each reply thread into its own display tree."""
        return {
            thread_id: self.transform_segments(segments)
            for thread_id, segments in id_tree.threads.items()
        }

    # -- Flatten pass ---------------------------------------------------------

    def _grouping_row(self, grouping: Grouping) -> Message:
        if grouping.composite:
            return create_group_row(grouping.members)
        return grouping.opener

    def flatten(self, messages: Sequence[Message]) -> list[Message]:
        """Flatten the main flow into one row per rendered item.

        Args:
            messages: Normalized messages, used for root order

        Returns:
            Rows for the active branch path only; composite rows carry their
            member messages as ``children``
        """
        walker = FlowWalker(self.helper_maps)
        root_ids = set(self.helper_maps.root_ids)
        started: set[str] = set()
        rows: list[Message] = []

        for message in messages:
            if message.id not in root_ids or message.id in started:
                continue
            started.add(message.id)

            # Lanes are followed in order, each down its active options
            pending = [message.id]
            while pending:
                ids, points = walker.walk_segment(pending.pop())
                rows.extend(self._grouping_row(g) for g in self._group(ids))
                pending.extend(point.active_id for point in reversed(points))

        return rows
