"""Structuring phase: convert parent/child adjacency into an id tree.

The conversation is walked top-down from every root. Along the way the walk
collects *segments*: runs of ids on the parent chain with no branch point
inside. A segment ends at a leaf, at a branch point or where the conversation
splits into agent lanes.

Tool result messages are not branches. They are pulled into the segment right
after the message that called them. The turns that continue a segment are the
non-tool children of the caller and of its tool results.

Continuing turns are partitioned by the message they hang off (their
*anchor*), then by ``agentId``. Siblings of the same agent are alternatives
(regenerate/edit): several of them form a branch point, and exactly one option
is active. Siblings of different agents are all shown: each partition becomes
a *lane*, and lanes follow one another in order of first appearance. A compare
group keeps all children of its anchor together in one branch point.

Thread entries (messages that open a reply thread) are never walked as part of
the main flow; they get their own segments in ``IdTree.threads``.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .indexing import HelperMaps
from .models import BranchPolicy, GroupMode, MessageGroupMetadata, MessageRole

logger = logging.getLogger(__name__)


class BranchKind(str, Enum):
    BRANCH = "branch"
    COMPARE = "compare"


def selection_key(anchor_id: str, lane: Optional[str] = None) -> str:
    """Key of a branch point in ``active_branches``.

    The anchor id alone when the anchor's children form one partition,
    ``"<anchor>@<agentId>"`` when they are split into agent lanes.
    """
    return anchor_id if lane is None else f"{anchor_id}@{lane}"


@dataclass
class BranchPoint:
    """A place where the walk continues into the children of ``anchor_id``.

    ``lane`` is the agent id of the partition when the anchor's children are
    split by agent, None otherwise.
    """

    anchor_id: str
    candidates: list[str]
    kind: BranchKind
    active_index: int
    group_id: Optional[str] = None
    lane: Optional[str] = None

    @property
    def active_id(self) -> str:
        return self.candidates[self.active_index]

    @property
    def is_branch(self) -> bool:
        return len(self.candidates) > 1 or self.kind == BranchKind.COMPARE

    @property
    def key(self) -> str:
        return selection_key(self.anchor_id, self.lane)


@dataclass
class IdSegment:
    """Branch-free run of message ids.

    Ends with at most one of: a ``branch``, or ``lanes`` (agent continuations
    shown one after another).
    """

    ids: list[str] = field(
        default_factory=lambda: []  # type: list[str]
    )
    branch: Optional["IdBranch"] = None
    lanes: list["IdSegment"] = field(
        default_factory=lambda: []  # type: list[IdSegment]
    )


@dataclass
class IdBranch:
    parent_id: str
    kind: BranchKind
    active_index: int
    options: list[IdSegment]
    group_id: Optional[str] = None
    lane: Optional[str] = None

    @property
    def active_option(self) -> IdSegment:
        return self.options[self.active_index]

    @property
    def key(self) -> str:
        return selection_key(self.parent_id, self.lane)


@dataclass
class IdTree:
    """Forest of segments: main-flow roots plus per-thread roots."""

    roots: list[IdSegment] = field(
        default_factory=lambda: []  # type: list[IdSegment]
    )
    threads: dict[str, list[IdSegment]] = field(
        default_factory=lambda: {}  # type: dict[str, list[IdSegment]]
    )

    def main_flow_ids(self) -> list[str]:
        """Ids along the main flow, following the active option of each branch."""
        ids: list[str] = []
        stack = list(reversed(self.roots))
        while stack:
            segment = stack.pop()
            ids.extend(segment.ids)
            if segment.branch is not None:
                stack.append(segment.branch.active_option)
            stack.extend(reversed(segment.lanes))
        return ids


class FlowWalker:
    """Walks the parent/child adjacency one segment at a time.

    Both the tree builder and the flatten pass use this walker, so branch
    selection and segment boundaries are identical in both outputs.

    The walker remembers every id it has emitted. A revisit (only possible
    through cyclic ancestry) stops descent at that node.
    """

    def __init__(self, helper_maps: HelperMaps):
        self.helper_maps = helper_maps
        self.visited: set[str] = set()

    def _is_tool(self, message_id: str) -> bool:
        message = self.helper_maps.get(message_id)
        return message is not None and message.role == MessageRole.TOOL

    def _agent_of(self, message_id: str) -> Optional[str]:
        message = self.helper_maps.get(message_id)
        return message.agentId if message is not None else None

    def _walkable_children(self, message_id: str) -> list[str]:
        return [
            child_id
            for child_id in self.helper_maps.children(message_id)
            if not self.helper_maps.is_thread_entry(child_id)
            and child_id not in self.visited
        ]

    def tool_children(self, message_id: str) -> list[str]:
        """Tool result children, in the caller's ``tools`` order where known."""
        tool_ids = [
            child_id
            for child_id in self._walkable_children(message_id)
            if self._is_tool(child_id)
        ]
        message = self.helper_maps.get(message_id)
        if len(tool_ids) < 2 or message is None or not message.tools:
            return tool_ids

        call_order: dict[str, int] = {}
        for position, tool in enumerate(message.tools):
            result_id = tool.result_id
            if result_id is not None and result_id not in call_order:
                call_order[result_id] = position
        # sorted() is stable, so unreferenced results keep input order at the end
        return sorted(tool_ids, key=lambda tid: call_order.get(tid, len(call_order)))

    def turn_children(self, message_id: str) -> list[str]:
        return [
            child_id
            for child_id in self._walkable_children(message_id)
            if not self._is_tool(child_id)
        ]

    def _collect_tools(self, message_id: str, into: list[str]) -> None:
        for tool_id in self.tool_children(message_id):
            if tool_id in self.visited:
                continue
            self.visited.add(tool_id)
            into.append(tool_id)
            self._collect_tools(tool_id, into)

    def _order_candidates(
        self, candidates: list[str], group: Optional[MessageGroupMetadata]
    ) -> list[str]:
        if group is None or group.mode != GroupMode.MANUAL or not group.messageIds:
            return candidates
        position = {mid: index for index, mid in enumerate(group.messageIds)}
        listed = sorted(
            (cid for cid in candidates if cid in position), key=position.__getitem__
        )
        return listed + [cid for cid in candidates if cid not in position]

    def _split_by_agent(self, candidates: list[str]) -> list[list[str]]:
        by_agent: dict[Optional[str], list[str]] = {}
        for candidate in candidates:
            by_agent.setdefault(self._agent_of(candidate), []).append(candidate)
        return list(by_agent.values())

    def resolve_active_index(
        self,
        anchor_id: str,
        candidates: list[str],
        group: Optional[MessageGroupMetadata] = None,
        lane: Optional[str] = None,
    ) -> int:
        """Pick the active candidate at a branch point.

        Sources, first match wins: the caller's ``active_branches`` (keyed by
        :func:`selection_key`), the compare group's ``activeMessageId``, the
        anchor's ``metadata.activeBranchIndex`` (not used for agent lanes),
        then the branch policy. Out of range indices fall through to the next
        source.
        """
        count = len(candidates)
        key = selection_key(anchor_id, lane)

        explicit = self.helper_maps.active_branches.get(key)
        if explicit is not None:
            if 0 <= explicit < count:
                return explicit
            logger.debug(
                "Active branch %s out of range for %s (%d options)",
                explicit,
                key,
                count,
            )

        if group is not None and group.activeMessageId in candidates:
            return candidates.index(group.activeMessageId)  # type: ignore[arg-type]

        anchor = self.helper_maps.get(anchor_id)
        if lane is None and anchor is not None and anchor.metadata is not None:
            stored = anchor.metadata.active_branch_index
            if stored is not None and 0 <= stored < count:
                return stored

        if self.helper_maps.branch_policy == BranchPolicy.FIRST:
            return 0
        return count - 1

    def continuations(self, parent_ids: list[str]) -> list[BranchPoint]:
        """Partition the turn children of ``parent_ids`` into branch points.

        One point per anchor and agent, in order of first appearance. A
        compare group keeps all children of its anchor in a single point.
        """
        points: list[BranchPoint] = []
        for anchor_id in parent_ids:
            children = self.turn_children(anchor_id)
            if not children:
                continue
            group = self.helper_maps.group_by_parent.get(anchor_id)
            children = self._order_candidates(children, group)
            is_compare = group is not None and group.mode == GroupMode.COMPARE

            partitions = [children] if is_compare else self._split_by_agent(children)
            for candidates in partitions:
                lane = None
                if len(partitions) > 1:
                    lane = self._agent_of(candidates[0]) or ""
                points.append(
                    BranchPoint(
                        anchor_id=anchor_id,
                        candidates=candidates,
                        kind=BranchKind.COMPARE if is_compare else BranchKind.BRANCH,
                        active_index=self.resolve_active_index(
                            anchor_id, candidates, group if is_compare else None, lane
                        ),
                        group_id=group.id if group is not None else None,
                        lane=lane,
                    )
                )
        return points

    def walk_segment(self, start_id: str) -> tuple[list[str], list[BranchPoint]]:
        """Walk from ``start_id`` until a leaf, a branch point or agent lanes.

        Returns:
            The ids of the segment in order, and the points that end it: none
            at a leaf, one for a branch point, one per lane otherwise.
        """
        ids: list[str] = []
        current: Optional[str] = start_id

        while current is not None and current not in self.visited:
            self.visited.add(current)
            ids.append(current)

            tool_ids: list[str] = []
            self._collect_tools(current, tool_ids)
            ids.extend(tool_ids)

            points = self.continuations([current, *tool_ids])
            if not points:
                return ids, []
            if len(points) == 1 and not points[0].is_branch:
                current = points[0].candidates[0]
                continue
            return ids, points

        if current is not None:
            logger.debug("Stopping walk at revisited message %s", current)
        return ids, []


def _id_branch(point: BranchPoint) -> IdBranch:
    return IdBranch(
        parent_id=point.anchor_id,
        kind=point.kind,
        active_index=point.active_index,
        options=[IdSegment() for _ in point.candidates],
        group_id=point.group_id,
        lane=point.lane,
    )


def _build_segments(walker: FlowWalker, start_ids: list[str]) -> list[IdSegment]:
    """Build full segment trees (all branch options) from ``start_ids``.

    Iterative so that long chains of nested branches cannot exhaust the
    interpreter's recursion limit.
    """
    segments = [IdSegment() for _ in start_ids]
    stack: list[tuple[IdSegment, str]] = list(reversed(list(zip(segments, start_ids))))

    while stack:
        segment, start_id = stack.pop()
        segment.ids, points = walker.walk_segment(start_id)

        pending: list[tuple[IdSegment, str]] = []
        for point in points:
            if len(points) > 1 and not point.is_branch:
                lane = IdSegment()
                segment.lanes.append(lane)
                pending.append((lane, point.candidates[0]))
                continue

            branch = _id_branch(point)
            if len(points) > 1:
                segment.lanes.append(IdSegment(branch=branch))
            else:
                segment.branch = branch
            pending.extend(zip(branch.options, point.candidates))

        # Push in reverse so the first lane and option 0 are walked first
        stack.extend(reversed(pending))

    return segments


def build_id_tree(helper_maps: HelperMaps) -> IdTree:
    """Convert the helper maps into an IdTree.

    Args:
        helper_maps: Output of the indexing phase

    Returns:
        IdTree with one segment tree per root and per thread entry
    """
    walker = FlowWalker(helper_maps)
    roots = _build_segments(walker, helper_maps.root_ids)
    threads = {
        thread_id: _build_segments(walker, entry_ids)
        for thread_id, entry_ids in helper_maps.thread_roots.items()
    }
    return IdTree(roots=roots, threads=threads)
