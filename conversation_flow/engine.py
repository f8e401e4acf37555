"""Entry point of the conversation flow engine."""

import time
from typing import Mapping, Optional, Sequence, Union

from .factories import (
    MessageGroupLike,
    MessageLike,
    create_message_groups,
    create_messages,
)
from .indexing import build_helper_maps
from .models import BranchPolicy, ParseResult
from .normalize import normalize_messages
from .serialization import serialize_flat_list, serialize_message_map
from .structuring import build_id_tree
from .timings import log_timing
from .transformation import Transformer


def parse(
    messages: Sequence[MessageLike],
    message_groups: Optional[Sequence[MessageGroupLike]] = None,
    *,
    active_branches: Optional[Mapping[str, int]] = None,
    branch_policy: Optional[Union[BranchPolicy, str]] = None,
) -> ParseResult:
    """Parse a flat message list into a map, a display tree and a flat list.

    Pipeline:
    1. Normalize - sub-agent messages take their sub-agent id as ``agentId``
    2. Index - helper maps for O(1) lookups
    3. Structure - id tree separating main flow, branches and threads
    4. Transform - pattern-grouped display tree, then the flat render list
    5. Serialize - supervisor relabeling and metadata minimization

    Args:
        messages: Flat messages (models or dicts) in chronological order
        message_groups: Optional compare/manual grouping metadata
        active_branches: Optional branch point key -> selected branch index.
            The key is the parent id, or ``"<parent>@<agentId>"`` for a parent
            whose children are split into agent lanes
        branch_policy: Fallback when no branch index applies (default ``latest``)

    Returns:
        ParseResult with messageMap, displayTree, flatList and threads

    Raises:
        TypeError: If ``messages`` or ``message_groups`` is not a list
        pydantic.ValidationError: If a message is not message shaped
    """
    t_start = time.perf_counter()

    with log_timing("Input validation", t_start):
        typed_messages = create_messages(messages)
        typed_groups = create_message_groups(message_groups)
        policy = BranchPolicy(branch_policy or BranchPolicy.LATEST)

    with log_timing("Normalization", t_start):
        processed_messages = normalize_messages(typed_messages)

    with log_timing("Indexing", t_start):
        helper_maps = build_helper_maps(
            processed_messages,
            typed_groups,
            active_branches=active_branches,
            branch_policy=policy,
        )

    with log_timing("Structuring", t_start):
        id_tree = build_id_tree(helper_maps)

    transformer = Transformer(helper_maps)
    with log_timing("Tree transformation", t_start):
        display_tree = transformer.transform_all(id_tree)
        threads = transformer.transform_threads(id_tree)

    with log_timing(lambda: f"Flatten ({len(flat_list)} rows)", t_start):
        flat_list = transformer.flatten(processed_messages)

    with log_timing("Serialization", t_start):
        message_map = serialize_message_map(helper_maps.message_map)
        serialized_flat_list = serialize_flat_list(flat_list, message_map)

    return ParseResult(
        messageMap=message_map,
        displayTree=display_tree,
        flatList=serialized_flat_list,
        threads=threads,
    )
