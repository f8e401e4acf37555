"""Timing utilities for profiling the parse pipeline.

Enabled via the CONVERSATION_FLOW_DEBUG_TIMING environment variable.
Output goes to stderr so that CLI output on stdout stays machine readable.
"""

import os
import sys
import time
from contextlib import contextmanager
from typing import Callable, Iterator, Optional, Union

# Set to "1", "true", or "yes" to enable timing output
DEBUG_TIMING = os.getenv("CONVERSATION_FLOW_DEBUG_TIMING", "").lower() in (
    "1",
    "true",
    "yes",
)


@contextmanager
def log_timing(
    phase: Union[str, Callable[[], str]],
    t_start: Optional[float] = None,
) -> Iterator[None]:
    """Print how long the wrapped pipeline phase took.

    ``phase`` may be a callable so the label can mention results computed
    inside the block, e.g. the number of flat-list rows. With ``t_start`` the
    line also shows the time elapsed since the parse began. Nothing is
    printed unless DEBUG_TIMING is set.
    """
    if not DEBUG_TIMING:
        yield
        return

    started = time.perf_counter()
    try:
        yield
    finally:
        finished = time.perf_counter()
        label = phase() if callable(phase) else phase
        line = f"[TIMING] {label:40s} {finished - started:8.4f}s"
        if t_start is not None:
            line += f" (total: {finished - t_start:8.4f}s)"
        print(line, file=sys.stderr, flush=True)
