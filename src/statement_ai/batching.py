"""Row batching for extraction calls.

Each batch is one request to the extraction adapter.  The default size
keeps a single LLM response comfortably under its output token limit.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

DEFAULT_BATCH_SIZE = 15


def batch_count(n_rows: int, batch_size: int = DEFAULT_BATCH_SIZE) -> int:
    """Number of batches ``make_batches`` produces for *n_rows* rows."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return math.ceil(n_rows / batch_size)


def make_batches(
    rows: Sequence[str],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> list[list[str]]:
    """Partition *rows* into contiguous, order-preserving batches.

    Every batch holds exactly *batch_size* rows except possibly the last.
    Concatenating the batches reproduces *rows*.

    Args:
        rows: Statement data rows, in file order.
        batch_size: Maximum rows per batch.

    Returns:
        List of batches.  Empty when *rows* is empty.

    Raises:
        ValueError: If *batch_size* is less than 1.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")
    return [list(rows[i : i + batch_size]) for i in range(0, len(rows), batch_size)]
