from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from typing import Any, TypeVar

from ..models.processing_result import BatchStatsAccumulator, BulkResult
from .progress import ChunkProgress

"""Chunked bulk writes.

Items are cut into fixed-size chunks (500 by default); each chunk is
written and finished before the next one starts. The first failing chunk
aborts the rest. Nothing is rolled back: chunks that already finished stay
written, and BulkOperationError reports how many items that was.
"""

__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "BulkOperationError",
    "chunked",
    "run_in_chunks",
]

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 500

T = TypeVar("T")


class BulkOperationError(Exception):
    """A chunk failed; ``completed`` items were written before it."""

    def __init__(self, label: str, attempted: int, completed: int, cause: BaseException) -> None:
        super().__init__(
            f"{label} aborted after {completed}/{attempted} items: {cause}"
        )
        self.label = label
        self.attempted = attempted
        self.completed = completed
        self.cause = cause


def chunked(items: Sequence[T], size: int = DEFAULT_CHUNK_SIZE) -> Iterator[list[T]]:
    if size < 1:
        raise ValueError(f"chunk size must be >= 1: {size}")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def run_in_chunks(
    items: Sequence[T],
    op: Callable[[list[T]], Any],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    label: str = "bulk",
    progress: bool = True,
) -> BulkResult:
    """Apply ``op`` to each chunk of ``items`` in order.

    Raises:
        BulkOperationError: on the first chunk that raises; later chunks are
            not attempted.
    """
    stats = BatchStatsAccumulator()
    completed = 0
    with ChunkProgress(len(items), description=label, enabled=None if progress else False) as bar:
        for chunk in chunked(items, chunk_size):
            started = time.perf_counter()
            try:
                op(chunk)
            except Exception as e:
                logger.error("%s: chunk failed after %d/%d items: %s", label, completed, len(items), e)
                raise BulkOperationError(label, len(items), completed, e) from e
            stats.add_batch_time(time.perf_counter() - started)
            completed += len(chunk)
            bar.advance(len(chunk))

    total_chunks, avg, p95 = stats.get_stats()
    logger.debug("%s: %d items in %d chunks (avg=%.4fs p95=%.4fs)", label, completed, total_chunks, avg, p95)
    return BulkResult(
        operation=label,
        requested=len(items),
        completed=completed,
        total_chunks=total_chunks,
        avg_chunk_seconds=avg,
        p95_chunk_seconds=p95,
    )
