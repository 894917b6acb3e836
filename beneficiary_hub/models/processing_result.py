from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime

"""Result models for imports and chunked bulk operations.

Chunk timings are accumulated so the SUMMARY line can report throughput and
p95 chunk latency.
"""


@dataclass(frozen=True)
class BulkResult:
    """Outcome of a chunked bulk operation that ran to completion."""
    operation: str  # import / delete / update / clear / dedupe
    requested: int  # items handed to the operation
    completed: int  # items written
    total_chunks: int = 0
    avg_chunk_seconds: float = 0.0
    p95_chunk_seconds: float = 0.0


@dataclass(frozen=True)
class ImportResult:
    """Aggregated result of one spreadsheet import."""
    source: str  # file name
    sheet: str
    total_rows: int  # data rows read from the sheet
    inserted_rows: int
    skipped_empty: int  # rows that mapped to an all-empty record
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float
    bulk: BulkResult | None = None


@dataclass(frozen=True)
class PromotionResult:
    """Per-item outcome counts for adding submissions to the beneficiary list."""
    succeeded: int
    failed: int
    failed_ids: tuple[str, ...] = ()

    @property
    def partial(self) -> bool:
        return self.failed > 0


class BatchStatsAccumulator:
    """Accumulates per-chunk timings and summarizes them."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 95th percentile (19th out of 20 quantiles, 0-indexed)

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
