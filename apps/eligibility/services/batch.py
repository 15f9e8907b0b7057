"""Memory- and time-bounded keyset scan over the corpus.

One pass per call: fetch a page of ids greater than the cursor, merge, check the
guards, repeat. Batch size shrinks as process memory approaches the ceiling.
Hitting a guard is not an error; the outcome is returned with complete=False.

The scan is snapshot-less: rows inserted behind the cursor during a run are
missed, rows inserted ahead of it may or may not be seen.
"""

import gc
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from apps.eligibility.services.memory import physical_memory_bytes, process_memory_bytes
from apps.eligibility.services.query_builder import ScanFragment
from apps.eligibility.services.repo import CorpusStore

logger = logging.getLogger(__name__)

# (mem_pct, base_batch_size, min_batch_size) -> batch size
BatchSizePolicy = Callable[[float, int, int], int]


class StopReason(str, Enum):
    END_OF_CORPUS = "end_of_corpus"
    MEMORY_CRITICAL = "memory_critical"
    TIME_BUDGET = "time_budget"
    MAX_ITEMS = "max_items"


def adaptive_batch_size(mem_pct: float, base: int, minimum: int) -> int:
    """Default policy. Fractions of base are floored; never below minimum."""
    if mem_pct > 80:
        return minimum
    if mem_pct > 70:
        size = int(base * 0.25)
    elif mem_pct > 60:
        size = int(base * 0.5)
    elif mem_pct > 50:
        size = int(base * 0.75)
    else:
        size = base
    return max(minimum, size)


@dataclass(frozen=True)
class BatchConfig:
    base_batch_size: int = 200
    min_batch_size: int = 25
    max_items: int = 2000
    time_budget_seconds: float = 30.0
    time_budget_fraction: float = 0.8
    memory_limit_bytes: int = 0  # 0: physical memory
    critical_memory_pct: float = 85.0
    cleanup_every: int = 5


@dataclass
class BatchState:
    started_at: float
    initial_memory: int
    cursor: int = 0
    processed_total: int = 0
    batches: int = 0
    collected_ids: list[int] = field(default_factory=list)
    seen: set[int] = field(default_factory=set)


@dataclass(frozen=True)
class BatchOutcome:
    ids: list[int]
    complete: bool
    stop_reason: StopReason
    batches: int
    processed_total: int
    elapsed_seconds: float
    memory_delta: int


class BatchProcessor:
    def __init__(
        self,
        corpus: CorpusStore,
        config: BatchConfig | None = None,
        *,
        batch_size_policy: BatchSizePolicy | None = None,
        memory_probe: Callable[[], int] = process_memory_bytes,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.corpus = corpus
        self.config = config or BatchConfig()
        self._policy = batch_size_policy or adaptive_batch_size
        self._memory_probe = memory_probe
        self._clock = clock
        self._memory_limit = self.config.memory_limit_bytes or physical_memory_bytes()

    def memory_usage_percent(self) -> float:
        return self._memory_probe() / self._memory_limit * 100

    def batch_size(self, mem_pct: float | None = None) -> int:
        """Batch size for the next fetch. The configured minimum applies to any policy; never below 1."""
        if mem_pct is None:
            mem_pct = self.memory_usage_percent()
        cfg = self.config
        return max(1, cfg.min_batch_size, int(self._policy(mem_pct, cfg.base_batch_size, cfg.min_batch_size)))

    def fetch(self, fragment: ScanFragment) -> BatchOutcome:
        """Walk the corpus in ascending surrogate-key order. DataAccessError from the store propagates."""
        cfg = self.config
        state = BatchState(started_at=self._clock(), initial_memory=self._memory_probe())

        while True:
            limit = min(self.batch_size(), cfg.max_items - state.processed_total)
            if limit <= 0:
                reason = StopReason.MAX_ITEMS
                break
            rows = self.corpus.scan(fragment, state.cursor, limit)
            if not rows:
                reason = StopReason.END_OF_CORPUS
                break

            for row in rows:
                if row.id not in state.seen:
                    state.seen.add(row.id)
                    state.collected_ids.append(row.id)
            state.cursor = rows[-1].surrogate_key
            state.processed_total += len(rows)
            state.batches += 1

            reason = self._stop_reason(state, fetched=len(rows), requested=limit)
            if reason is not None:
                break
            if state.batches % cfg.cleanup_every == 0:
                gc.collect()

        return self._finish(state, reason)

    def _stop_reason(self, state: BatchState, fetched: int, requested: int) -> StopReason | None:
        cfg = self.config
        if fetched < requested:
            return StopReason.END_OF_CORPUS

        mem_pct = self.memory_usage_percent()
        if mem_pct > cfg.critical_memory_pct:
            logger.error(
                "batch scan stopped: memory at %.1f%% after %d items", mem_pct, state.processed_total
            )
            return StopReason.MEMORY_CRITICAL

        elapsed = self._clock() - state.started_at
        if elapsed > cfg.time_budget_seconds * cfg.time_budget_fraction:
            logger.info(
                "batch scan stopped: %.2fs of %.2fs budget used after %d items",
                elapsed,
                cfg.time_budget_seconds,
                state.processed_total,
            )
            return StopReason.TIME_BUDGET

        if state.processed_total >= cfg.max_items:
            logger.info("batch scan stopped: reached max items (%d)", cfg.max_items)
            return StopReason.MAX_ITEMS

        return None

    def _finish(self, state: BatchState, reason: StopReason) -> BatchOutcome:
        elapsed = self._clock() - state.started_at
        memory_delta = self._memory_probe() - state.initial_memory
        logger.debug(
            "batch scan: %d items in %d batches, %.2fs, memory delta %d bytes, stop=%s",
            len(state.collected_ids),
            state.batches,
            elapsed,
            memory_delta,
            reason.value,
        )
        return BatchOutcome(
            ids=state.collected_ids,
            complete=reason is StopReason.END_OF_CORPUS,
            stop_reason=reason,
            batches=state.batches,
            processed_total=state.processed_total,
            elapsed_seconds=elapsed,
            memory_delta=memory_delta,
        )


__all__ = [
    "BatchConfig",
    "BatchOutcome",
    "BatchProcessor",
    "BatchSizePolicy",
    "BatchState",
    "StopReason",
    "adaptive_batch_size",
]
