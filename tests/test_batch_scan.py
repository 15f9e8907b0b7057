"""Batch scan over a 10,000-item corpus: completeness without pressure, ordered prefix under a time-budget trip."""

import pytest

from apps.eligibility.config import EngineSettings
from apps.eligibility.schemas.descriptor import PROTECTED_VALUE, QueryDescriptor, Workflow
from apps.eligibility.services.batch import BatchConfig, BatchProcessor, StopReason
from apps.eligibility.services.cache import CacheManager, DatabaseVersionStore
from apps.eligibility.services.cache_tiers import DatabaseCacheTier, MemoryCacheTier
from apps.eligibility.services.engine import EligibilityEngine, build_engine, describe_count
from apps.eligibility.services.repo import SqlCorpusStore
from tests._corpus import all_item_ids, mark_meta, seed_plain_items

CORPUS_SIZE = 10_000


class StepClock:
    """Returns 0 until `trip_after` guard checks have happened, then a time far past any budget."""

    def __init__(self, trip_after: int) -> None:
        self.calls = 0
        self.trip_after = trip_after

    def __call__(self) -> float:
        # call 0 is the scan start; calls 1..n are the per-batch guard checks
        value = 0.0 if self.calls <= self.trip_after - 1 else 1000.0
        self.calls += 1
        return value


@pytest.fixture
def big_corpus(session_factory):
    seed_plain_items(session_factory, CORPUS_SIZE)
    ids = all_item_ids(session_factory)
    with_artifact = ids[::3]
    protected = ids[1::7]
    mark_meta(session_factory, with_artifact, Workflow.SUMMARY.artifact_key)
    mark_meta(session_factory, protected, Workflow.SUMMARY.protection_key, PROTECTED_VALUE)
    excluded = set(with_artifact) | set(protected)
    eligible = [i for i in ids if i not in excluded]
    return ids, eligible


def test_resolve_ids_is_complete_sorted_and_unique_without_pressure(session_factory, big_corpus) -> None:
    _, eligible = big_corpus
    settings = EngineSettings(
        batch=BatchConfig(max_items=1_000_000, time_budget_seconds=3600.0, memory_limit_bytes=1 << 50),
    )
    engine = build_engine(settings, session_factory)
    result = engine.resolve_ids(QueryDescriptor())
    assert result.complete is True
    assert result.ids == eligible
    assert len(set(result.ids)) == len(result.ids)
    assert result.ids == sorted(result.ids)
    assert describe_count(result) == str(len(eligible))


def test_default_max_items_caps_the_scan(session_factory, big_corpus) -> None:
    _, eligible = big_corpus
    engine = build_engine(EngineSettings(batch=BatchConfig(memory_limit_bytes=1 << 50)), session_factory)
    result = engine.resolve_ids(QueryDescriptor())
    assert result.complete is False
    assert result.stop_reason == StopReason.MAX_ITEMS.value
    assert result.ids == eligible[:2000]
    assert describe_count(result) == "at least 2000"


def test_time_budget_trip_after_two_batches_returns_ordered_prefix(session_factory, big_corpus) -> None:
    _, eligible = big_corpus
    corpus = SqlCorpusStore("default", session_factory)
    cache = CacheManager(
        "default",
        DatabaseVersionStore(session_factory),
        fast_tier=MemoryCacheTier(),
        persistent_tier=DatabaseCacheTier("default", session_factory),
    )
    batch = BatchProcessor(
        corpus,
        BatchConfig(max_items=1_000_000, time_budget_seconds=30.0, memory_limit_bytes=1 << 50),
        memory_probe=lambda: 0,
        clock=StepClock(trip_after=2),
    )
    engine = EligibilityEngine(corpus, cache, batch)
    d = QueryDescriptor()

    result = engine.resolve_ids(d)

    assert result.complete is False
    assert result.stop_reason == StopReason.TIME_BUDGET.value
    assert len(result.ids) == 400
    assert len(result.ids) < len(eligible)
    assert result.ids == eligible[: len(result.ids)]
    # Partial results are never cached.
    assert cache.get(d) is None
