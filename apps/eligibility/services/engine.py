"""Eligibility engine: the surface callers use (UI counts, exporters, queue feeders).

resolve_ids: cache -> (miss) scan fragment -> adaptive batch scan -> cache.
resolve_count: cache -> (miss) structured count -> cache.
Only DataAccessError crosses this boundary. A guard-triggered partial result
comes back with complete=False and is not cached.
"""

import logging

from sqlalchemy.orm import Session, sessionmaker

from apps.eligibility.config import EngineSettings
from apps.eligibility.db import get_session_factory
from apps.eligibility.schemas.descriptor import QueryDescriptor, Workflow
from apps.eligibility.schemas.results import EligibilityResult
from apps.eligibility.services.batch import BatchProcessor
from apps.eligibility.services.cache import CacheManager, DatabaseVersionStore
from apps.eligibility.services.cache_tiers import (
    CacheTier,
    DatabaseCacheTier,
    MemoryCacheTier,
    NullCacheTier,
    RedisCacheTier,
)
from apps.eligibility.services.query_builder import build_scan_fragment, build_structured_args
from apps.eligibility.services.repo import CorpusStore, SqlCorpusStore

logger = logging.getLogger(__name__)


class EligibilityEngine:
    def __init__(self, corpus: CorpusStore, cache: CacheManager, batch: BatchProcessor) -> None:
        self.corpus = corpus
        self.cache = cache
        self.batch = batch

    def resolve_count(self, d: QueryDescriptor) -> int:
        version = self.cache.read_version()
        if version is not None:
            cached = self.cache.get_count(d, version=version)
            if cached is not None:
                return cached
        count = self.corpus.count(build_structured_args(d))
        if version is not None:
            self.cache.put_count(d, count, version=version)
        return count

    def resolve_ids(self, d: QueryDescriptor) -> EligibilityResult:
        # One version read per resolution: the result is stored under the version it was computed against.
        version = self.cache.read_version()
        if version is not None:
            cached = self.cache.get(d, version=version)
            if cached is not None and cached.ids is not None:
                return cached.to_result()

        outcome = self.batch.fetch(build_scan_fragment(d))
        result = EligibilityResult(
            ids=outcome.ids,
            complete=outcome.complete,
            stop_reason=outcome.stop_reason.value,
        )
        if not outcome.complete:
            logger.info(
                "partial eligibility result (%s): %d ids after %d batches; not cached",
                outcome.stop_reason.value,
                len(outcome.ids),
                outcome.batches,
            )
        elif version is not None:
            self.cache.put(d, result, version=version)
        return result

    def has_artifact(self, item_id: int, workflow: Workflow) -> bool:
        """Probe one item, e.g. to skip ids that got their artifact after the list was resolved."""
        return self.corpus.key_exists(item_id, workflow.artifact_key)

    def invalidate_all(self) -> int:
        return self.cache.clear_cache()


def describe_count(result: EligibilityResult) -> str:
    """Operator-facing count: 'at least N' when a guard cut the scan short."""
    if result.complete:
        return str(result.count)
    return f"at least {result.count}"


def _fast_tier(settings: EngineSettings) -> CacheTier:
    if settings.fast_tier == "redis":
        return RedisCacheTier.from_url(settings.redis_url, namespace=f"eligibility:{settings.partition_id}")
    if settings.fast_tier == "none":
        return NullCacheTier()
    return MemoryCacheTier()


def build_engine(
    settings: EngineSettings,
    session_factory: sessionmaker[Session] | None = None,
) -> EligibilityEngine:
    """Assemble an engine for one partition from settings."""
    factory = session_factory or get_session_factory()
    corpus = SqlCorpusStore(settings.partition_id, factory)
    cache = CacheManager(
        settings.partition_id,
        DatabaseVersionStore(factory),
        fast_tier=_fast_tier(settings),
        persistent_tier=DatabaseCacheTier(settings.partition_id, factory),
        ttl_policy=settings.ttl,
    )
    return EligibilityEngine(corpus, cache, BatchProcessor(corpus, settings.batch))


__all__ = ["EligibilityEngine", "build_engine", "describe_count"]
