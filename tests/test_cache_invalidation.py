"""Cache version invalidation, persistent tier reuse and version counter atomicity on SQLite."""

from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from apps.eligibility.config import EngineSettings
from apps.eligibility.db import session_scope
from apps.eligibility.models import CacheVersion, EligibilityCache
from apps.eligibility.schemas.descriptor import QueryDescriptor
from apps.eligibility.services.cache import DEFAULT_VERSION_SCOPE, DatabaseVersionStore
from apps.eligibility.services.engine import build_engine
from apps.eligibility.services.repo import SqlCorpusStore, get_cache_version, increment_cache_version, upsert_cache_row
from tests._corpus import ItemSpec, mark_meta, seed_corpus


def test_version_starts_at_one_and_increments_sequentially(session_factory) -> None:
    assert get_cache_version(session_factory, DEFAULT_VERSION_SCOPE) == 1
    bumps = [increment_cache_version(session_factory, DEFAULT_VERSION_SCOPE) for _ in range(5)]
    assert bumps == [2, 3, 4, 5, 6]
    assert get_cache_version(session_factory, DEFAULT_VERSION_SCOPE) == 6
    with session_scope(session_factory) as session:
        rows = session.scalars(select(CacheVersion)).all()
        assert [(r.scope, r.version) for r in rows] == [(DEFAULT_VERSION_SCOPE, 6)]


def test_version_scopes_are_independent(session_factory) -> None:
    store_a = DatabaseVersionStore(session_factory, scope="a")
    store_b = DatabaseVersionStore(session_factory, scope="b")
    store_a.increment()
    store_a.increment()
    assert store_a.current() == 3
    assert store_b.current() == 1


def test_invalidate_all_makes_next_lookup_miss(session_factory) -> None:
    seed_corpus(session_factory, [ItemSpec(), ItemSpec()])
    engine = build_engine(EngineSettings(), session_factory)
    d = QueryDescriptor()

    before = engine.resolve_ids(d)
    assert engine.cache.get(d) is not None
    assert engine.resolve_count(d) == 2

    seed_corpus(session_factory, [ItemSpec()])
    # Still served from cache until invalidated.
    assert engine.resolve_ids(d).ids == before.ids
    assert engine.resolve_count(d) == 2

    engine.invalidate_all()
    assert engine.cache.get(d) is None
    assert engine.cache.get_count(d) is None
    assert len(engine.resolve_ids(d).ids) == 3
    assert engine.resolve_count(d) == 3


def test_invalidation_reaches_other_engines_sharing_the_database(session_factory) -> None:
    seed_corpus(session_factory, [ItemSpec()])
    first = build_engine(EngineSettings(), session_factory)
    second = build_engine(EngineSettings(), session_factory)
    d = QueryDescriptor()
    first.resolve_ids(d)
    second.resolve_ids(d)

    first.invalidate_all()
    # second's memory tier still holds the entry under the old key; the new key misses it
    assert second.cache.get(d) is None


def test_persistent_tier_serves_a_cold_fast_tier(session_factory) -> None:
    ids = seed_corpus(session_factory, [ItemSpec(), ItemSpec()])
    d = QueryDescriptor()
    build_engine(EngineSettings(), session_factory).resolve_ids(d)

    fresh = build_engine(EngineSettings(), session_factory)
    cached = fresh.cache.get(d)
    assert cached is not None
    assert cached.ids == ids
    # repopulated into the fresh engine's fast tier
    assert fresh.cache._fast.get(fresh.cache.cache_key(d)) is not None


def test_persistent_rows_carry_version_and_expiry(session_factory) -> None:
    seed_corpus(session_factory, [ItemSpec()])
    engine = build_engine(EngineSettings(), session_factory)
    d = QueryDescriptor(allow_recompute=True)
    engine.resolve_ids(d)
    with session_scope(session_factory) as session:
        row = session.get(EligibilityCache, engine.cache.cache_key(d))
        assert row is not None
        assert row.partition_id == "default"
        assert row.cache_version == 1
        assert row.expires_at is not None


def test_expired_persistent_row_is_a_miss(session_factory) -> None:
    past = datetime.now(timezone.utc) - timedelta(minutes=1)
    upsert_cache_row(session_factory, "default", "elig:stale", '{"x": 1}', cache_version=1, expires_at=past)
    engine = build_engine(EngineSettings(fast_tier="none"), session_factory)
    assert engine.cache._persistent.get("elig:stale") is None


class InvalidatingStore(SqlCorpusStore):
    """Runs `after_first_scan` once, after the first page has been read."""

    def __init__(self, partition_id, session_factory, after_first_scan) -> None:
        super().__init__(partition_id, session_factory)
        self._after_first_scan = after_first_scan

    def scan(self, fragment, cursor, limit):
        rows = super().scan(fragment, cursor, limit)
        if self._after_first_scan is not None:
            hook, self._after_first_scan = self._after_first_scan, None
            hook()
        return rows


def test_invalidation_during_scan_does_not_cache_stale_ids(session_factory) -> None:
    (item_id,) = seed_corpus(session_factory, [ItemSpec()])
    engine = build_engine(EngineSettings(), session_factory)

    def artifact_written():
        mark_meta(session_factory, [item_id], "summary_data", "{}")
        engine.invalidate_all()

    store = InvalidatingStore("default", session_factory, artifact_written)
    engine.corpus = store
    engine.batch.corpus = store
    d = QueryDescriptor()

    assert engine.resolve_ids(d).ids == [item_id]
    assert engine.resolve_ids(d).ids == []
