"""Version-keyed two-tier cache for eligibility results.

Key = sha256 over (content_type, status, category_id, author_id, allow_recompute,
allow_override_protected, workflow, cache_version, partition_id). Bumping the
global cache version makes every previously issued key unreachable, so
invalidation is O(1) and never enumerates keys.

Tier failures never reach the caller: get() degrades to a miss, put() to a no-op.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from apps.eligibility.schemas.descriptor import QueryDescriptor
from apps.eligibility.schemas.results import CachedResult, EligibilityResult
from apps.eligibility.services.cache_tiers import CacheTier
from apps.eligibility.services.errors import DataAccessError, TransientCacheError
from apps.eligibility.services.partition_guard import require_partition_id
from apps.eligibility.services.repo import get_cache_version, increment_cache_version
from apps.eligibility.utils.hashing import stable_digest

logger = logging.getLogger(__name__)

KEY_PREFIX = "elig"
DEFAULT_VERSION_SCOPE = "eligibility"


@dataclass(frozen=True)
class TtlPolicy:
    """TTL tiers in seconds. Thresholds are tuned defaults, not derived values."""

    long_seconds: int = 6 * 3600
    extended_seconds: int = 30 * 60
    default_seconds: int = 10 * 60
    short_seconds: int = 2 * 60
    high_water: int = 1000
    low_water: int = 50


class DatabaseVersionStore:
    """Global cache version persisted in cache_versions."""

    def __init__(self, session_factory: sessionmaker[Session], scope: str = DEFAULT_VERSION_SCOPE) -> None:
        self._factory = session_factory
        self.scope = scope

    def current(self) -> int:
        try:
            return get_cache_version(self._factory, self.scope)
        except SQLAlchemyError as e:
            raise TransientCacheError(f"cache version read failed: {e}") from e

    def increment(self) -> int:
        # A lost bump would leave stale entries reachable, so this one is not swallowed.
        try:
            return increment_cache_version(self._factory, self.scope)
        except SQLAlchemyError as e:
            raise DataAccessError(f"cache version increment failed: {e}") from e


def _ttl_seconds(ttl: int | timedelta) -> int:
    if isinstance(ttl, timedelta):
        return int(ttl.total_seconds())
    return int(ttl)


class CacheManager:
    """Fast tier first, persistent tier as fallback; a persistent hit repopulates the fast tier."""

    def __init__(
        self,
        partition_id: str | None,
        versions: DatabaseVersionStore,
        fast_tier: CacheTier,
        persistent_tier: CacheTier,
        ttl_policy: TtlPolicy | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.partition_id = require_partition_id(partition_id)
        self._versions = versions
        self._fast = fast_tier
        self._persistent = persistent_tier
        self.ttl_policy = ttl_policy or TtlPolicy()
        self._now = now or (lambda: datetime.now(timezone.utc))

    # --- keys ---

    def current_version(self) -> int:
        return self._versions.current()

    def _digest(self, d: QueryDescriptor, version: int) -> str:
        return stable_digest(
            [
                d.content_type,
                d.status,
                d.category_id,
                d.author_id,
                1 if d.allow_recompute else 0,
                1 if d.allow_override_protected else 0,
                d.workflow.value,
                version,
                self.partition_id,
            ]
        )

    def cache_key(self, d: QueryDescriptor) -> str:
        return f"{KEY_PREFIX}:{self._digest(d, self.current_version())}"

    def count_cache_key(self, d: QueryDescriptor) -> str:
        """Key for count-only results. Never collides with the id-list key."""
        return f"{KEY_PREFIX}:count:{self._digest(d, self.current_version())}"

    # --- ttl ---

    def compute_ttl(self, d: QueryDescriptor, result: EligibilityResult | int) -> int:
        policy = self.ttl_policy
        size = result if isinstance(result, int) else result.count
        if not d.allow_recompute:
            return policy.long_seconds
        if size > policy.high_water:
            return policy.extended_seconds
        if size < policy.low_water:
            return policy.short_seconds
        return policy.default_seconds

    # --- read / write ---

    def get(self, d: QueryDescriptor, version: int | None = None) -> CachedResult | None:
        if version is None:
            version = self.read_version()
        if version is None:
            return None
        return self._read(f"{KEY_PREFIX}:{self._digest(d, version)}", version)

    def put(
        self,
        d: QueryDescriptor,
        result: EligibilityResult,
        ttl: int | timedelta | None = None,
        version: int | None = None,
    ) -> None:
        """Store result. Pass the version read before computing it, so a result computed across an
        invalidation lands under the old (unreachable) key."""
        if version is None:
            version = self.read_version()
        if version is None:
            return
        seconds = _ttl_seconds(ttl) if ttl is not None else self.compute_ttl(d, result)
        entry = CachedResult(
            ids=list(result.ids),
            count=result.count,
            complete=result.complete,
            stored_at=self._now(),
            ttl_seconds=seconds,
        )
        self._write(f"{KEY_PREFIX}:{self._digest(d, version)}", entry, version)

    def get_count(self, d: QueryDescriptor, version: int | None = None) -> int | None:
        if version is None:
            version = self.read_version()
        if version is None:
            return None
        cached = self._read(f"{KEY_PREFIX}:count:{self._digest(d, version)}", version)
        return cached.count if cached is not None else None

    def put_count(
        self,
        d: QueryDescriptor,
        count: int,
        ttl: int | timedelta | None = None,
        version: int | None = None,
    ) -> None:
        if version is None:
            version = self.read_version()
        if version is None:
            return
        seconds = _ttl_seconds(ttl) if ttl is not None else self.compute_ttl(d, count)
        entry = CachedResult(ids=None, count=count, stored_at=self._now(), ttl_seconds=seconds)
        self._write(f"{KEY_PREFIX}:count:{self._digest(d, version)}", entry, version)

    # --- invalidation ---

    def clear_cache(self) -> int:
        """Bump the global cache version. The only invalidation path; O(1). Returns the new version."""
        new_version = self._versions.increment()
        flush = getattr(self._fast, "flush", None)
        if callable(flush):
            flush()
        logger.info("eligibility cache version bumped to %d", new_version)
        return new_version

    def sweep(self) -> int:
        """Best-effort removal of unreachable persistent entries. Not needed for correctness."""
        sweep = getattr(self._persistent, "sweep", None)
        if not callable(sweep):
            return 0
        try:
            removed = sweep(self.current_version())
        except TransientCacheError as e:
            logger.warning("cache sweep skipped for partition %s: %s", self.partition_id, e)
            return 0
        logger.info("cache sweep removed %d entries for partition %s", removed, self.partition_id)
        return removed

    def read_version(self) -> int | None:
        """Current version, or None when the version store is unreachable (cache bypassed)."""
        try:
            return self.current_version()
        except TransientCacheError as e:
            logger.warning("cache bypassed, version unavailable: %s", e)
            return None

    # --- internals ---

    def _read(self, key: str, version: int) -> CachedResult | None:
        cached = self._decode(self._tier_get(self._fast, key, "fast"), key)
        if cached is not None:
            return cached
        cached = self._decode(self._tier_get(self._persistent, key, "persistent"), key)
        if cached is None:
            return None
        remaining = self._remaining_ttl(cached)
        if remaining > 0:
            self._tier_set(self._fast, key, cached.model_dump_json().encode("utf-8"), remaining, version, "fast")
        return cached

    def _write(self, key: str, entry: CachedResult, version: int) -> None:
        blob = entry.model_dump_json().encode("utf-8")
        self._tier_set(self._fast, key, blob, entry.ttl_seconds, version, "fast")
        self._tier_set(self._persistent, key, blob, entry.ttl_seconds, version, "persistent")

    def _remaining_ttl(self, cached: CachedResult) -> int:
        stored_at = cached.stored_at
        if stored_at.tzinfo is None:
            stored_at = stored_at.replace(tzinfo=timezone.utc)
        expires_at = stored_at + timedelta(seconds=cached.ttl_seconds)
        return int((expires_at - self._now()).total_seconds())

    @staticmethod
    def _tier_get(tier: CacheTier, key: str, name: str) -> bytes | None:
        try:
            return tier.get(key)
        except TransientCacheError as e:
            logger.warning("%s cache tier read failed, treating as miss: %s", name, e)
            return None

    @staticmethod
    def _tier_set(tier: CacheTier, key: str, blob: bytes, ttl_seconds: int, version: int, name: str) -> None:
        try:
            tier.set(key, blob, ttl_seconds, version=version)
        except TransientCacheError as e:
            logger.warning("%s cache tier write failed, skipped: %s", name, e)

    @staticmethod
    def _decode(blob: bytes | None, key: str) -> CachedResult | None:
        if blob is None:
            return None
        try:
            return CachedResult.model_validate_json(blob)
        except ValidationError:
            logger.warning("discarding undecodable cache entry %s", key)
            return None


__all__ = ["CacheManager", "DatabaseVersionStore", "TtlPolicy"]
