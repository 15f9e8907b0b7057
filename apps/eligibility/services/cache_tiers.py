"""Cache tiers: byte stores keyed by string with a TTL.

Tiers raise TransientCacheError on any backend failure; CacheManager turns that
into a miss (get) or a no-op (set).

  - MemoryCacheTier: in-process dict, monotonic-clock expiry.
  - RedisCacheTier: shared fast tier (SETEX under a namespace).
  - DatabaseCacheTier: persistent tier on the eligibility_cache table.
  - NullCacheTier: caching disabled.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

import redis
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from apps.eligibility.services.errors import TransientCacheError
from apps.eligibility.services.partition_guard import require_partition_id
from apps.eligibility.services.repo import delete_stale_cache_rows, get_cache_row, upsert_cache_row


class CacheTier(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes, ttl_seconds: int, *, version: int = 0) -> None: ...


class NullCacheTier:
    """Never stores anything."""

    def get(self, key: str) -> bytes | None:
        return None

    def set(self, key: str, value: bytes, ttl_seconds: int, *, version: int = 0) -> None:
        return None


class MemoryCacheTier:
    """Process-local tier. Entries expire lazily on read."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 1024) -> None:
        self._clock = clock
        self._max_entries = max_entries
        self._entries: dict[str, tuple[float, bytes]] = {}

    def get(self, key: str) -> bytes | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= self._clock():
            self._entries.pop(key, None)
            return None
        return value

    def set(self, key: str, value: bytes, ttl_seconds: int, *, version: int = 0) -> None:
        if ttl_seconds <= 0:
            return
        if key not in self._entries and len(self._entries) >= self._max_entries:
            self._evict()
        self._entries[key] = (self._clock() + ttl_seconds, value)

    def flush(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _evict(self) -> None:
        now = self._clock()
        for key in [k for k, (exp, _) in self._entries.items() if exp <= now]:
            del self._entries[key]
        if len(self._entries) >= self._max_entries:
            # Oldest insertion first.
            self._entries.pop(next(iter(self._entries)))


class RedisCacheTier:
    """Shared fast tier. Keys are prefixed with the namespace."""

    def __init__(self, client: "redis.Redis", namespace: str = "eligibility") -> None:
        self.client = client
        self.namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "eligibility") -> "RedisCacheTier":
        client = redis.Redis.from_url(url, socket_connect_timeout=2, socket_timeout=2)
        return cls(client, namespace=namespace)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> bytes | None:
        try:
            value = self.client.get(self._key(key))
        except redis.RedisError as e:
            raise TransientCacheError(f"redis get failed: {e}") from e
        if value is None:
            return None
        return value if isinstance(value, bytes) else str(value).encode("utf-8")

    def set(self, key: str, value: bytes, ttl_seconds: int, *, version: int = 0) -> None:
        if ttl_seconds <= 0:
            return
        try:
            self.client.setex(self._key(key), ttl_seconds, value)
        except redis.RedisError as e:
            raise TransientCacheError(f"redis set failed: {e}") from e

    def ping(self) -> bool:
        """Check if Redis is reachable."""
        try:
            return bool(self.client.ping())
        except redis.RedisError:
            return False


class DatabaseCacheTier:
    """Persistent tier on eligibility_cache. Entries carry the cache version they were written under."""

    def __init__(self, partition_id: str | None, session_factory: sessionmaker[Session]) -> None:
        self._partition_id = require_partition_id(partition_id)
        self._factory = session_factory

    def get(self, key: str) -> bytes | None:
        try:
            payload_json = get_cache_row(self._factory, self._partition_id, key)
        except SQLAlchemyError as e:
            raise TransientCacheError(f"cache table read failed: {e}") from e
        if payload_json is None:
            return None
        return payload_json.encode("utf-8")

    def set(self, key: str, value: bytes, ttl_seconds: int, *, version: int = 0) -> None:
        expires_at = None
        if ttl_seconds > 0:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        try:
            upsert_cache_row(
                self._factory,
                self._partition_id,
                key,
                value.decode("utf-8"),
                cache_version=version,
                expires_at=expires_at,
            )
        except SQLAlchemyError as e:
            raise TransientCacheError(f"cache table write failed: {e}") from e

    def sweep(self, current_version: int) -> int:
        """Delete expired rows and rows from older cache versions."""
        try:
            return delete_stale_cache_rows(self._factory, self._partition_id, current_version)
        except SQLAlchemyError as e:
            raise TransientCacheError(f"cache table sweep failed: {e}") from e


__all__ = [
    "CacheTier",
    "DatabaseCacheTier",
    "MemoryCacheTier",
    "NullCacheTier",
    "RedisCacheTier",
]
