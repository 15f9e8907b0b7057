"""Cache sweep: drop persistent eligibility cache rows nobody can reach any more.

Rows become unreachable when they expire or when the global cache version is
bumped (their key embeds the old version). Correctness never depends on this
job; it only keeps the eligibility_cache table small.

For each partition in PARTITIONS: CacheManager.sweep(), log rows removed.

Run from the project root: python -m cron.cache_sweep
"""

import sys

from sqlalchemy.orm import Session, sessionmaker

from apps.eligibility.services.cache import CacheManager, DatabaseVersionStore
from apps.eligibility.services.cache_tiers import DatabaseCacheTier, NullCacheTier
from cron.config import config
from cron.db import get_session_factory
from cron.logging import get_logger


def sweep_partition(partition_id: str, session_factory: sessionmaker[Session]) -> int:
    manager = CacheManager(
        partition_id,
        DatabaseVersionStore(session_factory),
        fast_tier=NullCacheTier(),
        persistent_tier=DatabaseCacheTier(partition_id, session_factory),
    )
    return manager.sweep()


def run(partitions: list[str], session_factory: sessionmaker[Session]) -> dict[str, int]:
    logger = get_logger("cache_sweep")
    removed: dict[str, int] = {}
    for partition_id in partitions:
        removed[partition_id] = sweep_partition(partition_id, session_factory)
        logger.info("partition=%s removed=%d", partition_id, removed[partition_id])
    logger.info("cache sweep done: %d rows across %d partitions", sum(removed.values()), len(removed))
    return removed


def main() -> int:
    logger = get_logger("cache_sweep")
    if not config.SWEEP_ENABLED:
        logger.info("cache sweep disabled (CACHE_SWEEP_ENABLED=false)")
        return 0
    run(config.PARTITIONS, get_session_factory())
    return 0


if __name__ == "__main__":
    sys.exit(main())
