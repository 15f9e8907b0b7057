"""Engine config from environment. Read once at the edge and passed in; core components never read env."""

import os
from dataclasses import dataclass, field
from typing import Mapping

from apps.eligibility.services.batch import BatchConfig
from apps.eligibility.services.cache import TtlPolicy
from apps.eligibility.services.memory import parse_memory_limit


def _int(val: str | None, default: int) -> int:
    if val is None or val.strip() == "":
        return default
    try:
        return int(val.strip())
    except ValueError:
        return default


def _float(val: str | None, default: float) -> float:
    if val is None or val.strip() == "":
        return default
    try:
        return float(val.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class EngineSettings:
    partition_id: str = "default"
    fast_tier: str = "memory"  # memory | redis | none
    redis_url: str = "redis://localhost:6379/0"
    batch: BatchConfig = field(default_factory=BatchConfig)
    ttl: TtlPolicy = field(default_factory=TtlPolicy)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EngineSettings":
        env = os.environ if environ is None else environ
        batch_defaults = BatchConfig()
        ttl_defaults = TtlPolicy()
        return cls(
            partition_id=(env.get("ELIGIBILITY_PARTITION_ID") or "default").strip(),
            fast_tier=(env.get("ELIGIBILITY_FAST_TIER") or "memory").strip().lower(),
            redis_url=env.get("REDIS_URL") or "redis://localhost:6379/0",
            batch=BatchConfig(
                base_batch_size=max(1, _int(env.get("ELIGIBILITY_BASE_BATCH_SIZE"), batch_defaults.base_batch_size)),
                min_batch_size=max(1, _int(env.get("ELIGIBILITY_MIN_BATCH_SIZE"), batch_defaults.min_batch_size)),
                max_items=_int(env.get("ELIGIBILITY_MAX_ITEMS"), batch_defaults.max_items),
                time_budget_seconds=_float(
                    env.get("ELIGIBILITY_TIME_BUDGET_SECONDS"), batch_defaults.time_budget_seconds
                ),
                memory_limit_bytes=parse_memory_limit(env.get("ELIGIBILITY_MEMORY_LIMIT")),
            ),
            ttl=TtlPolicy(
                long_seconds=_int(env.get("ELIGIBILITY_TTL_LONG"), ttl_defaults.long_seconds),
                extended_seconds=_int(env.get("ELIGIBILITY_TTL_EXTENDED"), ttl_defaults.extended_seconds),
                default_seconds=_int(env.get("ELIGIBILITY_TTL_DEFAULT"), ttl_defaults.default_seconds),
                short_seconds=_int(env.get("ELIGIBILITY_TTL_SHORT"), ttl_defaults.short_seconds),
                high_water=_int(env.get("ELIGIBILITY_TTL_HIGH_WATER"), ttl_defaults.high_water),
                low_water=_int(env.get("ELIGIBILITY_TTL_LOW_WATER"), ttl_defaults.low_water),
            ),
        )
