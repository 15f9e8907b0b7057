"""Result schemas returned by the engine and stored in the cache tiers."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class EligibilityResult(BaseModel):
    """Eligible ids in ascending surrogate-key order. complete=False means a guard cut the scan short."""

    model_config = ConfigDict(extra="forbid")

    ids: list[int] = Field(default_factory=list)
    complete: bool = True
    stop_reason: str | None = None

    @property
    def count(self) -> int:
        return len(self.ids)


class CachedResult(BaseModel):
    """Serialized cache entry value. ids is None for count-only entries."""

    model_config = ConfigDict(extra="forbid")

    ids: list[int] | None = None
    count: int
    complete: bool = True
    stored_at: datetime
    ttl_seconds: int

    def to_result(self) -> EligibilityResult:
        return EligibilityResult(ids=list(self.ids or []), complete=self.complete)
