"""eligibility_cache model. Persistent cache tier for resolved eligibility results."""

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from apps.eligibility.models.base import Base


class EligibilityCache(Base):
    """Cached id lists / counts per partition, stamped with the cache version they were built under."""

    __tablename__ = "eligibility_cache"
    __table_args__ = (
        Index("ix_eligibility_cache_partition_id", "partition_id"),
        Index("ix_eligibility_cache_expires_at", "expires_at"),
        Index("ix_eligibility_cache_version", "cache_version"),
    )

    cache_key: Mapped[str] = mapped_column(String(255), primary_key=True)
    partition_id: Mapped[str] = mapped_column(String(255), nullable=False)
    cache_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    payload_json: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[DateTime | None] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=True,
    )
    expires_at: Mapped[DateTime | None] = mapped_column(DateTime(timezone=True), nullable=True)
