"""content_items model. The corpus scanned by the eligibility engine."""

from sqlalchemy import BigInteger, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from apps.eligibility.models.base import Base, SurrogateKey


class ContentItem(Base):
    """A content item. `id` is the surrogate key used for cursor pagination."""

    __tablename__ = "content_items"
    __table_args__ = (
        Index("ix_content_items_partition_type_status", "partition_id", "content_type", "status"),
        Index("ix_content_items_partition_author", "partition_id", "author_id"),
    )

    id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    partition_id: Mapped[str] = mapped_column(String(255), nullable=False)  # indexed via __table_args__
    content_type: Mapped[str] = mapped_column(String(64), nullable=False, default="post")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="publish")
    author_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[DateTime | None] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=True,
    )

    meta = relationship("ItemMeta", back_populates="item", cascade="all, delete-orphan")
    terms = relationship("ItemTerm", back_populates="item", cascade="all, delete-orphan")
