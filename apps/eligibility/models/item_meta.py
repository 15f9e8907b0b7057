"""item_meta model. Key/value metadata attached to content items (artifacts, protection flags)."""

from sqlalchemy import BigInteger, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from apps.eligibility.models.base import Base, SurrogateKey


class ItemMeta(Base):
    __tablename__ = "item_meta"
    __table_args__ = (Index("ix_item_meta_item_key", "item_id", "meta_key"),)

    meta_id: Mapped[int] = mapped_column(SurrogateKey, primary_key=True, autoincrement=True)
    item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("content_items.id", ondelete="CASCADE"), nullable=False
    )
    meta_key: Mapped[str] = mapped_column(String(255), nullable=False)
    meta_value: Mapped[str | None] = mapped_column(Text, nullable=True)

    item = relationship("ContentItem", back_populates="meta")
