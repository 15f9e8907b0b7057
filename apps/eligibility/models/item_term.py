"""item_terms model. Taxonomy membership (categories) of content items."""

from sqlalchemy import BigInteger, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from apps.eligibility.models.base import Base


class ItemTerm(Base):
    __tablename__ = "item_terms"
    __table_args__ = (Index("ix_item_terms_taxonomy_term", "taxonomy", "term_id"),)

    item_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("content_items.id", ondelete="CASCADE"), primary_key=True
    )
    term_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    taxonomy: Mapped[str] = mapped_column(String(32), primary_key=True, default="category")

    item = relationship("ContentItem", back_populates="terms")
