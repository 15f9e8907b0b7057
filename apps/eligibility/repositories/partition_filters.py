"""Partition-scoped SQL helpers. All partition-scoped ORM queries MUST use these.

Provides:
  - partition_where(model, partition_id): binary expression for WHERE model.partition_id == partition_id
  - select_*_for_partition(partition_id): SQLAlchemy Select with partition filter applied
"""

from sqlalchemy import BinaryExpression, Select, select

from apps.eligibility.models.content_item import ContentItem
from apps.eligibility.models.eligibility_cache import EligibilityCache


def partition_where(model: type, partition_id: str) -> BinaryExpression[bool]:
    """Return WHERE clause: model.partition_id == partition_id."""
    col = getattr(model, "partition_id", None)
    if col is None:
        raise ValueError(f"Model {model.__name__} has no partition_id column")
    return col == partition_id


def select_content_item_ids_for_partition(partition_id: str) -> Select[tuple[int]]:
    """Select content_items.id with partition filter. Add .where() for further filters."""
    return select(ContentItem.id).where(partition_where(ContentItem, partition_id))


def select_cache_entry_for_partition(partition_id: str) -> Select[tuple[EligibilityCache]]:
    """Select from eligibility_cache with partition filter. Add .where() for further filters."""
    return select(EligibilityCache).where(partition_where(EligibilityCache, partition_id))
