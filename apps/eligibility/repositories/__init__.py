"""Repository layer: partition-scoped queries and helpers."""

from apps.eligibility.repositories.partition_filters import (
    partition_where,
    select_cache_entry_for_partition,
    select_content_item_ids_for_partition,
)

__all__ = [
    "partition_where",
    "select_cache_entry_for_partition",
    "select_content_item_ids_for_partition",
]
