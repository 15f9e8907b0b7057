"""SQLAlchemy models. Corpus tables carry partition_id; queries MUST filter by partition_id."""

from apps.eligibility.models.base import Base
from apps.eligibility.models.cache_version import CacheVersion
from apps.eligibility.models.content_item import ContentItem
from apps.eligibility.models.eligibility_cache import EligibilityCache
from apps.eligibility.models.item_meta import ItemMeta
from apps.eligibility.models.item_term import ItemTerm

__all__ = [
    "Base",
    "CacheVersion",
    "ContentItem",
    "EligibilityCache",
    "ItemMeta",
    "ItemTerm",
]
