"""Partition-scoped query choke point. All corpus and cache repo methods must use require_partition_id."""

from apps.eligibility.repositories.partition_filters import partition_where


class PartitionRequiredError(ValueError):
    """Raised when partition_id is None or empty."""

    pass


def require_partition_id(partition_id: str | None) -> str:
    """
    Validate partition_id; return stripped value. Raises PartitionRequiredError if missing/empty.
    Call at start of every partition-scoped repo method.
    """
    if not partition_id or not str(partition_id).strip():
        raise PartitionRequiredError("partition_id is required and must be non-empty")
    return str(partition_id).strip()


__all__ = ["PartitionRequiredError", "partition_where", "require_partition_id"]
