"""Stable hash functions for cache keys."""

import hashlib
import json
from typing import Any, Sequence


def stable_digest(parts: Sequence[Any]) -> str:
    """SHA-256 hex of the JSON encoding of an ordered tuple. Same parts always yield the same digest."""
    payload = json.dumps(list(parts), separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()
