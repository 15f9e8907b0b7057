"""Repository layer. Corpus reads and cache/version table access.

RULE: Repo is the ONLY place allowed to run DB reads/writes (session.execute, session_scope).
All partition-scoped queries MUST use partition_filters (select_*_for_partition / partition_where).

GUARD: Every partition-scoped function MUST call require_partition_id(partition_id) before any DB access.
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator, NamedTuple, Protocol

from sqlalchemy import ColumnElement, and_, delete, exists, func, insert, not_, or_, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from apps.eligibility.db import session_scope
from apps.eligibility.models.cache_version import CacheVersion
from apps.eligibility.models.content_item import ContentItem
from apps.eligibility.models.eligibility_cache import EligibilityCache
from apps.eligibility.models.item_meta import ItemMeta
from apps.eligibility.models.item_term import ItemTerm
from apps.eligibility.repositories.partition_filters import (
    partition_where,
    select_cache_entry_for_partition,
    select_content_item_ids_for_partition,
)
from apps.eligibility.services.errors import DataAccessError
from apps.eligibility.services.partition_guard import require_partition_id
from apps.eligibility.services.query_builder import (
    CATEGORY_TAXONOMY,
    NOT_EQUAL,
    NOT_EXISTS,
    MetaCondition,
    MetaGroup,
    ScanFragment,
    StructuredArgs,
)

logger = logging.getLogger(__name__)


class ScanRow(NamedTuple):
    id: int
    surrogate_key: int


class CorpusStore(Protocol):
    """What the engine needs from the corpus."""

    def count(self, args: StructuredArgs) -> int: ...

    def scan(self, fragment: ScanFragment, cursor: int, limit: int) -> list[ScanRow]: ...

    def key_exists(self, item_id: int, meta_key: str) -> bool: ...


@contextmanager
def _data_access(operation: str) -> Generator[None, None, None]:
    """Re-raise driver/ORM failures as DataAccessError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("corpus %s failed: %s", operation, e)
        raise DataAccessError(f"corpus {operation} failed: {e}") from e


def _meta_expression(node: MetaCondition | MetaGroup) -> ColumnElement[bool]:
    if isinstance(node, MetaGroup):
        parts = [_meta_expression(c) for c in node.conditions]
        return or_(*parts) if node.relation == "OR" else and_(*parts)
    row_for_key = and_(ItemMeta.item_id == ContentItem.id, ItemMeta.meta_key == node.key)
    if node.compare == NOT_EXISTS:
        return not_(exists().where(row_for_key))
    if node.compare == NOT_EQUAL:
        return exists().where(row_for_key, ItemMeta.meta_value != node.value)
    raise ValueError(f"Unsupported meta compare: {node.compare!r}")


class SqlCorpusStore:
    """CorpusStore over the content_items / item_meta / item_terms tables of one partition."""

    def __init__(self, partition_id: str | None, session_factory: sessionmaker[Session]) -> None:
        self._partition_id = require_partition_id(partition_id)
        self._factory = session_factory

    @property
    def partition_id(self) -> str:
        return self._partition_id

    def structured_select(self, args: StructuredArgs):
        """ORM select of item ids matching structured args. Partition-filtered."""
        stmt = select_content_item_ids_for_partition(self._partition_id).where(
            ContentItem.content_type == args.content_type
        )
        if len(args.statuses) == 1:
            stmt = stmt.where(ContentItem.status == args.statuses[0])
        elif args.statuses:
            stmt = stmt.where(ContentItem.status.in_(args.statuses))
        if args.category_id:
            stmt = stmt.where(
                exists().where(
                    ItemTerm.item_id == ContentItem.id,
                    ItemTerm.taxonomy == CATEGORY_TAXONOMY,
                    ItemTerm.term_id == args.category_id,
                )
            )
        if args.author_id:
            stmt = stmt.where(ContentItem.author_id == args.author_id)
        if args.meta_query is not None and args.meta_query.conditions:
            stmt = stmt.where(_meta_expression(args.meta_query))
        return stmt

    def count(self, args: StructuredArgs) -> int:
        stmt = select(func.count()).select_from(self.structured_select(args).subquery())
        with _data_access("count"):
            with session_scope(self._factory) as session:
                return int(session.execute(stmt).scalar_one())

    def list_ids(self, args: StructuredArgs) -> list[int]:
        """All matching ids, ascending. Unbounded; intended for small corpora and verification."""
        stmt = self.structured_select(args).order_by(ContentItem.id.asc())
        with _data_access("list_ids"):
            with session_scope(self._factory) as session:
                return [int(r) for r in session.scalars(stmt).all()]

    def scan(self, fragment: ScanFragment, cursor: int, limit: int) -> list[ScanRow]:
        """One page of the keyset scan: ids > cursor, ascending, at most `limit` rows."""
        sql = text(
            "SELECT DISTINCT p.id "
            + fragment.sql(extra_wheres=("p.partition_id = :partition_id", "p.id > :cursor"))
            + " ORDER BY p.id ASC LIMIT :limit"
        )
        params = dict(fragment.params)
        params.update({"partition_id": self._partition_id, "cursor": cursor, "limit": limit})
        with _data_access("scan"):
            with session_scope(self._factory) as session:
                rows = session.execute(sql, params).fetchall()
        return [ScanRow(id=int(r[0]), surrogate_key=int(r[0])) for r in rows]

    def key_exists(self, item_id: int, meta_key: str) -> bool:
        stmt = select(
            exists().where(
                ItemMeta.item_id == item_id,
                ItemMeta.meta_key == meta_key,
                ItemMeta.item_id == ContentItem.id,
                partition_where(ContentItem, self._partition_id),
            )
        )
        with _data_access("key_exists"):
            with session_scope(self._factory) as session:
                return bool(session.execute(stmt).scalar())


# --- cache version counter ---


def get_cache_version(factory: sessionmaker[Session], scope: str) -> int:
    """Current cache version for scope; 1 when never bumped."""
    with session_scope(factory) as session:
        version = session.execute(select(CacheVersion.version).where(CacheVersion.scope == scope)).scalar()
        return int(version) if version is not None else 1


def increment_cache_version(factory: sessionmaker[Session], scope: str) -> int:
    """
    Atomically bump the cache version and return the new value.
    Single UPDATE ... RETURNING; never read-modify-write. Concurrent callers each get their own bump.
    """
    versions = CacheVersion.__table__
    stmt = (
        update(versions)
        .where(versions.c.scope == scope)
        .values(version=versions.c.version + 1, updated_at=func.now())
        .returning(versions.c.version)
    )
    with session_scope(factory) as session:
        new_version = session.execute(stmt).scalar()
        if new_version is not None:
            return int(new_version)
    # First bump ever: the row starts at the implicit version 1.
    try:
        with session_scope(factory) as session:
            session.execute(insert(versions).values(scope=scope, version=2))
        return 2
    except IntegrityError:
        # Another writer created the row first; our bump goes on top of theirs.
        with session_scope(factory) as session:
            return int(session.execute(stmt).scalar_one())


# --- persistent cache rows ---


def get_cache_row(
    factory: sessionmaker[Session],
    partition_id: str | None,
    key: str,
) -> str | None:
    """Return payload_json for a live entry, or None if missing or expired."""
    partition_id = require_partition_id(partition_id)
    now = datetime.now(timezone.utc)
    stmt = (
        select_cache_entry_for_partition(partition_id)
        .where(EligibilityCache.cache_key == key)
        .where(or_(EligibilityCache.expires_at.is_(None), EligibilityCache.expires_at > now))
    )
    with session_scope(factory) as session:
        row = session.scalars(stmt).first()
        if not row:
            return None
        return row.payload_json


def upsert_cache_row(
    factory: sessionmaker[Session],
    partition_id: str | None,
    key: str,
    payload_json: str,
    cache_version: int,
    expires_at: datetime | None,
) -> None:
    """Insert or replace a cache entry."""
    partition_id = require_partition_id(partition_id)
    with session_scope(factory) as session:
        row = session.get(EligibilityCache, key)
        if row:
            row.partition_id = partition_id
            row.payload_json = payload_json
            row.cache_version = cache_version
            row.expires_at = expires_at
        else:
            session.add(
                EligibilityCache(
                    cache_key=key,
                    partition_id=partition_id,
                    cache_version=cache_version,
                    payload_json=payload_json,
                    expires_at=expires_at,
                )
            )


def delete_stale_cache_rows(
    factory: sessionmaker[Session],
    partition_id: str | None,
    current_version: int,
) -> int:
    """Delete entries that expired or were written under an older cache version. Returns rows removed."""
    partition_id = require_partition_id(partition_id)
    now = datetime.now(timezone.utc)
    entries = EligibilityCache.__table__
    stmt = (
        delete(entries)
        .where(entries.c.partition_id == partition_id)
        .where(
            or_(
                entries.c.cache_version < current_version,
                and_(entries.c.expires_at.is_not(None), entries.c.expires_at <= now),
            )
        )
    )
    with session_scope(factory) as session:
        return int(session.execute(stmt).rowcount or 0)
