"""Fixture corpus helpers shared by the integration tests."""

from dataclasses import dataclass, field

from sqlalchemy import insert, select
from sqlalchemy.orm import Session, sessionmaker

from apps.eligibility.db import session_scope
from apps.eligibility.models import ContentItem, ItemMeta, ItemTerm


@dataclass
class ItemSpec:
    content_type: str = "post"
    status: str = "publish"
    author_id: int | None = None
    categories: tuple[int, ...] = ()
    meta: dict[str, str] = field(default_factory=dict)


def seed_corpus(
    factory: sessionmaker[Session],
    specs: list[ItemSpec],
    partition_id: str = "default",
) -> list[int]:
    """Insert items (with meta and category terms) and return their ids in insertion order."""
    ids: list[int] = []
    with session_scope(factory) as session:
        for spec in specs:
            item = ContentItem(
                partition_id=partition_id,
                content_type=spec.content_type,
                status=spec.status,
                author_id=spec.author_id,
            )
            item.meta = [ItemMeta(meta_key=k, meta_value=v) for k, v in spec.meta.items()]
            item.terms = [ItemTerm(term_id=t, taxonomy="category") for t in spec.categories]
            session.add(item)
            session.flush()
            ids.append(item.id)
    return ids


def seed_plain_items(
    factory: sessionmaker[Session],
    count: int,
    partition_id: str = "default",
    content_type: str = "post",
    status: str = "publish",
) -> None:
    """Bulk insert `count` bare items (no meta, no terms). For large corpora."""
    rows = [
        {"partition_id": partition_id, "content_type": content_type, "status": status}
        for _ in range(count)
    ]
    with session_scope(factory) as session:
        session.execute(insert(ContentItem.__table__), rows)


def all_item_ids(factory: sessionmaker[Session], partition_id: str = "default") -> list[int]:
    with session_scope(factory) as session:
        stmt = select(ContentItem.id).where(ContentItem.partition_id == partition_id).order_by(ContentItem.id)
        return list(session.scalars(stmt).all())


def mark_meta(
    factory: sessionmaker[Session],
    item_ids: list[int],
    meta_key: str,
    meta_value: str = "x",
) -> None:
    rows = [{"item_id": i, "meta_key": meta_key, "meta_value": meta_value} for i in item_ids]
    if not rows:
        return
    with session_scope(factory) as session:
        session.execute(insert(ItemMeta.__table__), rows)
