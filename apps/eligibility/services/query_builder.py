"""Translate a QueryDescriptor into filter representations.

A descriptor is first reduced to a closed set of filter clauses. Both
representations are built by dispatching over the same clauses, so they
select the same items:

  - build_structured_args: declarative filter description, run by the corpus
    store through the ORM (used for counts).
  - build_scan_fragment: explicit JOIN / WHERE SQL with bind parameters, run
    by the batch scan.

Pure functions; no I/O, no settings lookups.
"""

from dataclasses import dataclass, field
from typing import Any, Union

from apps.eligibility.schemas.descriptor import PROTECTED_VALUE, QueryDescriptor

CATEGORY_TAXONOMY = "category"
NOT_EXISTS = "NOT EXISTS"
NOT_EQUAL = "!="


@dataclass(frozen=True)
class ContentTypeClause:
    content_type: str


@dataclass(frozen=True)
class StatusClause:
    statuses: tuple[str, ...]


@dataclass(frozen=True)
class CategoryClause:
    term_id: int
    taxonomy: str = CATEGORY_TAXONOMY


@dataclass(frozen=True)
class AuthorClause:
    author_id: int


@dataclass(frozen=True)
class ArtifactAbsentClause:
    """Item must not carry the workflow's artifact meta key."""

    meta_key: str


@dataclass(frozen=True)
class NotProtectedClause:
    """Item must not have the protection key set to the protected sentinel."""

    meta_key: str
    protected_value: str = PROTECTED_VALUE


FilterClause = Union[
    ContentTypeClause,
    StatusClause,
    CategoryClause,
    AuthorClause,
    ArtifactAbsentClause,
    NotProtectedClause,
]


def filter_clauses(d: QueryDescriptor) -> list[FilterClause]:
    """Ordered filter clauses for a descriptor."""
    clauses: list[FilterClause] = [ContentTypeClause(d.content_type), StatusClause(d.statuses)]
    if d.category_id:
        clauses.append(CategoryClause(d.category_id))
    if d.author_id:
        clauses.append(AuthorClause(d.author_id))
    if not d.allow_recompute:
        clauses.append(ArtifactAbsentClause(d.workflow.artifact_key))
    if not d.allow_override_protected:
        clauses.append(NotProtectedClause(d.workflow.protection_key))
    return clauses


# --- structured args ---


@dataclass(frozen=True)
class MetaCondition:
    key: str
    compare: str
    value: str | None = None


@dataclass(frozen=True)
class MetaGroup:
    relation: str
    conditions: tuple[Union[MetaCondition, "MetaGroup"], ...]


@dataclass(frozen=True)
class StructuredArgs:
    """Filter description for an ORM read. Only ids are fetched; related-data prefetch is off."""

    content_type: str
    statuses: tuple[str, ...]
    category_id: int | None = None
    author_id: int | None = None
    meta_query: MetaGroup | None = None
    fields: str = "ids"
    posts_per_page: int = 500
    update_meta_cache: bool = False
    update_term_cache: bool = False
    cache_results: bool = False


def build_structured_args(d: QueryDescriptor) -> StructuredArgs:
    content_type = d.content_type
    statuses: tuple[str, ...] = ()
    category_id: int | None = None
    author_id: int | None = None
    meta: list[MetaCondition | MetaGroup] = []

    for clause in filter_clauses(d):
        if isinstance(clause, ContentTypeClause):
            content_type = clause.content_type
        elif isinstance(clause, StatusClause):
            statuses = clause.statuses
        elif isinstance(clause, CategoryClause):
            category_id = clause.term_id
        elif isinstance(clause, AuthorClause):
            author_id = clause.author_id
        elif isinstance(clause, ArtifactAbsentClause):
            meta.append(MetaCondition(key=clause.meta_key, compare=NOT_EXISTS))
        elif isinstance(clause, NotProtectedClause):
            meta.append(
                MetaGroup(
                    relation="OR",
                    conditions=(
                        MetaCondition(key=clause.meta_key, compare=NOT_EXISTS),
                        MetaCondition(key=clause.meta_key, compare=NOT_EQUAL, value=clause.protected_value),
                    ),
                )
            )
        else:
            raise TypeError(f"Unhandled filter clause: {clause!r}")

    return StructuredArgs(
        content_type=content_type,
        statuses=statuses,
        category_id=category_id,
        author_id=author_id,
        meta_query=MetaGroup(relation="AND", conditions=tuple(meta)) if meta else None,
    )


# --- scan fragment ---


@dataclass(frozen=True)
class ScanFragment:
    """JOIN and WHERE clauses over `content_items p`. Values are bound via params, never inlined."""

    joins: tuple[str, ...]
    wheres: tuple[str, ...]
    params: dict[str, Any] = field(default_factory=dict)

    def sql(self, extra_wheres: tuple[str, ...] = ()) -> str:
        """Render `FROM ... [JOIN ...] WHERE ...`."""
        sql = "FROM content_items p"
        if self.joins:
            sql += " " + " ".join(self.joins)
        wheres = self.wheres + tuple(extra_wheres)
        if wheres:
            sql += " WHERE " + " AND ".join(wheres)
        return sql


def build_scan_fragment(d: QueryDescriptor) -> ScanFragment:
    joins: list[str] = []
    wheres: list[str] = []
    params: dict[str, Any] = {}

    for clause in filter_clauses(d):
        if isinstance(clause, ContentTypeClause):
            wheres.append("p.content_type = :content_type")
            params["content_type"] = clause.content_type
        elif isinstance(clause, StatusClause):
            if len(clause.statuses) == 1:
                wheres.append("p.status = :status")
                params["status"] = clause.statuses[0]
            else:
                names = [f"status_{i}" for i in range(len(clause.statuses))]
                wheres.append("p.status IN (" + ", ".join(f":{n}" for n in names) + ")")
                params.update(zip(names, clause.statuses))
        elif isinstance(clause, CategoryClause):
            joins.append("JOIN item_terms tr ON tr.item_id = p.id AND tr.taxonomy = :taxonomy")
            wheres.append("tr.term_id = :category_id")
            params["taxonomy"] = clause.taxonomy
            params["category_id"] = clause.term_id
        elif isinstance(clause, AuthorClause):
            wheres.append("p.author_id = :author_id")
            params["author_id"] = clause.author_id
        elif isinstance(clause, ArtifactAbsentClause):
            joins.append(
                "LEFT JOIN item_meta pm_exist ON pm_exist.item_id = p.id AND pm_exist.meta_key = :artifact_key"
            )
            wheres.append("pm_exist.meta_id IS NULL")
            params["artifact_key"] = clause.meta_key
        elif isinstance(clause, NotProtectedClause):
            joins.append(
                "LEFT JOIN item_meta pm_prot ON pm_prot.item_id = p.id AND pm_prot.meta_key = :protection_key"
            )
            wheres.append("(pm_prot.meta_id IS NULL OR pm_prot.meta_value != :protected_value)")
            params["protection_key"] = clause.meta_key
            params["protected_value"] = clause.protected_value
        else:
            raise TypeError(f"Unhandled filter clause: {clause!r}")

    return ScanFragment(joins=tuple(joins), wheres=tuple(wheres), params=params)


__all__ = [
    "ArtifactAbsentClause",
    "AuthorClause",
    "CategoryClause",
    "ContentTypeClause",
    "FilterClause",
    "MetaCondition",
    "MetaGroup",
    "NotProtectedClause",
    "ScanFragment",
    "StatusClause",
    "StructuredArgs",
    "build_scan_fragment",
    "build_structured_args",
    "filter_clauses",
]
