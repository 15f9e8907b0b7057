"""Invalidate cached eligibility when the corpus changes.

Session events mark a session dirty when it flushes ContentItem / ItemMeta /
ItemTerm changes (or runs an ORM bulk INSERT/UPDATE/DELETE against them); the next
successful commit bumps the cache version. A rollback clears the mark.
Raw SQL writes bypass these hooks; callers doing those must call invalidate_all().
"""

import logging
from itertools import chain
from typing import Callable

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session, sessionmaker

from apps.eligibility.models.content_item import ContentItem
from apps.eligibility.models.item_meta import ItemMeta
from apps.eligibility.models.item_term import ItemTerm
from apps.eligibility.services.engine import EligibilityEngine

logger = logging.getLogger(__name__)

WATCHED_MODELS = (ContentItem, ItemMeta, ItemTerm)
_DIRTY_FLAG = "eligibility_corpus_dirty"


def register_invalidation_hooks(
    session_factory: sessionmaker[Session],
    engine: EligibilityEngine,
) -> Callable[[], None]:
    """Install the listeners on session_factory. Returns a callable that removes them."""

    def _after_flush(session: Session, flush_context) -> None:
        touched = chain(session.new, session.dirty, session.deleted)
        if any(isinstance(obj, WATCHED_MODELS) for obj in touched):
            session.info[_DIRTY_FLAG] = True

    def _do_orm_execute(state: ORMExecuteState) -> None:
        if not (state.is_insert or state.is_update or state.is_delete):
            return
        mapper = state.bind_mapper
        if mapper is not None and mapper.class_ in WATCHED_MODELS:
            state.session.info[_DIRTY_FLAG] = True

    def _after_commit(session: Session) -> None:
        if session.info.pop(_DIRTY_FLAG, False):
            logger.debug("corpus changed; invalidating eligibility cache")
            engine.invalidate_all()

    def _after_rollback(session: Session) -> None:
        session.info.pop(_DIRTY_FLAG, None)

    listeners = [
        ("after_flush", _after_flush),
        ("do_orm_execute", _do_orm_execute),
        ("after_commit", _after_commit),
        ("after_rollback", _after_rollback),
    ]
    for name, fn in listeners:
        event.listen(session_factory, name, fn)

    def remove() -> None:
        for name, fn in listeners:
            event.remove(session_factory, name, fn)

    return remove


__all__ = ["WATCHED_MODELS", "register_invalidation_hooks"]
