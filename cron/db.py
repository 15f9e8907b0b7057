"""Cron DB sessions. Reuses apps.eligibility.db session helpers on the cron DATABASE_URL."""

from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from apps.eligibility.db import make_session_factory
from cron.config import config


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker[Session]:
    """Session factory bound to config.DATABASE_URL. Same settings as the engine's own factory."""
    return make_session_factory(create_engine(config.DATABASE_URL, pool_pre_ping=True))
