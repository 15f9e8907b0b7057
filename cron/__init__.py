"""Cron package: shared helpers for scheduled jobs."""

from cron.config import config
from cron.db import get_session_factory
from cron.logging import get_logger

__all__ = ["config", "get_logger", "get_session_factory"]
