"""Per-job cron loggers. Output goes to stdout and <CRON_LOG_DIR>/cron_<job>.log."""

import logging
import sys
from pathlib import Path

from cron.config import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def get_logger(job_name: str, log_dir: str | None = None) -> logging.Logger:
    """Logger for one job. Handlers are attached once per job name; later calls reuse them."""
    logger = logging.getLogger(f"cron.{job_name}")
    if logger.handlers:
        return logger
    logger.setLevel(logging.INFO)

    target = Path(log_dir or config.LOG_DIR)
    target.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)
    for handler in (
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(target / f"cron_{job_name}.log", encoding="utf-8"),
    ):
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
