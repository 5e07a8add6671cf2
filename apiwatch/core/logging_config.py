"""
Logging setup.

Every module logs through `logging.getLogger(__name__)`; this only wires the
root handler and level once at start-up.
"""

import logging

from apiwatch.core.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger from settings (idempotent)."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format=LOG_FORMAT,
        force=True,
    )
    # APScheduler logs every job execution at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
