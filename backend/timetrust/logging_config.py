"""Root logging setup for processes embedding the engine."""

from __future__ import annotations

import logging
import sys

from timetrust.config import settings


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the root handler once and return the package logger."""
    log_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger = logging.getLogger("timetrust")
    logger.setLevel(log_level)
    return logger
