from __future__ import annotations

import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import TextIO

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s - %(message)s"
LOGS_DIR = Path("logs")


def attach_handlers(logger: logging.Logger, log_file: str, stream: TextIO) -> logging.Logger:
    """Point ``logger`` at ``logs/<log_file>`` (rotated nightly, 30 kept) and ``stream``."""
    LOGS_DIR.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers: list[logging.Handler] = [
        TimedRotatingFileHandler(LOGS_DIR / log_file, when="midnight", backupCount=30, encoding="utf-8"),
        logging.StreamHandler(stream),
    ]
    logger.handlers.clear()
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    return logger
