"""
Logging setup for the vision runtime.
"""

from __future__ import annotations

import logging
import os
from typing import Iterable

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Chatty third-party loggers held at WARNING unless the app runs at DEBUG.
NOISY_LOGGERS = ("onnxruntime", "asyncio")


def setup_logging(log_path: str, log_level: str, quiet: Iterable[str] = NOISY_LOGGERS) -> logging.Logger:
    """
    Configure the root logger with a file and a console handler.

    Args:
        log_path: Log file; its directory is created if missing.
        log_level: Level name, e.g. "INFO".
        quiet: Logger names raised to WARNING when log_level is above DEBUG.
    """
    log_dir = os.path.dirname(log_path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_path),
            logging.StreamHandler(),
        ],
        force=True,
    )
    if level > logging.DEBUG:
        for name in quiet:
            logging.getLogger(name).setLevel(logging.WARNING)
    return logging.getLogger()
