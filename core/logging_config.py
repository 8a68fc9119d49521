"""File logging for SheetStock."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from core import app_paths

LOG_FILENAME = "sheetstock.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO, *, path: Optional[Path] = None) -> Path:
    """Attach the SheetStock log file to the root logger and return its path.

    Calling this again with the same path does not add a second handler.
    """

    log_path = path or app_paths.log_path(LOG_FILENAME)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(min(root_logger.level, level) if root_logger.handlers else level)

    if not any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(log_path)
        for handler in root_logger.handlers
    ):
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(file_handler)

    # googleapiclient logs every discovery fetch at INFO
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)
    return log_path


__all__ = ["LOG_FILENAME", "LOG_FORMAT", "configure_logging"]
