from __future__ import annotations

import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from core import logging_config


def _file_handlers(path: Path):
    return [
        handler
        for handler in logging.getLogger().handlers
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == str(path)
    ]


def test_configure_logging_is_idempotent(tmp_path) -> None:
    log_file = tmp_path / "logs" / "sheetstock.log"

    try:
        first = logging_config.configure_logging(path=log_file)
        second = logging_config.configure_logging(path=log_file)

        assert first == second == log_file
        assert len(_file_handlers(log_file)) == 1
        assert logging.getLogger("googleapiclient.discovery_cache").level == logging.ERROR

        logging.getLogger("core.poll_sync").warning("offline")
        for handler in _file_handlers(log_file):
            handler.flush()
        assert "[WARNING] core.poll_sync: offline" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in _file_handlers(log_file):
            logging.getLogger().removeHandler(handler)
            handler.close()
