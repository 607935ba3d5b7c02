# ============================================================================
# logging_config.py - Logging Setup Module
# ============================================================================
"""
This module handles:
- Console logging for interactive runs
- JSON-lines log files (all records and errors only) when a log directory is given
- Routing library warnings into the same handlers
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """JSON-lines formatter for the file handlers."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
            "lineNo": record.lineno,
        }

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        # Pipeline errors attach their stage via `extra={"stage": ...}`
        stage = getattr(record, "stage", None)
        if stage is not None:
            log_obj["stage"] = stage

        return json.dumps(log_obj)


def setup_logging(log_level: str = "INFO", log_dir: Optional[str] = None) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Logging level name (DEBUG, INFO, ...)
        log_dir: When given, also write ``app.jsonl`` and ``errors.jsonl`` there
    """
    level = log_level.upper()
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(Path(log_dir) / "app.jsonl")
        file_handler.setLevel(level)
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

        error_handler = logging.FileHandler(Path(log_dir) / "errors.jsonl")
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(error_handler)

    # warnings from the statistics stack are reported through the same handlers
    logging.captureWarnings(True)

    logging.info(f"Logging configured with level {level}")
