"""
Structured JSON logging for the service.

Every record is written as one JSON object per line so uploads and failed
queries can be followed by storage key in any log shipper.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional, Union


class JsonFormatter(logging.Formatter):
    """Renders a log record, and its traceback if any, as a single JSON line."""

    def format(self, record):
        entry = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry)


def setup_logging(
    log_level: Union[int, str] = logging.INFO, log_file: Optional[Path] = None
) -> logging.Logger:
    """
    Sets up structured JSON logging for the service.

    Args:
        log_level: Numeric level or level name (DEBUG, INFO, WARNING, ...)
        log_file: Optional path of an extra JSON log file

    Returns:
        logging.Logger: The service's package logger
    """
    root_logger = logging.getLogger()

    # Replace whatever handlers an earlier call or the server installed
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if isinstance(log_level, str):
        log_level = getattr(logging, log_level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JsonFormatter())
    root_logger.addHandler(console_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JsonFormatter())
        root_logger.addHandler(file_handler)

    return logging.getLogger("dicom_service")
