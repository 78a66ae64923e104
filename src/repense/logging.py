"""Centralized logging configuration for Repense.

Console logging by default, with an optional rotating file log when a log
directory is configured.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

# Default configuration
DEFAULT_LOG_FILE = "repense.log"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5
DEFAULT_LOG_LEVEL = "INFO"

# Log format
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    log_dir: str | Path | None = None,
    log_file: str = DEFAULT_LOG_FILE,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    level: str | None = None,
    console: bool = True,
) -> logging.Logger:
    """Set up logging for the repense package.

    Args:
        log_dir: Directory for log files. No file is written when unset.
                 Can be overridden with REPENSE_LOG_DIR environment variable.
        log_file: Log file name. Defaults to 'repense.log'.
        max_bytes: Maximum size per log file before rotation. Defaults to 10MB.
        backup_count: Number of backup files to keep. Defaults to 5.
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to INFO.
               Can be overridden with REPENSE_LOG_LEVEL environment variable.
        console: Whether to log to console. Defaults to True.

    Returns:
        The root repense logger.
    """
    if log_dir is None:
        log_dir = os.environ.get("REPENSE_LOG_DIR")

    if level is None:
        level = os.environ.get("REPENSE_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("repense")
    logger.setLevel(log_level)

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    log_path: Path | None = None
    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / log_file
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(log_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logger.info("Repense logging initialized (level=%s, file=%s)", level, log_path)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a component.

    Args:
        name: Component name (e.g., 'enrollment', 'store').
              Will be prefixed with 'repense.'.

    Returns:
        Logger instance for the component.
    """
    if not name.startswith("repense."):
        name = f"repense.{name}"
    return logging.getLogger(name)


def sanitize_for_log(text: str) -> str:
    """Mask personal data (CPF, phone, email) before it reaches a log line.

    Args:
        text: Text that may contain personal data.

    Returns:
        Sanitized text safe for logging.
    """
    patterns = [
        (r"\b\d{3}\.?\d{3}\.?\d{3}-?\d{2}\b", "[CPF]"),
        (r"\(?\b\d{2}\)?\s?9?\d{4}-?\d{4}\b", "[PHONE]"),
        (r"[\w.+-]+@[\w-]+\.[\w.-]+", "[EMAIL]"),
    ]

    result = text
    for pat, replacement in patterns:
        result = re.sub(pat, replacement, result)

    return result
