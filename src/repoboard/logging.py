"""Centralized logging configuration for repoboard.

Console output for the CLI, optional rotating file logs, and a filter that
keeps GitHub tokens out of every record.
"""

from __future__ import annotations

import logging
import os
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEFAULT_LOG_FILE = "repoboard.log"
DEFAULT_MAX_BYTES = 5 * 1024 * 1024  # 5MB
DEFAULT_BACKUP_COUNT = 3
DEFAULT_LOG_LEVEL = "WARNING"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_SENSITIVE_PATTERNS = [
    (re.compile(r"gh[pousr]_[a-zA-Z0-9]{36,}"), "[GITHUB_TOKEN]"),
    (re.compile(r"github_pat_[a-zA-Z0-9_]{22,}"), "[GITHUB_TOKEN]"),
    (re.compile(r"Bearer [a-zA-Z0-9._-]+"), "Bearer [REDACTED]"),
    (re.compile(r"token=[a-zA-Z0-9._-]+"), "token=[REDACTED]"),
]


class RedactingFilter(logging.Filter):
    """Rewrite log records so that tokens never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        sanitized = sanitize_for_log(message)
        if sanitized != message:
            record.msg = sanitized
            record.args = None
        return True


def setup_logging(
    level: str | None = None,
    log_dir: str | Path | None = None,
    log_file: str = DEFAULT_LOG_FILE,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    console: bool = True,
) -> logging.Logger:
    """Configure the "repoboard" logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to WARNING.
               Can be overridden with REPOBOARD_LOG_LEVEL environment variable.
        log_dir: Directory for a rotating log file. No file is written unless
                 this or REPOBOARD_LOG_DIR is set.
        log_file: Log file name inside log_dir.
        max_bytes: Maximum size per log file before rotation.
        backup_count: Number of rotated files to keep.
        console: Whether to log to stderr.

    Returns:
        The root repoboard logger.
    """
    if level is None:
        level = os.environ.get("REPOBOARD_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    log_level = getattr(logging, level.upper(), logging.WARNING)

    if log_dir is None:
        log_dir = os.environ.get("REPOBOARD_LOG_DIR") or None

    logger = logging.getLogger("repoboard")
    logger.setLevel(log_level)
    logger.propagate = False

    # Remove existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    redactor = RedactingFilter()

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path / log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(redactor)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        console_handler.addFilter(redactor)
        logger.addHandler(console_handler)

    logger.debug("repoboard logging initialized (level=%s, dir=%s)", level, log_dir)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a component, prefixed with 'repoboard.'."""
    if not name.startswith("repoboard."):
        name = f"repoboard.{name}"
    return logging.getLogger(name)


def truncate_output(output: str, max_length: int = 5000) -> str:
    """Truncate long output (e.g. an error body) for logging."""
    if len(output) <= max_length:
        return output
    return output[:max_length] + f"\n... [truncated, {len(output) - max_length} more chars]"


def sanitize_for_log(text: str) -> str:
    """Replace GitHub tokens and bearer credentials with placeholders."""
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result
