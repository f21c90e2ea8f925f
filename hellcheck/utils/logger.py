"""Hellcheck — Logging Setup.

Provides a centralized logging configuration with colored console output
and an optional rotating file handler. All modules should use get_logger()
to obtain a named logger instance.

Environment:
    HELLCHECK_LOG_LEVEL: Console level (DEBUG/INFO/WARNING/ERROR). Default INFO.
    HELLCHECK_LOG_FILE: Path of a rotating log file. Unset disables file logging.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# ── Constants ─────────────────────────────────────────────
MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

# httpx logs every request URL at INFO, and the Telegram token and the
# HipChat auth_token are part of those URLs.
QUIET_LOGGERS = ("httpx", "httpcore")
CONSOLE_FORMAT = "%(asctime)s │ %(levelname)s │ %(name)s │ %(message)s"
FILE_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# ── ANSI Color Codes ─────────────────────────────────────
COLORS = {
    "DEBUG": "\033[36m",     # Cyan
    "INFO": "\033[32m",      # Green
    "WARNING": "\033[33m",   # Yellow
    "ERROR": "\033[31m",     # Red
    "CRITICAL": "\033[41m",  # Red background
}
RESET = "\033[0m"

_initialized = False
_console_handler: Optional[logging.Handler] = None


class ColoredFormatter(logging.Formatter):
    """Formatter that adds ANSI colors to console log output.

    The record is copied before coloring so other handlers (file, pytest
    capture) still see the plain level name.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with colored level name and timestamp.

        Args:
            record: The log record to format.

        Returns:
            Formatted log string with ANSI color codes.
        """
        colored = logging.makeLogRecord(record.__dict__)
        color = COLORS.get(record.levelname, "")
        colored.levelname = f"{color}{record.levelname:<8}{RESET}"
        colored.asctime = f"{color}{self.formatTime(record, self.datefmt)}{RESET}"
        return super().format(colored)

    def usesTime(self) -> bool:  # noqa: N802
        return False


def resolve_level(value: Optional[str]) -> int:
    """Map a level name to a logging level, falling back to INFO.

    Args:
        value: Level name such as "debug" or "WARNING". May be None.

    Returns:
        The numeric logging level.
    """
    name = (value or "").strip().upper()
    level = logging.getLevelName(name) if name else logging.INFO
    return level if isinstance(level, int) else logging.INFO


def _setup_logging() -> None:
    """Initialize the global logging configuration.

    Sets up handlers on the root logger:
    - Console handler: HELLCHECK_LOG_LEVEL (default INFO), colored.
    - Rotating file handler: DEBUG level, only when HELLCHECK_LOG_FILE is set.

    Idempotent: calling it multiple times has no effect after the first.
    """
    global _initialized, _console_handler
    if _initialized:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # ── Console Handler ──────────────────────────────────
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolve_level(os.environ.get("HELLCHECK_LOG_LEVEL")))
    console_handler.setFormatter(ColoredFormatter(fmt=CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)
    _console_handler = console_handler

    # ── Rotating File Handler (DEBUG) ────────────────────
    log_file = os.environ.get("HELLCHECK_LOG_FILE")
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            filename=str(path),
            maxBytes=MAX_BYTES,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=FILE_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    _initialized = True


def set_console_level(value: Optional[str]) -> None:
    """Override the console handler level (e.g. from --log-level).

    Args:
        value: Level name. Unknown names fall back to INFO.
    """
    _setup_logging()
    if _console_handler is not None:
        _console_handler.setLevel(resolve_level(value))


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance with the global configuration applied.

    Args:
        name: The logger name, typically __name__ of the calling module.

    Returns:
        A configured logging.Logger instance.
    """
    _setup_logging()
    return logging.getLogger(name)
