"""System logger for operational events.

Provides a singleton system logger for token lifecycle events (cache hits,
refreshes, exchange failures, storage problems). Messages are dicts with an
``event`` key; token values are never logged.

Logging strategy:
- Console (stderr): WARNING and above by default (library should stay quiet)
- File (JSONL): WARNING, ERROR, CRITICAL once configure_system_logger_file()
  has been called
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "configure_system_logger_file",
    "get_system_logger",
    "set_console_level",
]

import logging
import sys
from pathlib import Path

from logto_client.constants import APP_NAME
from logto_client.utils.file_helpers import set_secure_permissions
from logto_client.utils.iso_formatter import ISO8601Formatter


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages for cleaner stderr output.
    """

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        return f"{record.levelname}: {record.getMessage()}"


# Module-level singleton logger
_system_logger: logging.Logger | None = None
_console_handler: logging.Handler | None = None
_file_handler_configured: bool = False


def get_system_logger() -> logging.Logger:
    """Get the singleton system logger instance.

    Creates the logger on first call with a stderr handler only.
    File handler is added later via configure_system_logger_file().

    Returns:
        logging.Logger: Configured system logger instance.

    Example:
        >>> from logto_client.telemetry.system_logger import get_system_logger
        >>> logger = get_system_logger()
        >>> logger.warning({"event": "token_exchange_failed", "status_code": 400})
    """
    global _system_logger, _console_handler

    if _system_logger is not None:
        return _system_logger

    # Logger accepts DEBUG so handlers decide what is emitted
    _system_logger = logging.getLogger(f"{APP_NAME}.system")
    _system_logger.setLevel(logging.DEBUG)
    _system_logger.propagate = False

    for handler in _system_logger.handlers:
        handler.close()
    _system_logger.handlers.clear()

    _console_handler = logging.StreamHandler(sys.stderr)
    _console_handler.setLevel(logging.WARNING)
    _console_handler.setFormatter(ConsoleFormatter())
    _system_logger.addHandler(_console_handler)

    return _system_logger


def set_console_level(level: int) -> None:
    """Change the stderr handler level (e.g. logging.DEBUG for CLI --verbose).

    Args:
        level: Logging level for console output.
    """
    get_system_logger()
    if _console_handler is not None:
        _console_handler.setLevel(level)


def configure_system_logger_file(log_path: Path) -> None:
    """Add a JSONL file handler to the system logger.

    The file handler logs WARNING, ERROR, CRITICAL only. Only the first
    call has an effect.

    Args:
        log_path: Path to the system log file.

    Raises:
        OSError: The log file cannot be opened for appending.
    """
    global _file_handler_configured

    if _file_handler_configured:
        return

    logger = get_system_logger()

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        set_secure_permissions(log_path.parent, is_directory=True)
    except OSError:
        pass  # stderr still works

    file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(ISO8601Formatter())
    logger.addHandler(file_handler)

    _file_handler_configured = True
