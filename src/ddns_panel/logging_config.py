"""
Logging configuration for DDNS Panel.

This module provides logging setup with support for console, file and
in-memory output (the latter backs the "/logs" page). Passwords, provider
secrets and Basic credentials are automatically masked in log messages.
"""

from __future__ import annotations

import collections
import copy
import logging
import logging.handlers
import re
import sys
import threading
from typing import TYPE_CHECKING

from uvicorn.config import LOGGING_CONFIG

if TYPE_CHECKING:
    from typing import Final

    from ddns_panel.config import LoggingConfig


PACKAGE_LOGGER: Final[str] = "ddns_panel"

# Patterns matching sensitive values in log messages.
# Each tuple is (pattern, replacement).
SENSITIVE_PATTERNS: Final[list[tuple[re.Pattern[str], str]]] = [
    # Basic credentials, masked completely
    (
        re.compile(r"((?:Authorization:\s*)?Basic\s+)([^\s\"']+)", re.IGNORECASE),
        r"\1******",
    ),
    # JSON fields of the save request, masked completely
    (
        re.compile(r'("(?:Password|DnsSecret|password|secret)"\s*:\s*")((?:[^"\\]|\\.)*)"'),
        r'\1******"',
    ),
    # JSON provider ID, keep first 2 characters
    (
        re.compile(r'("(?:DnsID|id)"\s*:\s*")([^"\\]{0,2})((?:[^"\\]|\\.)*)"'),
        r'\1\2******"',
    ),
    # key=value forms (query strings, reprs)
    (
        re.compile(r"((?:password|secret)=)(['\"]?)([^\s,&'\"]*)\2", re.IGNORECASE),
        r"\1\2******\2",
    ),
]


# Constants
LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
DEFAULT_BUFFER_SIZE: Final[int] = 500


class SensitiveFilter(logging.Filter):
    """
    A logging filter that masks sensitive information.

    This filter replaces passwords and provider credentials with asterisks
    to prevent credential leakage in log files and on the "/logs" page.
    """

    # Fields in record.__dict__ that may contain sensitive data
    _SENSITIVE_DICT_KEYS: tuple[str, ...] = (
        "request_line",  # Uvicorn: "{method} {full_path} HTTP/{version}"
        "full_path",
        "path",
        "url",
        "headers",
    )

    @staticmethod
    def _mask_sensitive(value: str) -> str:
        """
        Apply all sensitive patterns to mask a string.

        Parameters
        ----------
        value : str
            The string to process.

        Returns
        -------
        str
            The string with sensitive data masked.
        """
        result = value
        for pattern, replacement in SENSITIVE_PATTERNS:
            result = pattern.sub(replacement, result)
        return result

    def filter(self, record: logging.LogRecord) -> bool:
        """
        Filter and modify log record to mask sensitive data.

        Parameters
        ----------
        record : logging.LogRecord
            The log record to process.

        Returns
        -------
        bool
            Always returns True (record is always logged).
        """
        if record.msg:
            record.msg = self._mask_sensitive(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: self._mask_sensitive(v) if isinstance(v, str) else v
                    for k, v in record.args.items()
                }
            elif isinstance(record.args, tuple):
                record.args = tuple(
                    self._mask_sensitive(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        for key in self._SENSITIVE_DICT_KEYS:
            if key in record.__dict__:
                value = record.__dict__[key]
                if isinstance(value, str):
                    record.__dict__[key] = self._mask_sensitive(value)

        return True


class MemoryLogHandler(logging.Handler):
    """
    Handler keeping the most recent formatted log lines in memory.

    Parameters
    ----------
    capacity : int, optional
        Maximum number of lines kept; older lines are discarded.
    """

    def __init__(self, capacity: int = DEFAULT_BUFFER_SIZE) -> None:
        super().__init__()
        self._lines: collections.deque[str] = collections.deque(maxlen=capacity)
        self._buffer_lock = threading.Lock()

    @property
    def capacity(self) -> int:
        """Maximum number of lines kept."""
        return self._lines.maxlen or 0

    def emit(self, record: logging.LogRecord) -> None:
        """Format the record and append it to the buffer."""
        try:
            line = self.format(record)
        except Exception:  # noqa: BLE001
            self.handleError(record)
            return
        with self._buffer_lock:
            self._lines.append(line)

    def lines(self) -> list[str]:
        """Return the buffered lines, oldest first."""
        with self._buffer_lock:
            return list(self._lines)

    def clear(self) -> None:
        """Discard all buffered lines."""
        with self._buffer_lock:
            self._lines.clear()


def _configure_handler(handler: logging.Handler) -> None:
    """
    Configure a logging handler with formatter and sensitive filter.

    Parameters
    ----------
    handler : logging.Handler
        The handler to configure.
    """
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    sensitive_filter = SensitiveFilter()

    handler.setFormatter(formatter)
    handler.addFilter(sensitive_filter)


def get_memory_handler(capacity: int = DEFAULT_BUFFER_SIZE) -> MemoryLogHandler:
    """
    Return the in-memory handler of the package logger, adding one if needed.

    Parameters
    ----------
    capacity : int, optional
        Buffer size used when a new handler is created.

    Returns
    -------
    MemoryLogHandler
        The handler attached to the "ddns_panel" logger.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in logger.handlers:
        if isinstance(existing, MemoryLogHandler):
            return existing

    memory_handler = MemoryLogHandler(capacity)
    _configure_handler(memory_handler)
    logger.addHandler(memory_handler)
    if logger.level == logging.NOTSET:
        logger.setLevel(logging.INFO)
    return memory_handler


def setup_logging(config: LoggingConfig) -> MemoryLogHandler:
    """
    Set up logging based on configuration.

    Parameters
    ----------
    config : LoggingConfig
        Logging configuration.

    Returns
    -------
    MemoryLogHandler
        The in-memory handler backing the "/logs" page.
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    # Clear any existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    _configure_handler(console_handler)
    logger.addHandler(console_handler)

    if config.file_enabled:
        log_path = config.file_path_as_path
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)

            file_handler = logging.handlers.WatchedFileHandler(
                str(log_path),
                encoding="utf-8",
                delay=False,
            )
            _configure_handler(file_handler)
            logger.addHandler(file_handler)
            logger.info('File logging enabled: "%s".', log_path)
        except OSError as e:
            logger.critical("Failed to enable file logging: %s", e)
            sys.exit(1)

    memory_handler = get_memory_handler(config.buffer_size)

    # Prevent propagation to root logger
    logger.propagate = False

    return memory_handler


def build_uvicorn_log_config(config: LoggingConfig) -> dict:
    """
    Build uvicorn log configuration dictionary with file and console handlers.

    This function creates a log configuration for uvicorn that:
    - Preserves uvicorn's default console output (with colors)
    - Adds file logging when enabled
    - Applies sensitive information filtering to all handlers

    Parameters
    ----------
    config : LoggingConfig
        Logging configuration from the application.

    Returns
    -------
    dict
        A uvicorn-compatible log configuration dictionary.

    Raises
    ------
    SystemExit
        If file logging is enabled but the log file cannot be created.
    """
    log_config = copy.deepcopy(LOGGING_CONFIG)

    filter_config = {
        "()": f"{__name__}.SensitiveFilter",
    }
    log_config.setdefault("filters", {})["sensitive"] = filter_config

    log_config["handlers"]["default"].setdefault("filters", []).append("sensitive")
    log_config["handlers"]["access"].setdefault("filters", []).append("sensitive")

    if config.file_enabled:
        log_path = config.file_path_as_path

        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            log_path.touch(exist_ok=True)
        except OSError as e:
            logger = logging.getLogger(PACKAGE_LOGGER)
            logger.critical("Failed to create log file: %s", e)
            sys.exit(1)

        log_config.setdefault("formatters", {})["file"] = {
            "format": LOG_FORMAT,
            "datefmt": DATE_FORMAT,
        }
        log_config.setdefault("handlers", {})["file"] = {
            "class": "logging.handlers.WatchedFileHandler",
            "filename": str(log_path),
            "encoding": "utf-8",
            "delay": False,
            "formatter": "file",
            "filters": ["sensitive"],
        }

        # "uvicorn.error" propagates to "uvicorn"
        log_config["loggers"]["uvicorn"]["handlers"].append("file")
        log_config["loggers"]["uvicorn.access"]["handlers"].append("file")

    return log_config
