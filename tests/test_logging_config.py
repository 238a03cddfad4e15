"""
Tests for logging_config module.

This module tests the SensitiveFilter, SENSITIVE_PATTERNS and the in-memory
log handler.
"""

import logging
from typing import TYPE_CHECKING

import pytest

from ddns_panel.config import LoggingConfig
from ddns_panel.logging_config import (
    PACKAGE_LOGGER,
    SENSITIVE_PATTERNS,
    MemoryLogHandler,
    SensitiveFilter,
    build_uvicorn_log_config,
    get_memory_handler,
)

if TYPE_CHECKING:
    from collections.abc import Callable


def apply_patterns(msg: str) -> str:
    """Apply all sensitive patterns to a message."""
    result = msg
    for pattern, replacement in SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


class TestSensitivePatterns:
    """Tests for SENSITIVE_PATTERNS regex patterns."""

    @pytest.mark.parametrize(
        ("original", "expected"),
        [
            (
                "Authorization: Basic YWRtaW46c2VjcmV0",
                "Authorization: Basic ******",
            ),
            ("authorization: basic YWRtaW4=", "authorization: basic ******"),
        ],
    )
    def test_basic_credentials(self, original: str, expected: str) -> None:
        """Test Basic credentials are masked completely."""
        assert apply_patterns(original) == expected

    @pytest.mark.parametrize(
        ("original", "expected"),
        [
            ('{"Password": "hunter2"}', '{"Password": "******"}'),
            ('{"DnsSecret":"abc\\"def"}', '{"DnsSecret":"******"}'),
            ('{"password": "$2b$12$abc"}', '{"password": "******"}'),
            ('{"secret": ""}', '{"secret": "******"}'),
        ],
    )
    def test_json_secret_fields(self, original: str, expected: str) -> None:
        """Test JSON password/secret fields are masked completely."""
        assert apply_patterns(original) == expected

    @pytest.mark.parametrize(
        ("original", "expected"),
        [
            ('{"DnsID": "ABCDEF"}', '{"DnsID": "AB******"}'),
            ('{"id":"A"}', '{"id":"A******"}'),
        ],
    )
    def test_json_id_fields(self, original: str, expected: str) -> None:
        """Test JSON provider IDs keep their first 2 characters."""
        assert apply_patterns(original) == expected

    @pytest.mark.parametrize(
        ("original", "expected"),
        [
            ("password=abc123&x=1", "password=******&x=1"),
            ('secret="mysecretkey"', 'secret="******"'),
            ("secret='mysecretkey'", "secret='******'"),
            ("PASSWORD=abc", "PASSWORD=******"),
        ],
    )
    def test_key_value_fields(self, original: str, expected: str) -> None:
        """Test key=value forms are masked."""
        assert apply_patterns(original) == expected

    @pytest.mark.parametrize(
        "original",
        [
            "Normal log message without sensitive data",
            "Configuration saved to /tmp/panel.json",
            '{"Username": "admin"}',
            "Authorization: Bearer abc123",
        ],
    )
    def test_non_matching_unchanged(self, original: str) -> None:
        """Test that non-matching strings are not modified."""
        assert apply_patterns(original) == original


class TestSensitiveFilter:
    """Tests for SensitiveFilter logging filter."""

    @pytest.fixture
    def log_filter(self) -> SensitiveFilter:
        """Create a SensitiveFilter instance."""
        return SensitiveFilter()

    @pytest.fixture
    def make_record(self) -> "Callable[[str], logging.LogRecord]":
        """Create a factory for log records."""

        def _make_record(msg: str) -> logging.LogRecord:
            return logging.LogRecord(
                name="test",
                level=logging.INFO,
                pathname="",
                lineno=0,
                msg=msg,
                args=(),
                exc_info=None,
            )

        return _make_record

    def test_filter_always_returns_true(
        self,
        log_filter: SensitiveFilter,
        make_record: "Callable[[str], logging.LogRecord]",
    ) -> None:
        """Test that filter always returns True (always logs)."""
        record = make_record("any message")
        assert log_filter.filter(record) is True

    def test_filter_masks_request_body(
        self,
        log_filter: SensitiveFilter,
        make_record: "Callable[[str], logging.LogRecord]",
    ) -> None:
        """Test that a logged save request body is masked."""
        record = make_record('{"Username": "admin", "Password": "Str0ng-Pass!"}')
        log_filter.filter(record)
        assert record.msg == '{"Username": "admin", "Password": "******"}'

    def test_filter_masks_tuple_args(self, log_filter: SensitiveFilter) -> None:
        """Test that tuple-style args are masked and non-strings kept."""
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg="query %s took %d ms",
            args=("password=abc", 12),
            exc_info=None,
        )
        log_filter.filter(record)
        assert record.args == ("password=******", 12)

    def test_filter_handles_none_message(self, log_filter: SensitiveFilter) -> None:
        """Test that None messages are handled gracefully."""
        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname="",
            lineno=0,
            msg=None,  # type: ignore[arg-type]
            args=(),
            exc_info=None,
        )
        assert log_filter.filter(record) is True


class TestMemoryLogHandler:
    """Tests for the in-memory log buffer."""

    def test_keeps_most_recent_lines(self) -> None:
        handler = MemoryLogHandler(capacity=2)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger = logging.getLogger("test.memory.capacity")
        logger.propagate = False
        logger.addHandler(handler)
        try:
            for i in range(3):
                logger.warning("line %d", i)
        finally:
            logger.removeHandler(handler)

        assert handler.lines() == ["line 1", "line 2"]
        assert handler.capacity == 2

    def test_clear(self) -> None:
        handler = MemoryLogHandler()
        handler.setFormatter(logging.Formatter("%(message)s"))
        handler.handle(
            logging.LogRecord("t", logging.INFO, "", 0, "hello", (), None),
        )
        assert handler.lines() == ["hello"]
        handler.clear()
        assert handler.lines() == []

    def test_get_memory_handler_is_reused(self) -> None:
        first = get_memory_handler()
        second = get_memory_handler()
        assert first is second
        assert first in logging.getLogger(PACKAGE_LOGGER).handlers

    def test_buffer_masks_sensitive_data(self) -> None:
        handler = get_memory_handler()
        handler.clear()
        logging.getLogger(f"{PACKAGE_LOGGER}.test").warning("password=topsecret")
        assert any("password=******" in line for line in handler.lines())
        assert not any("topsecret" in line for line in handler.lines())


class TestBuildUvicornLogConfig:
    """Tests for build_uvicorn_log_config."""

    def test_sensitive_filter_on_console_handlers(self) -> None:
        log_config = build_uvicorn_log_config(LoggingConfig())
        assert "sensitive" in log_config["filters"]
        assert "sensitive" in log_config["handlers"]["default"]["filters"]
        assert "sensitive" in log_config["handlers"]["access"]["filters"]
        assert "file" not in log_config["handlers"]

    def test_file_handler_added(self, tmp_path) -> None:
        log_path = tmp_path / "logs" / "panel.log"
        log_config = build_uvicorn_log_config(
            LoggingConfig(file_enabled=True, file_path=str(log_path)),
        )
        assert log_config["handlers"]["file"]["filename"] == str(log_path)
        assert "file" in log_config["loggers"]["uvicorn"]["handlers"]
        assert log_path.exists()
