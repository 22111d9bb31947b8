"""Tests for structured logging."""

import json
import logging
import sys

import pytest

from cloudmatch.domain.exceptions import NetworkError
from cloudmatch.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    """configure_logging replaces root handlers - put them back afterwards."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg: str = "hello", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="cloudmatch.test",
        level=logging.ERROR,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        """Test setting and getting correlation ID."""
        result = set_correlation_id("match-123")
        assert result == "match-123"
        assert get_correlation_id() == "match-123"

    def test_set_correlation_id_generates_uuid_when_none(self):
        """Test that setting None generates a UUID."""
        result = set_correlation_id(None)
        assert len(result) == 36
        assert get_correlation_id() == result

    def test_filter_adds_correlation_id(self):
        set_correlation_id("login-1")
        record = _record()

        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "login-1"


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self):
        """Test configuring logging with DEBUG level."""
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() <= logging.DEBUG

    def test_configure_logging_json_format(self):
        configure_logging(log_level="INFO", json_format=True, app_name="test-app")
        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, CustomJsonFormatter)

    def test_configure_logging_twice_does_not_stack_handlers(self):
        configure_logging()
        configure_logging()
        assert len(logging.getLogger().handlers) == 1
        assert isinstance(logging.getLogger().handlers[0].formatter, CompactExceptionFormatter)

    def test_http_loggers_are_quieted(self):
        configure_logging(log_level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING


class TestFormatters:
    """Output of the two formatters."""

    def test_json_formatter_includes_context(self):
        set_correlation_id("json-1")
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        record = _record("Cloud page loaded")
        CorrelationIdFilter().filter(record)

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "Cloud page loaded"
        assert payload["level"] == "ERROR"
        assert payload["logger"] == "cloudmatch.test"
        assert payload["correlation_id"] == "json-1"

    def test_compact_formatter_shows_chain_root_cause_first(self):
        try:
            try:
                raise ConnectionError("All connection attempts failed")
            except ConnectionError as exc:
                raise NetworkError("Provider unreachable") from exc
        except NetworkError:
            exc_info = sys.exc_info()

        text = CompactExceptionFormatter().formatException(exc_info)
        lines = [line for line in text.splitlines() if line.startswith("╰─►")]

        assert lines == [
            "╰─► ConnectionError: All connection attempts failed",
            "╰─► NetworkError: Provider unreachable",
        ]

    def test_compact_formatter_without_exception(self):
        assert CompactExceptionFormatter().formatException((None, None, None)) == ""
