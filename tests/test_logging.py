"""Tests for logging configuration module."""

import json
import logging
import sys
from io import StringIO
from unittest.mock import MagicMock, patch

import structlog
from opentelemetry import trace

from ticketing.core.logging import _add_otel_context, configure_logging


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_configure_logging_sets_log_level(self) -> None:
        """Test that configure_logging sets the root logger level."""
        configure_logging(log_level="WARNING")
        assert logging.getLogger().level == logging.WARNING

        configure_logging(log_level="debug")
        assert logging.getLogger().level == logging.DEBUG

    def test_configure_logging_default_level_is_info(self) -> None:
        configure_logging()
        assert logging.getLogger().level == logging.INFO

    def test_noisy_loggers_are_quietened(self) -> None:
        """Test that per-request client loggers stay at WARNING even in DEBUG."""
        configure_logging(log_level="DEBUG")

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING
        assert logging.getLogger("uvicorn.access").level == logging.WARNING

    def test_configure_logging_replaces_handlers(self) -> None:
        root_logger = logging.getLogger()
        dummy_handler = logging.StreamHandler()
        root_logger.addHandler(dummy_handler)

        configure_logging()

        assert dummy_handler not in root_logger.handlers
        assert len(root_logger.handlers) == 1
        assert root_logger.handlers[0].stream == sys.stdout  # type: ignore[attr-defined]

    def test_debug_level_renders_json(self) -> None:
        """Test that DEBUG output is one JSON object per line."""
        with patch("sys.stdout", new_callable=StringIO) as mock_stdout:
            configure_logging(log_level="DEBUG")
            structlog.get_logger("ticketing.test").info("payment_settled", order_id="order_TEST0000000001")

            line = mock_stdout.getvalue().strip().splitlines()[-1]

        record = json.loads(line)
        assert record["event"] == "payment_settled"
        assert record["order_id"] == "order_TEST0000000001"
        assert record["level"] == "info"

    def test_stdlib_logger_routed_through_structlog(self) -> None:
        with patch("sys.stdout", new_callable=StringIO) as mock_stdout:
            configure_logging(log_level="INFO")
            logging.getLogger("stdlib_test").info("stdlib message")

            output = mock_stdout.getvalue()

        assert "stdlib message" in output


class TestAddOtelContext:
    """Tests for _add_otel_context processor."""

    def test_adds_trace_and_span_ids_with_active_span(self) -> None:
        mock_span_context = MagicMock()
        mock_span_context.trace_id = 0x1234567890ABCDEF1234567890ABCDEF
        mock_span_context.span_id = 0x1234567890ABCDEF
        mock_span = MagicMock()
        mock_span.is_recording.return_value = True
        mock_span.get_span_context.return_value = mock_span_context

        with patch.object(trace, "get_current_span", return_value=mock_span):
            result = _add_otel_context(logging.getLogger(), "info", {"event": "test_event"})

        assert result["trace_id"] == "1234567890abcdef1234567890abcdef"
        assert result["span_id"] == "1234567890abcdef"

    def test_no_trace_ids_without_active_span(self) -> None:
        mock_span = MagicMock()
        mock_span.is_recording.return_value = False

        with patch.object(trace, "get_current_span", return_value=mock_span):
            result = _add_otel_context(logging.getLogger(), "info", {"event": "test_event"})

        assert "trace_id" not in result
        assert result["event"] == "test_event"
