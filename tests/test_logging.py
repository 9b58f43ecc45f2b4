"""Tests for structured logging configuration."""

import json
import logging
import sys

import pytest

from pixelvault.app.core.config import Settings
from pixelvault.app.core.logging import (
    ContextFilter,
    JSONFormatter,
    get_log_context,
    get_logger,
    get_logging_config,
    setup_logging,
)


def _record(msg="Test message", level=logging.INFO, exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


def _settings(log_format: str, log_level: str = "INFO") -> Settings:
    return Settings(_env_file=None, log_format=log_format, log_level=log_level)


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        data = json.loads(JSONFormatter().format(_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_context(self):
        record = _record("Image stored")
        record.request_id = "req-1"
        record.client_id = "0f" * 16
        record.image_id = "abc123"
        record.duration_ms = 12.5

        data = json.loads(JSONFormatter().format(record))

        assert data["request_id"] == "req-1"
        assert data["client_id"] == "0f" * 16
        assert data["image_id"] == "abc123"
        assert data["duration_ms"] == 12.5
        assert "extra" not in data

    def test_json_format_with_extra_fields(self):
        record = _record("Rejected upload")
        record.original = "cat.png"
        record.size = 42

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"] == {"original": "cat.png", "size": 42}

    def test_json_format_with_exception(self):
        try:
            raise ValueError("Test error")
        except ValueError:
            record = _record("Error occurred", level=logging.ERROR, exc_info=sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text

    def test_json_format_unicode(self):
        data = json.loads(JSONFormatter().format(_record("Uploaded 写真.png")))

        assert data["message"] == "Uploaded 写真.png"


class TestContextFilter:
    """Test context filter for adding default fields."""

    def test_adds_default_fields(self):
        record = _record()

        assert ContextFilter().filter(record) is True
        for field in JSONFormatter.CONTEXT_FIELDS:
            assert getattr(record, field) is None

    def test_preserves_existing_values(self):
        record = _record()
        record.request_id = "existing-request"
        record.image_id = "existing-image"

        ContextFilter().filter(record)

        assert record.request_id == "existing-request"
        assert record.image_id == "existing-image"


class TestGetLoggingConfig:
    """Test logging configuration generation."""

    def test_default_text_format(self):
        config = get_logging_config(_settings("text"))

        assert "standard" in config["formatters"]
        assert "json" not in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "standard"

    def test_structured_format(self):
        config = get_logging_config(_settings("structured", "DEBUG"))

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert config["handlers"]["console"]["level"] == "DEBUG"

    def test_json_format(self):
        config = get_logging_config(_settings("JSON", "warning"))

        assert "json" in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["handlers"]["console"]["level"] == "WARNING"

    def test_context_filter_added(self):
        config = get_logging_config(_settings("text"))

        assert "context" in config["filters"]
        assert "context" in config["handlers"]["console"]["filters"]
        assert "pixelvault" in config["loggers"]


class TestGetLogger:

    def test_get_logger_default_name(self):
        assert get_logger().name == "pixelvault"

    def test_get_logger_custom_name(self):
        assert get_logger("custom.module").name == "custom.module"


class TestGetLogContext:
    """Test get_log_context helper function."""

    def test_basic_context(self):
        context = get_log_context(request_id="req-1", client_id="client", image_id="img")

        assert context == {"request_id": "req-1", "client_id": "client", "image_id": "img"}

    def test_context_filters_none(self):
        context = get_log_context(request_id="req-1", client_id=None)

        assert context == {"request_id": "req-1"}

    def test_context_with_extra(self):
        context = get_log_context(image_id="img", original="cat.png", size=42)

        assert context == {"image_id": "img", "original": "cat.png", "size": 42}


class TestIntegration:
    """Integration tests for logging system."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        yield
        setup_logging(_settings("text"))

    def test_json_logging_output(self, capsys):
        setup_logging(_settings("json"))
        logger = get_logger("pixelvault.test")

        logger.info(
            "Integration test",
            extra=get_log_context(request_id="abc123", image_id="img-1", original="cat.png"),
        )

        data = json.loads(capsys.readouterr().out.strip())

        assert data["level"] == "INFO"
        assert data["logger"] == "pixelvault.test"
        assert data["message"] == "Integration test"
        assert data["request_id"] == "abc123"
        assert data["image_id"] == "img-1"
        assert data["extra"] == {"original": "cat.png"}
