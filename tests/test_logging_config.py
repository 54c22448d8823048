"""Tests for logging configuration module.

Verifies that logging configuration:
1. Filters out credentials and PII (BLOCKED_FIELDS)
2. Never logs artifact bytes or request bodies, only their size
3. Normalizes URLs to endpoints
4. Produces valid JSON output
"""

from __future__ import annotations

import io
import json
import logging
import sys

import pytest

from plugin_registry.logging_config import (
    BLOCKED_FIELDS,
    JsonFormatter,
    SimpleFormatter,
    _filter_log_record,
    _normalize_url,
    _sanitize_text,
    get_logger,
    setup_logging,
)


def _make_record(msg: str = "test", level: int = logging.INFO, name: str = "test") -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestBlockedFields:
    """Test that sensitive fields are properly blocked."""

    def test_blocked_fields_not_empty(self) -> None:
        """BLOCKED_FIELDS should contain security-relevant fields."""
        assert "api_key" in BLOCKED_FIELDS
        assert "secret" in BLOCKED_FIELDS
        assert "token" in BLOCKED_FIELDS
        assert "password" in BLOCKED_FIELDS
        assert "signing_key" in BLOCKED_FIELDS

    def test_filter_removes_token(self) -> None:
        """token field should be removed from logs."""
        record = {"token": "supersecret123", "id": "adi.tasks"}
        filtered = _filter_log_record(record)
        assert "token" not in filtered
        assert filtered["id"] == "adi.tasks"

    def test_filter_removes_partial_matches(self) -> None:
        """Fields containing blocked words should be removed."""
        record = {
            "publish_token": "value",
            "x_api_key_header": "value",
            "author_email": "value",
            "version": "1.0.0",
        }
        filtered = _filter_log_record(record)
        assert "publish_token" not in filtered
        assert "x_api_key_header" not in filtered
        assert "author_email" not in filtered
        assert filtered["version"] == "1.0.0"

    def test_filter_case_insensitive(self) -> None:
        """Blocked field check should be case-insensitive."""
        record = {"API_KEY": "secret", "Token": "secret2"}
        filtered = _filter_log_record(record)
        assert filtered == {}


class TestSanitizeText:
    """Tests for _sanitize_text function."""

    def test_url_query_string_removed(self) -> None:
        """URL query strings should be removed, path kept."""
        result = _sanitize_text("Fetching https://registry.example.com/v1/plugins/x?token=abc")
        assert "token=abc" not in result
        assert "/v1/plugins/x" in result

    def test_email_redacted(self) -> None:
        result = _sanitize_text("Published by dev@example.com")
        assert "dev@example.com" not in result
        assert "[EMAIL]" in result

    def test_bearer_token_redacted(self) -> None:
        result = _sanitize_text("Sending bearer abc123xyz")
        assert "abc123xyz" not in result
        assert "[TOKEN]" in result

    def test_api_key_redacted(self) -> None:
        result = _sanitize_text("Using api_key=sk-secret-12345")
        assert "sk-secret-12345" not in result
        assert "[API_KEY]" in result

    def test_empty_string_unchanged(self) -> None:
        assert _sanitize_text("") == ""

    def test_safe_text_unchanged(self) -> None:
        """Text without sensitive data should be unchanged."""
        text = "Published artifact linux-x64 for adi.tasks 1.0.0"
        assert _sanitize_text(text) == text


class TestRedactedFields:
    """Test redaction of payloads and normalization of URLs."""

    def test_url_normalized_to_endpoint(self) -> None:
        """URL field should be normalized to endpoint (path only)."""
        record = {"url": "https://registry.example.com/v1/packages/foo/1.0.0/linux-x64.tar.gz?x=1"}
        filtered = _filter_log_record(record)
        assert "url" not in filtered
        assert filtered["endpoint"] == "/v1/packages/foo/1.0.0/linux-x64.tar.gz"

    def test_normalize_url_strips_query(self) -> None:
        result = _normalize_url("https://example.com/api/v1/data?key=value&foo=bar")
        assert result == "/api/v1/data"

    def test_normalize_url_without_path(self) -> None:
        assert _normalize_url("https://example.com") == "/"

    def test_data_redacted(self) -> None:
        """Artifact data must never be logged."""
        filtered = _filter_log_record({"data": b"\x1f\x8b" * 100})
        assert filtered["data"] == "[DATA]"

    def test_payload_redacted(self) -> None:
        filtered = _filter_log_record({"payload": {"key": "value"}})
        assert filtered["payload"] == "[PAYLOAD]"

    def test_bytes_reduced_to_size(self) -> None:
        """Byte values under other keys are logged as their length."""
        filtered = _filter_log_record({"blob": b"abcde"})
        assert filtered["blob"] == "[bytes:5]"


class TestFilterLogRecord:
    """Test the _filter_log_record function."""

    def test_safe_fields_preserved(self) -> None:
        record = {
            "kind": "plugins",
            "size_bytes": 1024,
            "ratio": 0.5,
            "replaced": True,
            "changelog": None,
        }
        assert _filter_log_record(record) == record

    def test_list_capped_at_10(self) -> None:
        """Lists larger than 10 items should be summarized."""
        filtered = _filter_log_record({"tags": [f"t{i}" for i in range(15)]})
        assert filtered["tags"] == "[list:15 items]"

    def test_small_list_preserved(self) -> None:
        filtered = _filter_log_record({"tags": ["cli", "tasks"]})
        assert filtered["tags"] == ["cli", "tasks"]

    def test_nested_dict_filtered(self) -> None:
        """Nested dicts should have blocked fields removed."""
        record = {"request": {"platform": "linux-x64", "api_key": "secret"}}
        filtered = _filter_log_record(record)
        assert filtered["request"] == {"platform": "linux-x64"}

    def test_depth_capped(self) -> None:
        record = {"a": {"b": {"c": {"d": {"e": 1}}}}}
        filtered = _filter_log_record(record)
        assert filtered["a"]["b"]["c"]["d"] == {"_truncated": "max depth exceeded"}


class TestJsonFormatter:
    """Test the JSON log formatter."""

    def test_contains_required_fields(self) -> None:
        """JSON output should contain required fields."""
        output = JsonFormatter().format(_make_record("hello world", name="mylogger"))
        parsed = json.loads(output)
        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "mylogger"
        assert parsed["msg"] == "hello world"
        assert "ts" in parsed

    def test_info_omits_location(self) -> None:
        parsed = json.loads(JsonFormatter().format(_make_record()))
        assert "file" not in parsed
        assert "line" not in parsed

    def test_warning_includes_location(self) -> None:
        """WARNING+ logs should include file/line info."""
        parsed = json.loads(JsonFormatter().format(_make_record(level=logging.WARNING)))
        assert parsed["file"] == "test.py"
        assert parsed["line"] == 10

    def test_extra_fields_included_and_filtered(self) -> None:
        record = _make_record()
        record.kind = "packages"
        record.version = "1.0.0"
        record.api_key = "secret123"
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["kind"] == "packages"
        assert parsed["version"] == "1.0.0"
        assert "api_key" not in parsed

    def test_exception_included(self) -> None:
        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            record = logging.LogRecord(
                name="test",
                level=logging.ERROR,
                pathname="test.py",
                lineno=10,
                msg="failed",
                args=(),
                exc_info=sys.exc_info(),
            )
        parsed = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: disk full" in parsed["exc"]


class TestSimpleFormatter:
    """Test the simple human-readable formatter."""

    def test_basic_format(self) -> None:
        output = SimpleFormatter().format(_make_record("hello"))
        assert "INFO" in output
        assert "test" in output
        assert "hello" in output

    def test_extra_fields_appended(self) -> None:
        """Extra fields should be appended to message."""
        record = _make_record("message")
        record.platform = "linux-x64"
        output = SimpleFormatter().format(record)
        assert "platform=linux-x64" in output


class TestSetupLogging:
    """Test the setup_logging function."""

    def test_setup_logging_json(self) -> None:
        stream = io.StringIO()
        setup_logging(json_format=True, stream=stream)

        get_logger("test_json").info("test message", extra={"id": "adi.tasks"})

        parsed = json.loads(stream.getvalue().strip())
        assert parsed["msg"] == "test message"
        assert parsed["id"] == "adi.tasks"

    def test_setup_logging_simple(self) -> None:
        stream = io.StringIO()
        setup_logging(json_format=False, stream=stream)

        get_logger("test_simple").info("simple test")

        output = stream.getvalue()
        assert "simple test" in output
        with pytest.raises(json.JSONDecodeError):
            json.loads(output.strip())

    def test_setup_logging_level(self) -> None:
        """setup_logging should respect log level."""
        stream = io.StringIO()
        setup_logging(level=logging.WARNING, json_format=False, stream=stream)

        logger = get_logger("test_level")
        logger.info("info message")
        logger.warning("warning message")

        output = stream.getvalue()
        assert "info message" not in output
        assert "warning message" in output

    def test_setup_logging_replaces_handlers(self) -> None:
        setup_logging(stream=io.StringIO())
        setup_logging(stream=io.StringIO())
        assert len(logging.getLogger().handlers) == 1
