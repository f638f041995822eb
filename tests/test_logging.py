"""Tests for cargocore.logging module."""

from __future__ import annotations

import json
import logging

import pytest

from cargocore import (
    CargoConfig,
    LogLevel,
    get_request_logger,
    redact_secrets,
    safe_log_value,
    safe_preview,
    setup_logging,
)
from cargocore.logging import CargoFormatter


def _record(msg: str = "Test message", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="cargocore.test",
        level=logging.INFO,
        pathname="",
        lineno=0,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestSafePreview:
    """Tests for safe_preview function."""

    def test_none_value(self) -> None:
        assert safe_preview(None) == ""

    def test_string_with_whitespace(self) -> None:
        """Test that whitespace is normalized."""
        assert safe_preview("hello\n\tworld  test") == "hello world test"

    def test_string_truncation(self) -> None:
        result = safe_preview("a" * 300, limit=100)
        assert len(result) == 100
        assert result.endswith("…")

    def test_frozenset_is_sorted(self) -> None:
        """Grant sets render deterministically."""
        assert safe_preview(frozenset({"tracking:write", "shipments:read"})) == '["shipments:read", "tracking:write"]'


class TestRedactSecrets:
    """Tests for redact_secrets function."""

    def test_password_pattern(self) -> None:
        result = redact_secrets('password: "secret123"')
        assert "[REDACTED]" in result
        assert "secret123" not in result

    def test_bearer_token(self) -> None:
        result = redact_secrets("Authorization: Bearer abc123def456")
        assert "abc123def456" not in result

    def test_no_secrets(self) -> None:
        text = "tracking.projected shipment_id=SHP-001 pending->confirmed"
        assert redact_secrets(text) == text

    def test_safe_log_value_redacts(self) -> None:
        assert "[REDACTED]" in safe_log_value("api_key: sk-1234567890", redact=True)


class TestCargoFormatter:
    def test_json_includes_request_context(self) -> None:
        formatter = CargoFormatter(json_format=True, service_name="tracking-api")
        data = json.loads(formatter.format(_record(request_id="req-1", principal_id="staff-1")))
        assert data["level"] == "INFO"
        assert data["service"] == "tracking-api"
        assert data["request_id"] == "req-1"
        assert data["principal_id"] == "staff-1"

    def test_json_previews_extra_fields(self) -> None:
        formatter = CargoFormatter(json_format=True)
        data = json.loads(formatter.format(_record(error_details={"token": "abc"}, error_code="PERMISSION_DENIED")))
        assert data["error_code"] == "PERMISSION_DENIED"
        assert "error_details" in data

    def test_message_redacted(self) -> None:
        formatter = CargoFormatter(json_format=True)
        data = json.loads(formatter.format(_record("login with password=hunter2")))
        assert "hunter2" not in data["message"]

    def test_plain_format(self) -> None:
        formatter = CargoFormatter(json_format=False)
        result = formatter.format(_record(request_id="req-1"))
        assert "INFO" in result
        assert "request_id=req-1" in result
        assert result.endswith(": Test message")


class TestRequestLogger:
    def test_stamps_context(self, caplog: pytest.LogCaptureFixture) -> None:
        log = get_request_logger("cargocore.test", request_id="req-9", principal_id="portal-1")
        with caplog.at_level(logging.INFO, logger="cargocore.test"):
            log.info("tracking.recorded")
        record = caplog.records[-1]
        assert record.request_id == "req-9"
        assert record.principal_id == "portal-1"

    def test_per_call_override(self, caplog: pytest.LogCaptureFixture) -> None:
        log = get_request_logger("cargocore.test", request_id="req-9")
        with caplog.at_level(logging.INFO, logger="cargocore.test"):
            log.info("retry", request_id="req-10")
        assert caplog.records[-1].request_id == "req-10"

    def test_without_context(self, caplog: pytest.LogCaptureFixture) -> None:
        log = get_request_logger("cargocore.test")
        with caplog.at_level(logging.INFO, logger="cargocore.test"):
            log.info("plain")
        assert not hasattr(caplog.records[-1], "request_id")


class TestSetupLogging:
    @pytest.fixture(autouse=True)
    def _restore_root(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_setup_with_config(self) -> None:
        setup_logging(config=CargoConfig(log_level=LogLevel.DEBUG), json_format=False)
        assert logging.getLogger().level == logging.DEBUG

    def test_json_output(self, capsys: pytest.CaptureFixture) -> None:
        setup_logging(config=CargoConfig(log_level=LogLevel.INFO, log_json=True))
        logging.getLogger("test").info("Test message")

        data = json.loads(capsys.readouterr().err.strip())
        assert data["message"] == "Test message"
        assert data["logger"] == "test"
