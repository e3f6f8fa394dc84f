"""Tests for logging formatters."""

import json
import logging

import pytest

from dispatch_core.dispatch_logging import DevFormatter, JSONFormatter


@pytest.fixture
def log_record():
    """Create a basic log record."""
    return logging.LogRecord(
        name="dispatch_core.lifecycle",
        level=logging.INFO,
        pathname="lifecycle.py",
        lineno=10,
        msg="Booking %s confirmed",
        args=("bk_0001",),
        exc_info=None,
    )


@pytest.mark.unit
class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_output(self, log_record):
        data = json.loads(JSONFormatter().format(log_record))

        assert "timestamp" in data
        assert data["level"] == "INFO"
        assert data["logger"] == "dispatch_core.lifecycle"
        assert data["message"] == "Booking bk_0001 confirmed"
        assert data["env"] == "development"

    def test_includes_extra_fields(self, log_record):
        log_record.booking_id = "bk_0001"
        log_record.driver_id = "driver_001"
        log_record.correlation_id = "bk_0001"

        data = json.loads(JSONFormatter(environment="production").format(log_record))

        assert data["booking_id"] == "bk_0001"
        assert data["driver_id"] == "driver_001"
        assert data["correlation_id"] == "bk_0001"
        assert data["env"] == "production"

    def test_includes_transition_fields(self, log_record):
        log_record.booking_id = "bk_0001"
        log_record.operation = "advance to EN_ROUTE"
        log_record.from_status = "ASSIGNED"
        log_record.to_status = "EN_ROUTE"

        data = json.loads(JSONFormatter().format(log_record))

        assert data["operation"] == "advance to EN_ROUTE"
        assert data["from_status"] == "ASSIGNED"
        assert data["to_status"] == "EN_ROUTE"

    def test_omits_missing_extras(self, log_record):
        data = json.loads(JSONFormatter().format(log_record))
        assert "booking_id" not in data
        assert "from_status" not in data
        assert data["correlation_id"] is None


@pytest.mark.unit
class TestDevFormatter:
    def test_human_readable(self, log_record):
        log_record.correlation_id = "bk_0001"
        output = DevFormatter().format(log_record)

        assert "[    INFO]" in output
        assert "[bk_0001]" in output
        assert "dispatch_core.lifecycle: Booking bk_0001 confirmed" in output

    def test_transition_tag(self, log_record):
        log_record.booking_id = "bk_0001"
        log_record.from_status = "ASSIGNED"
        log_record.to_status = "EN_ROUTE"

        output = DevFormatter().format(log_record)

        assert "[bk_0001 ASSIGNED->EN_ROUTE]" in output

    def test_no_tag_without_booking(self, log_record):
        log_record.correlation_id = "-"
        output = DevFormatter().format(log_record)
        assert "[    INFO] dispatch_core.lifecycle:" in output
