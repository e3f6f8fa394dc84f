"""Tests for the dispatch-core command line."""

import json
import logging
from datetime import UTC, datetime

import pytest

from dispatch_core.main import build_parser, main


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    original_handlers = root.handlers.copy()
    original_level = root.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)


@pytest.fixture
def payments_file(tmp_path, booking_factory):
    payments = [
        booking_factory.payment(10000, paid_at=datetime(2026, 2, 1, 6, 30, tzinfo=UTC)),
        booking_factory.payment(7500, paid_at=datetime(2026, 2, 1, 7, 10, tzinfo=UTC)),
    ]
    path = tmp_path / "payments.json"
    path.write_text(json.dumps([p.model_dump(mode="json") for p in payments]))
    return path


@pytest.mark.unit
class TestQuoteCommand:
    def test_point_to_point_quote(self, capsys):
        exit_code = main(
            ["quote", "--base-fee", "$55", "--per-mile", "2.75", "--min-fare", "55"]
            + ["--miles", "30"]
        )

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["total_cents"] == 13750
        assert output["min_fare_applied"] is False

    def test_hourly_quote_with_stops(self, capsys):
        exit_code = main(
            [
                "quote",
                "--strategy",
                "HOURLY",
                "--per-hour",
                "85",
                "--min-hours",
                "2",
                "--hours",
                "1",
                "--stops",
                "1",
            ]
        )

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output["total_cents"] == 17000 + 1500

    def test_invalid_money_exits_nonzero(self):
        assert main(["quote", "--base-fee", "fifty"]) == 1

    def test_unknown_strategy_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["quote", "--strategy", "SURGE"])

    def test_invalid_settings_exit_nonzero(self, capsys, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "VERBOSE")
        assert main(["quote", "--base-fee", "55"]) == 1
        assert "ConfigurationError" in capsys.readouterr().err


@pytest.mark.unit
class TestReportCommand:
    def test_trailing_report(self, capsys, payments_file):
        exit_code = main(
            [
                "report",
                str(payments_file),
                "--view",
                "trailing",
                "--months",
                "2",
                "--now",
                "2026-02-15T19:00:00+00:00",
            ]
        )

        assert exit_code == 0
        captured = capsys.readouterr()
        output = json.loads(captured.out)
        assert "Report trailing over 2 payments produced 2 buckets" in captured.err
        assert output["timezone"] == "America/Phoenix"
        assert [b["key"] for b in output["buckets"]] == ["2026-01", "2026-02"]
        assert [b["captured_cents"] for b in output["buckets"]] == [10000, 7500]
        assert output["changes_pct"] == [None, -25.0]
        assert output["kpis"]["captured_cents"] == 17500

    def test_range_report(self, capsys, payments_file):
        exit_code = main(
            [
                "report",
                str(payments_file),
                "--view",
                "range",
                "--from",
                "2026-02-01",
                "--to",
                "2026-02-28",
                "--now",
                "2026-03-14T17:00:00+00:00",
            ]
        )

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert [b["captured_cents"] for b in output["buckets"]] == [7500]

    def test_calendar_offset_from_environment(self, capsys, payments_file, monkeypatch):
        monkeypatch.setenv("CALENDAR_UTC_OFFSET_MINUTES", "0")
        monkeypatch.setenv("CALENDAR_TIMEZONE_LABEL", "UTC")

        main(
            [
                "report",
                str(payments_file),
                "--view",
                "month",
                "--month",
                "2026-02",
                "--now",
                "2026-03-14T17:00:00+00:00",
            ]
        )

        output = json.loads(capsys.readouterr().out)
        assert output["buckets"][0]["captured_cents"] == 17500
