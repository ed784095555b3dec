"""Tests for alert envelope construction and formatting."""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from polymarket_monitor.alerter.formatter import (
    build_payload,
    format_alert_line,
    format_percent,
    format_usdc,
    market_url,
    severity_for,
    to_iso,
)
from polymarket_monitor.alerter.models import Alert, AlertSeverity, AlertType
from polymarket_monitor.storage.repos import AlertDTO


def _alert() -> Alert:
    return Alert(
        alert_type=AlertType.LARGE_TRADE,
        severity=AlertSeverity.MEDIUM,
        title="Large trade on Will it rain tomorrow?",
        data={"trade": {"usdcValue": 12000.0}},
        timestamp=datetime(2026, 3, 1, 11, 59, tzinfo=UTC),
    )


class TestSeverityFor:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (10001, AlertSeverity.HIGH),
            (10000, AlertSeverity.MEDIUM),
            (1001, AlertSeverity.MEDIUM),
            (1000, AlertSeverity.LOW),
            (0, AlertSeverity.LOW),
        ],
    )
    def test_boundaries_are_strict(self, value: float, expected: AlertSeverity) -> None:
        assert severity_for(value, high_above=10000, medium_above=1000) == expected


class TestFormatting:
    def test_format_usdc(self) -> None:
        assert format_usdc(1234567.891) == "$1,234,567.89"
        assert format_usdc(0) == "$0.00"

    def test_format_percent(self) -> None:
        assert format_percent(12.345) == "12.3%"

    def test_market_url(self) -> None:
        assert market_url("will-it-rain") == "https://polymarket.com/event/will-it-rain"

    def test_to_iso_uses_z_suffix(self) -> None:
        assert to_iso(datetime(2026, 3, 1, 12, 0, tzinfo=UTC)) == "2026-03-01T12:00:00Z"

    def test_to_iso_converts_offsets_and_naive(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        assert to_iso(datetime(2026, 3, 1, 14, 0, tzinfo=plus_two)) == "2026-03-01T12:00:00Z"
        assert to_iso(datetime(2026, 3, 1, 12, 0)) == "2026-03-01T12:00:00Z"


class TestBuildPayload:
    def test_envelope_fields(self) -> None:
        payload = build_payload(_alert())

        assert payload == {
            "timestamp": "2026-03-01T11:59:00Z",
            "alertType": "LARGE_TRADE",
            "severity": "medium",
            "title": "Large trade on Will it rain tomorrow?",
            "data": {"trade": {"usdcValue": 12000.0}},
        }

    def test_timestamp_is_stable_across_builds(self) -> None:
        alert = _alert()
        assert build_payload(alert)["timestamp"] == build_payload(alert)["timestamp"] == "2026-03-01T11:59:00Z"


class TestFormatAlertLine:
    def test_pending_alert(self) -> None:
        dto = AlertDTO(
            id="a1",
            alert_type=AlertType.VOLUME_OUTLIER,
            severity=AlertSeverity.HIGH,
            title="Large trade detected on X",
            data={},
            alert_timestamp=datetime(2026, 3, 1, tzinfo=UTC),
            retry_count=2,
            created_at=datetime(2026, 3, 1, tzinfo=UTC),
        )
        line = format_alert_line(dto)

        assert line.startswith("2026-03-01T00:00:00Z")
        assert "[HIGH" in line
        assert "VOLUME_OUTLIER" in line
        assert "pending (retries=2)" in line

    def test_sent_alert(self) -> None:
        dto = AlertDTO(
            id="a2",
            alert_type=AlertType.MARKET_UPDATE,
            severity=AlertSeverity.LOW,
            title="Market update",
            data={},
            alert_timestamp=datetime(2026, 3, 1, tzinfo=UTC),
            webhook_sent=True,
        )
        line = format_alert_line(dto)

        assert line.startswith("-")
        assert line.endswith("<sent>")
