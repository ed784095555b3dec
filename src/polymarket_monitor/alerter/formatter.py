"""Alert envelope construction and human-readable formatting.

This module turns ``Alert`` objects into the JSON envelope POSTed to the
webhook, and into one-line summaries for the command line.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from polymarket_monitor.alerter.models import Alert, AlertSeverity

if TYPE_CHECKING:
    from polymarket_monitor.storage.repos import AlertDTO

POLYMARKET_MARKET_URL = "https://polymarket.com/event/{slug}"


def format_usdc(amount: float) -> str:
    """Format a USDC amount with commas and 2 decimal places."""
    return f"${amount:,.2f}"


def format_percent(value: float) -> str:
    return f"{value:.1f}%"


def severity_for(value: float, *, high_above: float, medium_above: float) -> AlertSeverity:
    """Bucket a magnitude into a severity using strict ``>`` comparisons."""
    if value > high_above:
        return AlertSeverity.HIGH
    if value > medium_above:
        return AlertSeverity.MEDIUM
    return AlertSeverity.LOW


def market_url(slug: str) -> str:
    return POLYMARKET_MARKET_URL.format(slug=slug)


def to_iso(ts: datetime) -> str:
    """ISO-8601 in UTC; naive datetimes are taken to be UTC already."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC).isoformat().replace("+00:00", "Z")


def build_payload(alert: Alert) -> dict[str, Any]:
    """Build the webhook envelope.

    ``timestamp`` is when the alert was raised, so backlog replays carry
    the same envelope as the first attempt.
    """
    return {
        "timestamp": to_iso(alert.timestamp),
        "alertType": alert.alert_type.value,
        "severity": alert.severity.value,
        "title": alert.title,
        "data": alert.data,
    }


def format_alert_line(alert: AlertDTO) -> str:
    """One-line summary of a stored alert for terminal output."""
    status = "sent" if alert.webhook_sent else f"pending (retries={alert.retry_count})"
    created = to_iso(alert.created_at) if alert.created_at else "-"
    return f"{created}  [{alert.severity.value.upper():<6}] {alert.alert_type.value:<18} {alert.title}  <{status}>"
