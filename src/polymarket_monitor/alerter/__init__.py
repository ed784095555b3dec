"""Alerting layer - Alert models, formatting and webhook delivery.

``WebhookDelivery`` lives in ``polymarket_monitor.alerter.webhook``; it is
not re-exported here because it depends on the storage layer, which in
turn imports the alert models from this package.
"""

from polymarket_monitor.alerter.formatter import build_payload, format_alert_line, severity_for
from polymarket_monitor.alerter.models import Alert, AlertSeverity, AlertType

__all__ = [
    "Alert",
    "AlertSeverity",
    "AlertType",
    "build_payload",
    "format_alert_line",
    "severity_for",
]
