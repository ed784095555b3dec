"""Alert data models shared by monitors, storage and delivery."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class AlertType(str, Enum):
    """Kinds of findings a monitor can emit."""

    VOLUME_OUTLIER = "VOLUME_OUTLIER"
    ACCOUNT_ACTIVITY = "ACCOUNT_ACTIVITY"
    PROBABILITY_SHIFT = "PROBABILITY_SHIFT"
    MARKET_UPDATE = "MARKET_UPDATE"
    LARGE_TRADE = "LARGE_TRADE"
    WHALE_ACTIVITY = "WHALE_ACTIVITY"
    SMART_MONEY_REPORT = "SMART_MONEY_REPORT"
    # Reserved; no monitor emits it yet.
    NEW_ACCOUNT = "NEW_ACCOUNT"


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class Alert:
    """A finding produced by a monitor.

    Attributes:
        alert_type: What kind of condition was detected.
        severity: Bucketed importance of the finding.
        title: Human-readable one-line summary.
        data: Monitor-defined structured payload (JSON-serializable).
        timestamp: When the monitor produced the alert.
    """

    alert_type: AlertType
    severity: AlertSeverity
    title: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
