"""Monitor contract and shared helpers.

A monitor polls one data source, keeps its own cursor state, and turns
what it sees into zero or more alerts. ``run`` never raises: per-item
failures are logged and skipped inside the monitor, and anything that
escapes the per-item loop is logged and reported as zero alerts.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from polymarket_monitor.storage.repos import TrackedMarketDTO, TrackedMarketRepository

if TYPE_CHECKING:
    from polymarket_monitor.alerter.models import Alert
    from polymarket_monitor.ingestor.gamma_client import GammaClient
    from polymarket_monitor.ingestor.models import GammaMarket
    from polymarket_monitor.storage.database import DatabaseManager

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


@runtime_checkable
class Monitor(Protocol):
    """What the orchestrator needs from a monitor."""

    name: str
    enabled: bool

    async def run(self) -> list[Alert]: ...


class BaseMonitor(ABC):
    """Common enable/skip handling and run-level error containment."""

    name = "monitor"

    def __init__(self, db: DatabaseManager, *, enabled: bool = True, clock: Clock | None = None) -> None:
        self.enabled = enabled
        self._db = db
        self._clock = clock or utcnow
        self.logger = logging.getLogger(f"polymarket_monitor.monitor.{self.name}")

    def now(self) -> datetime:
        return self._clock()

    async def run(self) -> list[Alert]:
        if not self.enabled:
            self.logger.debug("Monitor disabled, skipping")
            return []
        try:
            alerts = await self._run()
        except Exception:
            self.logger.exception("Monitor run failed")
            return []
        self.logger.info("Completed with %d alert(s)", len(alerts))
        return alerts

    @abstractmethod
    async def _run(self) -> list[Alert]:
        """Produce this run's alerts; per-item failures must be handled here."""

    async def _tracked_markets(self) -> list[TrackedMarketDTO]:
        async with self._db.session() as session:
            return await TrackedMarketRepository(session).list_enabled()


def slugify(name: str) -> str:
    """Lowercase, runs of non-alphanumerics become ``-``, trimmed."""
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


async def resolve_tracked_market(gamma: GammaClient, tracked: TrackedMarketDTO) -> GammaMarket | None:
    """Look a tracked market up by condition id, falling back to its slugified name's event."""
    market = await gamma.get_market_by_condition_id(tracked.condition_id)
    if market is not None or not tracked.name:
        return market
    event = await gamma.get_event_by_slug(slugify(tracked.name))
    if event is None:
        return None
    return event.find_market(tracked.condition_id)


def market_summary(market: GammaMarket) -> dict[str, object]:
    """The ``market`` block shared by alert payloads."""
    return {
        "slug": market.slug,
        "title": market.question,
        "conditionId": market.condition_id,
        "outcomes": list(market.outcomes),
    }
