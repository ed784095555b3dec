"""Monitor orchestrator for Polymarket Monitor.

This module provides the MonitorOrchestrator class that runs the monitor
set one cycle at a time and drives alert persistence and delivery.

Cycle flow:
    Monitors (in order) → Alert store → Immediate webhook send → Backlog sweep
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from redis.asyncio import Redis

from polymarket_monitor.alerter.webhook import SweepResult, WebhookDelivery
from polymarket_monitor.ingestor.data_client import DataApiClient
from polymarket_monitor.ingestor.gamma_client import GammaClient
from polymarket_monitor.monitor import (
    AccountActivityMonitor,
    MarketProbabilityMonitor,
    SmartMoneyMonitor,
    TradeActivityMonitor,
    VolumeOutlierMonitor,
)
from polymarket_monitor.profiler.smart_money import SmartMoneyAnalyzer
from polymarket_monitor.profiler.trader_intel import TraderIntelligence
from polymarket_monitor.storage.database import DatabaseManager
from polymarket_monitor.storage.repos import AlertRepository

if TYPE_CHECKING:
    from polymarket_monitor.alerter.models import Alert
    from polymarket_monitor.config import Settings
    from polymarket_monitor.monitor.base import Monitor

logger = logging.getLogger(__name__)


class OrchestratorState(str, Enum):
    """Orchestrator lifecycle states."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass
class CycleStats:
    """Statistics for one monitoring cycle."""

    started_at: datetime
    duration_seconds: float = 0.0
    alerts_by_monitor: dict[str, int] = field(default_factory=dict)
    alerts_generated: int = 0
    alerts_persisted: int = 0
    alerts_sent: int = 0
    persistence_failures: int = 0
    monitor_failures: int = 0
    sweep: SweepResult | None = None


class MonitorOrchestrator:
    """Runs the monitor set and delivers what it finds.

    Only one cycle runs at a time: a call to ``run_cycle`` while another is
    in flight returns ``None`` immediately and is not queued.

    Example:
        ```python
        orchestrator = build_from_settings(get_settings())
        async with orchestrator:
            await orchestrator.run()
        ```
    """

    def __init__(
        self,
        db: DatabaseManager,
        monitors: Sequence[Monitor],
        delivery: WebhookDelivery,
        *,
        dry_run: bool = False,
        interval_seconds: float = 90.0,
        stop_event: asyncio.Event | None = None,
        resources: Sequence[Any] = (),
    ) -> None:
        """Initialize the orchestrator.

        Args:
            db: Database manager for the alert store.
            monitors: Monitors in the order they run each cycle.
            delivery: Webhook delivery service.
            dry_run: If True, alerts are persisted and logged but never POSTed.
            interval_seconds: Pause between cycles in ``run``.
            stop_event: Event that ends ``run``; created if not given.
            resources: Extra objects with an async ``close``/``aclose`` released by ``close``.
        """
        self._db = db
        self._monitors = list(monitors)
        self._delivery = delivery
        self._dry_run = dry_run
        self._interval = interval_seconds
        self._stop_event = stop_event or asyncio.Event()
        self._resources = list(resources)

        self._state = OrchestratorState.STOPPED
        self._cycle_in_flight = False
        self._cycles_run = 0
        self._last_stats: CycleStats | None = None

    @property
    def monitors(self) -> list[Monitor]:
        return list(self._monitors)

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def stop_event(self) -> asyncio.Event:
        return self._stop_event

    @property
    def cycle_in_flight(self) -> bool:
        return self._cycle_in_flight

    @property
    def cycles_run(self) -> int:
        return self._cycles_run

    @property
    def last_stats(self) -> CycleStats | None:
        return self._last_stats

    async def run_cycle(self) -> CycleStats | None:
        """Run every enabled monitor once and deliver the resulting alerts.

        Returns:
            Statistics for the cycle, or None if another cycle was in flight.
        """
        if self._cycle_in_flight:
            logger.info("Previous cycle still running, skipping this one")
            return None

        self._cycle_in_flight = True
        started = time.monotonic()
        stats = CycleStats(started_at=datetime.now(UTC))
        try:
            logger.info("Starting monitoring cycle")
            alerts = await self._run_monitors(stats)
            stats.alerts_generated = len(alerts)

            for alert in alerts:
                await self._process_alert(alert, stats)

            if self._dry_run:
                logger.info("Dry run: skipping backlog sweep")
            else:
                stats.sweep = await self._delivery.process_pending_alerts(created_before=stats.started_at)
        finally:
            stats.duration_seconds = time.monotonic() - started
            self._cycle_in_flight = False
            self._cycles_run += 1
            self._last_stats = stats

        logger.info(
            "Monitoring cycle completed in %.2fs: %d alert(s), %d sent, %d persistence failure(s)",
            stats.duration_seconds,
            stats.alerts_generated,
            stats.alerts_sent,
            stats.persistence_failures,
        )
        return stats

    async def _run_monitors(self, stats: CycleStats) -> list[Alert]:
        alerts: list[Alert] = []
        for monitor in self._monitors:
            if not monitor.enabled:
                continue
            try:
                produced = await monitor.run()
            except Exception:
                logger.exception("Monitor %s failed", monitor.name)
                stats.monitor_failures += 1
                continue
            stats.alerts_by_monitor[monitor.name] = len(produced)
            if produced:
                logger.info("%s generated %d alert(s)", monitor.name, len(produced))
            alerts.extend(produced)
        return alerts

    async def _process_alert(self, alert: Alert, stats: CycleStats) -> None:
        """Persist, then attempt immediate delivery of, one alert."""
        try:
            async with self._db.session() as session:
                stored = await AlertRepository(session).create(alert)
        except Exception as e:
            logger.error("Failed to persist alert %r, dropping it: %s", alert.title, e)
            stats.persistence_failures += 1
            return
        stats.alerts_persisted += 1

        if self._dry_run:
            logger.info("[DRY RUN] %s [%s] %s", alert.alert_type.value, alert.severity.value, alert.title)
            return

        if not await self._delivery.send_alert(alert):
            logger.warning("Immediate delivery failed for alert %s; left for backlog", stored.id)
            return

        try:
            async with self._db.session() as session:
                await AlertRepository(session).mark_sent(stored.id)
        except Exception as e:
            logger.error("Alert %s was delivered but could not be marked sent: %s", stored.id, e)
            return
        stats.alerts_sent += 1

    async def run(self) -> None:
        """Run cycles every ``interval_seconds`` until the stop event is set.

        The first cycle starts immediately.
        """
        self._state = OrchestratorState.RUNNING
        enabled = [m.name for m in self._monitors if m.enabled]
        logger.info(
            "Orchestrator running %d/%d monitors every %.0fs: %s",
            len(enabled),
            len(self._monitors),
            self._interval,
            ", ".join(enabled),
        )
        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_cycle()
                except Exception:
                    logger.exception("Monitoring cycle failed")
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                except TimeoutError:
                    pass
        finally:
            self._state = OrchestratorState.STOPPED
            logger.info("Orchestrator stopped")

    def stop(self) -> None:
        """Request shutdown; also ends any pending webhook backoff wait."""
        if self._state == OrchestratorState.RUNNING:
            self._state = OrchestratorState.STOPPING
        self._stop_event.set()

    async def close(self) -> None:
        """Release the delivery client, upstream clients and the database engine."""
        await self._delivery.close()
        for resource in self._resources:
            closer = getattr(resource, "aclose", None) or getattr(resource, "close", None)
            if closer is None:
                continue
            try:
                await closer()
            except Exception as e:
                logger.warning("Failed to close %s: %s", type(resource).__name__, e)
        await self._db.dispose()

    async def __aenter__(self) -> MonitorOrchestrator:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


def build_from_settings(
    settings: Settings,
    *,
    db: DatabaseManager | None = None,
    stop_event: asyncio.Event | None = None,
    dry_run: bool | None = None,
) -> MonitorOrchestrator:
    """Wire clients, analyzers, monitors and delivery from settings.

    Monitors are created once here and live as long as the orchestrator,
    so their cursors and the whale set persist across cycles.
    """
    stop_event = stop_event or asyncio.Event()
    db = db or DatabaseManager(settings.database.url)

    gamma = GammaClient(
        settings.polymarket.gamma_api_url,
        timeout=settings.polymarket.gamma_timeout_seconds,
        requests_per_second=settings.polymarket.requests_per_second,
    )
    data_client = DataApiClient(
        settings.polymarket.data_api_url,
        timeout=settings.polymarket.data_timeout_seconds,
        requests_per_second=settings.polymarket.requests_per_second,
    )
    redis = Redis.from_url(settings.redis.url) if settings.redis.url else None

    # Separate namespaces: the trade monitor clears its cache every run.
    trade_intel = TraderIntelligence(data_client, redis=redis, namespace="trader_pnl:trade")
    smart_money_intel = TraderIntelligence(data_client, redis=redis, namespace="trader_pnl:smart_money")

    monitors: list[Monitor] = [
        VolumeOutlierMonitor(
            db,
            gamma,
            enabled=settings.volume_outlier.enabled,
            std_deviation_threshold=settings.volume_outlier.std_deviation_threshold,
            time_window_hours=settings.volume_outlier.time_window_hours,
            market_scan_limit=settings.volume_outlier.market_scan_limit,
        ),
        AccountActivityMonitor(
            db,
            data_client,
            enabled=settings.account_activity.enabled,
            initial_lookback_minutes=settings.account_activity.initial_lookback_minutes,
        ),
        MarketProbabilityMonitor(
            db,
            gamma,
            data_client,
            enabled=settings.market_probability.enabled,
            change_threshold_percent=settings.market_probability.change_threshold_percent,
            track_live_volume=settings.market_probability.track_live_volume,
            comparison_offset_minutes=settings.market_probability.comparison_offset_minutes,
            update_interval_minutes=settings.market_probability.update_interval_minutes,
        ),
        TradeActivityMonitor(
            db,
            gamma,
            data_client,
            trader_intel=trade_intel,
            enabled=settings.trade_activity.enabled,
            large_trade_threshold=settings.trade_activity.large_trade_threshold,
            whale_pnl_threshold=settings.trade_activity.whale_pnl_threshold,
            include_trader_intel=settings.trade_activity.include_trader_intel,
            initial_lookback_minutes=settings.trade_activity.initial_lookback_minutes,
        ),
        SmartMoneyMonitor(
            db,
            gamma,
            data_client,
            SmartMoneyAnalyzer(data_client, smart_money_intel),
            enabled=settings.smart_money.enabled,
            interval_minutes=settings.smart_money.interval_minutes,
        ),
    ]

    delivery = WebhookDelivery(
        db,
        settings.webhook.url,
        retry_attempts=settings.webhook.retry_attempts,
        timeout_ms=settings.webhook.timeout_ms,
        stop_event=stop_event,
    )

    resources: list[Any] = [gamma, data_client]
    if redis is not None:
        resources.append(redis)

    return MonitorOrchestrator(
        db,
        monitors,
        delivery,
        dry_run=settings.dry_run if dry_run is None else dry_run,
        interval_seconds=settings.polling.interval_minutes * 60,
        stop_event=stop_event,
        resources=resources,
    )
