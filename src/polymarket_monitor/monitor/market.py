"""Market probability monitor: probability shifts and periodic market updates."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from polymarket_monitor.alerter.formatter import format_percent, market_url, severity_for, to_iso
from polymarket_monitor.alerter.models import Alert, AlertSeverity, AlertType
from polymarket_monitor.monitor.base import BaseMonitor, Clock, market_summary, resolve_tracked_market
from polymarket_monitor.storage.repos import MarketRepository, PriceSnapshotRepository, TrackedMarketDTO

if TYPE_CHECKING:
    from polymarket_monitor.ingestor.data_client import DataApiClient
    from polymarket_monitor.ingestor.gamma_client import GammaClient
    from polymarket_monitor.ingestor.models import GammaMarket
    from polymarket_monitor.storage.database import DatabaseManager

HIGH_CHANGE_PERCENT = 20.0
MEDIUM_CHANGE_PERCENT = 10.0


def percent_change(previous: float, current: float) -> float | None:
    """``|current - previous| / previous * 100``; None when ``previous`` is 0."""
    if previous == 0:
        return None
    return abs(current - previous) / previous * 100


class MarketProbabilityMonitor(BaseMonitor):
    """Records a probability snapshot per tracked market and compares it with an earlier one.

    The comparison point is the latest snapshot at or before
    ``now - comparison_offset_minutes``, read before the new snapshot is
    written; an offset of 0 compares with the immediately preceding run.
    """

    name = "market_probability"

    def __init__(
        self,
        db: DatabaseManager,
        gamma: GammaClient,
        data_client: DataApiClient,
        *,
        enabled: bool = True,
        change_threshold_percent: float = 1.0,
        track_live_volume: bool = True,
        comparison_offset_minutes: float = 0,
        update_interval_minutes: float = 60,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(db, enabled=enabled, clock=clock)
        self._gamma = gamma
        self._data = data_client
        self._threshold = change_threshold_percent
        self._track_live_volume = track_live_volume
        self._offset = timedelta(minutes=comparison_offset_minutes)
        self._update_interval = timedelta(minutes=update_interval_minutes)
        self._last_update: dict[str, datetime] = {}
        self._last_live_volume: dict[str, float] = {}

    async def _run(self) -> list[Alert]:
        now = self.now()
        tracked = await self._tracked_markets()
        if not tracked:
            self.logger.debug("No tracked markets")
            return []

        alerts: list[Alert] = []
        for item in tracked:
            try:
                alerts.extend(await self._check_market(item, now))
            except Exception as e:
                self.logger.warning("Failed to check market %s: %s", item.label, e)
        return alerts

    async def _live_volume(self, tracked: TrackedMarketDTO) -> tuple[float | None, float | None]:
        """Current live volume for the market and its change since the previous run."""
        if not self._track_live_volume or tracked.event_id is None:
            return None, None
        try:
            volume = await self._data.get_live_volume(tracked.event_id)
        except Exception as e:
            self.logger.warning("Failed to fetch live volume for event %s: %s", tracked.event_id, e)
            return None, None
        current = volume.value_for(tracked.condition_id) if volume else None
        if current is None:
            return None, None
        previous = self._last_live_volume.get(tracked.condition_id)
        self._last_live_volume[tracked.condition_id] = current
        return current, (current - previous if previous is not None else None)

    async def _check_market(self, tracked: TrackedMarketDTO, now: datetime) -> list[Alert]:
        market = await resolve_tracked_market(self._gamma, tracked)
        if market is None:
            self.logger.warning("Tracked market %s not found upstream", tracked.label)
            return []

        probability = market.probability
        live_volume, volume_change = await self._live_volume(tracked)

        async with self._db.session() as session:
            stored = await MarketRepository(session).upsert(
                condition_id=market.condition_id,
                slug=market.slug,
                title=market.question,
                volume_24hr=market.volume_24hr,
            )
            snapshots = PriceSnapshotRepository(session)
            previous = await snapshots.get_at_or_before(stored.id, at=now - self._offset)
            await snapshots.create(market_id=stored.id, probability=probability, ts=now)

        alerts: list[Alert] = []
        if previous is not None:
            change = percent_change(previous.probability, probability)
            if change is not None and change >= self._threshold:
                alerts.append(self._shift_alert(market, previous.probability, previous.ts, probability, change, now))

        if self._update_due(market.condition_id, now):
            alerts.append(self._update_alert(market, probability, live_volume, volume_change, now))
            self._last_update[market.condition_id] = now
        return alerts

    def _update_due(self, condition_id: str, now: datetime) -> bool:
        if self._update_interval <= timedelta(0):
            return False
        last = self._last_update.get(condition_id)
        return last is None or now - last >= self._update_interval

    def _shift_alert(
        self,
        market: GammaMarket,
        previous: float,
        previous_at: datetime,
        current: float,
        change: float,
        now: datetime,
    ) -> Alert:
        direction = "up" if current > previous else "down"
        self.logger.info(
            "Probability of %s moved %s %.2f%% (%.4f -> %.4f)", market.slug, direction, change, previous, current
        )
        return Alert(
            alert_type=AlertType.PROBABILITY_SHIFT,
            severity=severity_for(change, high_above=HIGH_CHANGE_PERCENT, medium_above=MEDIUM_CHANGE_PERCENT),
            title=f"Probability {direction} {format_percent(change)} on {market.question}",
            timestamp=now,
            data={
                "market": {**market_summary(market), "url": market_url(market.slug)},
                "previousProbability": previous,
                "previousTimestamp": to_iso(previous_at),
                "currentProbability": current,
                "changePercent": change,
                "direction": direction,
                "threshold": self._threshold,
            },
        )

    def _update_alert(
        self,
        market: GammaMarket,
        probability: float,
        live_volume: float | None,
        volume_change: float | None,
        now: datetime,
    ) -> Alert:
        return Alert(
            alert_type=AlertType.MARKET_UPDATE,
            severity=AlertSeverity.LOW,
            title=f"Market update: {market.question}",
            timestamp=now,
            data={
                "market": {**market_summary(market), "url": market_url(market.slug)},
                "outcomePrices": market.outcome_price_values,
                "currentProbability": probability,
                "volume": market.volume,
                "volume24hr": market.volume_24hr,
                "liveVolume": live_volume,
                "liveVolumeChange": volume_change,
            },
        )
