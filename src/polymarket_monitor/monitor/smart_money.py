"""Smart money monitor: periodic side-P&L report per tracked market."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from polymarket_monitor.alerter.formatter import market_url
from polymarket_monitor.alerter.models import Alert, AlertSeverity, AlertType
from polymarket_monitor.monitor.base import BaseMonitor, Clock, market_summary, resolve_tracked_market
from polymarket_monitor.storage.repos import MarketSnapshotDTO, MarketSnapshotRepository, TrackedMarketDTO

if TYPE_CHECKING:
    from polymarket_monitor.ingestor.data_client import DataApiClient
    from polymarket_monitor.ingestor.gamma_client import GammaClient
    from polymarket_monitor.profiler.models import SidePnLAnalysis
    from polymarket_monitor.profiler.smart_money import SmartMoneyAnalyzer
    from polymarket_monitor.storage.database import DatabaseManager

PNL_NOISE_FLOOR = 1_000.0
HIGH_CONCENTRATION_PERCENT = 70.0
TOP_HOLDERS_REPORTED = 20
NO_SIGNIFICANT_SHIFT = "No significant P&L shift"


@dataclass(frozen=True)
class SnapshotChanges:
    """Differences between this run's snapshot and the previous one."""

    open_interest_change: float
    volume_change: float
    pnl_shift: str


def describe_pnl_shift(yes_change: float, no_change: float) -> str:
    if abs(yes_change) < PNL_NOISE_FLOOR and abs(no_change) < PNL_NOISE_FLOOR:
        return NO_SIGNIFICANT_SHIFT
    if yes_change > no_change * 2:
        return f"Yes side P&L improving (+${yes_change:.0f})"
    if no_change > yes_change * 2:
        return f"No side P&L improving (+${no_change:.0f})"
    return f"Both sides P&L changing (Yes: ${yes_change:.0f}, No: ${no_change:.0f})"


def compare_snapshots(
    previous: MarketSnapshotDTO, analysis: SidePnLAnalysis, open_interest: float, live_volume: float
) -> SnapshotChanges:
    return SnapshotChanges(
        open_interest_change=open_interest - previous.open_interest,
        volume_change=live_volume - previous.live_volume,
        pnl_shift=describe_pnl_shift(
            analysis.yes_side_pnl - previous.yes_side_pnl,
            analysis.no_side_pnl - previous.no_side_pnl,
        ),
    )


def build_insight(analysis: SidePnLAnalysis, changes: SnapshotChanges | None) -> str:
    """Short free-text reading of the report, one sentence per rule that fired."""
    distribution = analysis.distribution
    insights = [
        f"{analysis.smarter_side} side has more profitable traders "
        f"(avg P&L: ${analysis.smarter_side_avg_pnl:.0f})"
    ]
    if distribution.yes_concentration > HIGH_CONCENTRATION_PERCENT:
        insights.append(f"Yes side highly concentrated ({distribution.yes_concentration:.1f}% in top 5)")
    if distribution.no_concentration > HIGH_CONCENTRATION_PERCENT:
        insights.append(f"No side highly concentrated ({distribution.no_concentration:.1f}% in top 5)")
    if changes is not None and changes.pnl_shift != NO_SIGNIFICANT_SHIFT:
        insights.append(changes.pnl_shift)
    return ". ".join(insights)


def _trend(change: float) -> str:
    return "INCREASING" if change > 0 else "DECREASING"


class SmartMoneyMonitor(BaseMonitor):
    """Reports which side of each tracked market the more profitable holders are on.

    Runs at most once per ``interval_minutes`` of wall-clock time; calls in
    between return no alerts.
    """

    name = "smart_money"

    def __init__(
        self,
        db: DatabaseManager,
        gamma: GammaClient,
        data_client: DataApiClient,
        analyzer: SmartMoneyAnalyzer,
        *,
        enabled: bool = True,
        interval_minutes: float = 60,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(db, enabled=enabled, clock=clock)
        self._gamma = gamma
        self._data = data_client
        self._analyzer = analyzer
        self._interval = timedelta(minutes=interval_minutes)
        self._last_run_at: datetime | None = None

    @property
    def last_run_at(self) -> datetime | None:
        return self._last_run_at

    async def _run(self) -> list[Alert]:
        now = self.now()
        if self._last_run_at is not None and now - self._last_run_at < self._interval:
            self.logger.debug("Interval not elapsed since %s, skipping", self._last_run_at)
            return []

        tracked = await self._tracked_markets()
        if not tracked:
            self.logger.debug("No tracked markets")
            return []

        self.logger.info("Analyzing %d market(s) for smart money", len(tracked))
        alerts: list[Alert] = []
        for item in tracked:
            try:
                alert = await self._report(item, now)
            except Exception as e:
                self.logger.warning("Failed to analyze market %s: %s", item.label, e)
                continue
            if alert is not None:
                alerts.append(alert)

        self._last_run_at = now
        return alerts

    async def _open_interest(self, condition_id: str) -> float:
        try:
            values = await self._data.get_open_interest([condition_id])
        except Exception as e:
            self.logger.warning("Could not fetch open interest for %s: %s", condition_id, e)
            return 0.0
        return values[0].value if values else 0.0

    async def _live_volume(self, tracked: TrackedMarketDTO) -> float:
        if tracked.event_id is None:
            self.logger.debug("No event id for %s, skipping live volume", tracked.label)
            return 0.0
        try:
            volume = await self._data.get_live_volume(tracked.event_id)
        except Exception as e:
            self.logger.warning("Could not fetch live volume for event %s: %s", tracked.event_id, e)
            return 0.0
        value = volume.value_for(tracked.condition_id) if volume else None
        return value if value is not None else 0.0

    async def _report(self, tracked: TrackedMarketDTO, now: datetime) -> Alert | None:
        market = await resolve_tracked_market(self._gamma, tracked)
        if market is None:
            self.logger.warning("Tracked market %s not found upstream", tracked.label)
            return None

        analysis = await self._analyzer.calculate_side_pnl(tracked.condition_id)
        distribution = analysis.distribution
        open_interest = await self._open_interest(tracked.condition_id)
        live_volume = await self._live_volume(tracked)
        probability = market.probability

        async with self._db.session() as session:
            snapshots = MarketSnapshotRepository(session)
            previous = await snapshots.get_latest(tracked.condition_id)
            await snapshots.create(
                MarketSnapshotDTO(
                    condition_id=tracked.condition_id,
                    open_interest=open_interest,
                    live_volume=live_volume,
                    yes_holders=len(distribution.yes_holders),
                    no_holders=len(distribution.no_holders),
                    yes_concentration=distribution.yes_concentration,
                    no_concentration=distribution.no_concentration,
                    yes_side_pnl=analysis.yes_side_pnl,
                    no_side_pnl=analysis.no_side_pnl,
                    probability=probability,
                    snapshot_time=now,
                )
            )

        changes = compare_snapshots(previous, analysis, open_interest, live_volume) if previous else None
        hour_over_hour: dict[str, Any] | None = None
        if changes is not None:
            hour_over_hour = {
                "openInterestTrend": _trend(changes.open_interest_change),
                "volumeTrend": _trend(changes.volume_change),
                "smartMoneyShift": changes.pnl_shift,
            }

        self.logger.info(
            "%s: %s side ahead (avg P&L $%.0f)",
            market.slug,
            analysis.smarter_side,
            analysis.smarter_side_avg_pnl,
        )
        return Alert(
            alert_type=AlertType.SMART_MONEY_REPORT,
            severity=AlertSeverity.LOW,
            title=f"Smart Money Report: {market.question}",
            timestamp=now,
            data={
                "market": {**market_summary(market), "url": market_url(market.slug)},
                "currentProbability": probability,
                "openInterest": {
                    "current": open_interest,
                    "change": changes.open_interest_change if changes else 0.0,
                },
                "volume": {
                    "current": live_volume,
                    "change": changes.volume_change if changes else 0.0,
                },
                "holderDistribution": {
                    "yes": {
                        "topHolders": [h.to_dict() for h in distribution.yes_holders[:TOP_HOLDERS_REPORTED]],
                        "concentration": distribution.yes_concentration,
                        "totalAmount": distribution.total_yes_amount,
                        "count": len(distribution.yes_holders),
                    },
                    "no": {
                        "topHolders": [h.to_dict() for h in distribution.no_holders[:TOP_HOLDERS_REPORTED]],
                        "concentration": distribution.no_concentration,
                        "totalAmount": distribution.total_no_amount,
                        "count": len(distribution.no_holders),
                    },
                },
                "sidePnL": {
                    "yes": {"totalPnL": analysis.yes_side_pnl, "avgPnL": analysis.yes_side_avg_pnl},
                    "no": {"totalPnL": analysis.no_side_pnl, "avgPnL": analysis.no_side_avg_pnl},
                    "smarterSide": analysis.smarter_side,
                    "failedLookups": analysis.failed_lookups,
                    "analysis": build_insight(analysis, changes),
                },
                "hourOverHour": hour_over_hour,
            },
        )
