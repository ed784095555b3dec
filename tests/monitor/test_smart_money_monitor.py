"""Tests for the smart money monitor and its report helpers."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import CONDITION_ID, FakeClock
from polymarket_monitor.alerter.models import AlertSeverity, AlertType
from polymarket_monitor.ingestor.http import ApiTransientError
from polymarket_monitor.ingestor.models import GammaMarket, LiveVolume, OpenInterest
from polymarket_monitor.monitor.smart_money import (
    NO_SIGNIFICANT_SHIFT,
    SmartMoneyMonitor,
    SnapshotChanges,
    build_insight,
    compare_snapshots,
    describe_pnl_shift,
)
from polymarket_monitor.profiler.models import EnrichedDistribution, EnrichedHolder, SidePnLAnalysis
from polymarket_monitor.storage.database import DatabaseManager
from polymarket_monitor.storage.repos import MarketSnapshotDTO, MarketSnapshotRepository


def _analysis(yes_pnl: float = 3000.0, no_pnl: float = 500.0, *, yes_conc: float = 80.0) -> SidePnLAnalysis:
    yes = tuple(
        EnrichedHolder(address=f"0xy{i}", name=f"y{i}", amount=100.0 - i, pnl=yes_pnl / 25) for i in range(25)
    )
    no = (EnrichedHolder(address="0xn0", name="n0", amount=50.0, pnl=no_pnl),)
    return SidePnLAnalysis(
        yes_side_pnl=yes_pnl,
        no_side_pnl=no_pnl,
        yes_side_avg_pnl=yes_pnl / 25,
        no_side_avg_pnl=no_pnl,
        smarter_side="NO" if no_pnl >= yes_pnl / 25 else "YES",
        distribution=EnrichedDistribution(
            yes_holders=yes,
            no_holders=no,
            yes_concentration=yes_conc,
            no_concentration=100.0,
            total_yes_amount=sum(h.amount for h in yes),
            total_no_amount=50.0,
        ),
    )


@pytest.fixture
def gamma() -> AsyncMock:
    client = AsyncMock()
    client.get_market_by_condition_id = AsyncMock(
        return_value=GammaMarket(
            id="7",
            condition_id=CONDITION_ID,
            slug="will-it-rain-tomorrow",
            question="Will it rain tomorrow?",
            outcome_prices=("0.35", "0.65"),
        )
    )
    client.get_event_by_slug = AsyncMock(return_value=None)
    return client


@pytest.fixture
def data_client() -> AsyncMock:
    client = AsyncMock()
    client.get_open_interest = AsyncMock(return_value=[OpenInterest(market=CONDITION_ID, value=20000.0)])
    client.get_live_volume = AsyncMock(return_value=LiveVolume(total=9000.0, markets=((CONDITION_ID, 3000.0),)))
    return client


@pytest.fixture
def analyzer() -> AsyncMock:
    mock = AsyncMock()
    mock.calculate_side_pnl = AsyncMock(return_value=_analysis())
    return mock


class TestReportHelpers:
    def test_describe_pnl_shift(self) -> None:
        assert describe_pnl_shift(500, -900) == NO_SIGNIFICANT_SHIFT
        assert describe_pnl_shift(5000, 1000) == "Yes side P&L improving (+$5000)"
        assert describe_pnl_shift(1000, 5000) == "No side P&L improving (+$5000)"
        assert describe_pnl_shift(3000, 2000) == "Both sides P&L changing (Yes: $3000, No: $2000)"

    def test_compare_snapshots(self) -> None:
        previous = MarketSnapshotDTO(
            condition_id=CONDITION_ID, open_interest=100.0, live_volume=50.0, yes_side_pnl=0.0, no_side_pnl=0.0
        )
        changes = compare_snapshots(previous, _analysis(yes_pnl=6000.0, no_pnl=100.0), 80.0, 75.0)

        assert changes.open_interest_change == -20.0
        assert changes.volume_change == 25.0
        assert changes.pnl_shift == "Yes side P&L improving (+$6000)"

    def test_insight_sentences(self) -> None:
        analysis = _analysis(yes_pnl=3000.0, no_pnl=500.0, yes_conc=80.0)
        changes = SnapshotChanges(open_interest_change=0, volume_change=0, pnl_shift="Yes side P&L improving (+$2000)")

        insight = build_insight(analysis, changes)

        assert insight == (
            "NO side has more profitable traders (avg P&L: $500). "
            "Yes side highly concentrated (80.0% in top 5). "
            "No side highly concentrated (100.0% in top 5). "
            "Yes side P&L improving (+$2000)"
        )

    def test_insight_without_changes(self) -> None:
        insight = build_insight(_analysis(yes_conc=70.0), None)
        assert "Yes side highly concentrated" not in insight
        assert "P&L improving" not in insight


@pytest.mark.usefixtures("tracked_market")
class TestSmartMoneyMonitor:
    @pytest.mark.asyncio
    async def test_first_report(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, analyzer: AsyncMock, clock: FakeClock
    ) -> None:
        monitor = SmartMoneyMonitor(db, gamma, data_client, analyzer, clock=clock)

        alerts = await monitor.run()

        assert len(alerts) == 1
        report = alerts[0]
        assert report.alert_type == AlertType.SMART_MONEY_REPORT
        assert report.severity == AlertSeverity.LOW
        assert report.title == "Smart Money Report: Will it rain tomorrow?"
        assert report.data["openInterest"] == {"current": 20000.0, "change": 0.0}
        assert report.data["volume"] == {"current": 3000.0, "change": 0.0}
        assert report.data["hourOverHour"] is None
        assert len(report.data["holderDistribution"]["yes"]["topHolders"]) == 20
        assert report.data["holderDistribution"]["yes"]["count"] == 25
        assert report.data["sidePnL"]["smarterSide"] == "NO"
        assert report.data["currentProbability"] == 0.35
        assert monitor.last_run_at == clock.now

        async with db.session() as session:
            stored = await MarketSnapshotRepository(session).get_latest(CONDITION_ID)
        assert stored is not None
        assert stored.open_interest == 20000.0
        assert stored.yes_holders == 25
        assert stored.yes_side_pnl == 3000.0

    @pytest.mark.asyncio
    async def test_runs_at_most_once_per_interval(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, analyzer: AsyncMock, clock: FakeClock
    ) -> None:
        monitor = SmartMoneyMonitor(db, gamma, data_client, analyzer, interval_minutes=60, clock=clock)

        assert len(await monitor.run()) == 1
        clock.now += timedelta(minutes=30)
        assert await monitor.run() == []
        clock.now += timedelta(minutes=30)
        assert len(await monitor.run()) == 1
        assert analyzer.calculate_side_pnl.await_count == 2

    @pytest.mark.asyncio
    async def test_hour_over_hour_trends(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, analyzer: AsyncMock, clock: FakeClock
    ) -> None:
        monitor = SmartMoneyMonitor(db, gamma, data_client, analyzer, clock=clock)
        await monitor.run()

        data_client.get_open_interest.return_value = [OpenInterest(market=CONDITION_ID, value=25000.0)]
        data_client.get_live_volume.return_value = LiveVolume(total=1.0, markets=((CONDITION_ID, 2500.0),))
        analyzer.calculate_side_pnl.return_value = _analysis(yes_pnl=9000.0, no_pnl=500.0)
        clock.now += timedelta(hours=1)
        alerts = await monitor.run()

        report = alerts[0]
        assert report.data["openInterest"] == {"current": 25000.0, "change": 5000.0}
        assert report.data["volume"]["change"] == -500.0
        assert report.data["hourOverHour"] == {
            "openInterestTrend": "INCREASING",
            "volumeTrend": "DECREASING",
            "smartMoneyShift": "Yes side P&L improving (+$6000)",
        }
        assert report.data["sidePnL"]["analysis"].endswith("Yes side P&L improving (+$6000)")

    @pytest.mark.asyncio
    async def test_open_interest_and_volume_failures_default_to_zero(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, analyzer: AsyncMock, clock: FakeClock
    ) -> None:
        data_client.get_open_interest.side_effect = ApiTransientError("HTTP 500")
        data_client.get_live_volume.side_effect = ApiTransientError("HTTP 500")
        monitor = SmartMoneyMonitor(db, gamma, data_client, analyzer, clock=clock)

        alerts = await monitor.run()

        assert alerts[0].data["openInterest"]["current"] == 0.0
        assert alerts[0].data["volume"]["current"] == 0.0

    @pytest.mark.asyncio
    async def test_analysis_failure_skips_market_but_completes_run(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, analyzer: AsyncMock, clock: FakeClock
    ) -> None:
        analyzer.calculate_side_pnl.side_effect = ApiTransientError("holders unavailable")
        monitor = SmartMoneyMonitor(db, gamma, data_client, analyzer, clock=clock)

        assert await monitor.run() == []
        assert monitor.last_run_at == clock.now
        async with db.session() as session:
            assert await MarketSnapshotRepository(session).get_latest(CONDITION_ID) is None
