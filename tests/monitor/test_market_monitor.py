"""Tests for the market probability monitor."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import CONDITION_ID, FakeClock
from polymarket_monitor.alerter.models import AlertSeverity, AlertType
from polymarket_monitor.ingestor.http import ApiTransientError
from polymarket_monitor.ingestor.models import GammaEvent, GammaMarket, LiveVolume
from polymarket_monitor.monitor.market import MarketProbabilityMonitor, percent_change
from polymarket_monitor.storage.database import DatabaseManager
from polymarket_monitor.storage.repos import TrackedMarketDTO, TrackedMarketRepository


def _market(yes_price: str) -> GammaMarket:
    return GammaMarket(
        id="7",
        condition_id=CONDITION_ID,
        slug="will-it-rain-tomorrow",
        question="Will it rain tomorrow?",
        outcomes=("Yes", "No"),
        outcome_prices=(yes_price, "0.5"),
        volume=250000.0,
        volume_24hr=12000.0,
    )


@pytest.fixture
def gamma() -> AsyncMock:
    client = AsyncMock()
    client.get_market_by_condition_id = AsyncMock(return_value=_market("0.50"))
    client.get_event_by_slug = AsyncMock(return_value=None)
    return client


@pytest.fixture
def data_client() -> AsyncMock:
    client = AsyncMock()
    client.get_live_volume = AsyncMock(return_value=None)
    return client


def _types(alerts) -> list[AlertType]:
    return [a.alert_type for a in alerts]


class TestPercentChange:
    def test_relative_change(self) -> None:
        assert percent_change(0.5, 0.55) == pytest.approx(10.0)
        assert percent_change(0.5, 0.45) == pytest.approx(10.0)

    def test_zero_previous_is_undefined(self) -> None:
        assert percent_change(0.0, 0.3) is None


@pytest.mark.usefixtures("tracked_market")
class TestMarketProbabilityMonitor:
    @pytest.mark.asyncio
    async def test_first_run_has_no_shift_but_sends_update(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        monitor = MarketProbabilityMonitor(db, gamma, data_client, clock=clock)

        alerts = await monitor.run()

        assert _types(alerts) == [AlertType.MARKET_UPDATE]
        update = alerts[0]
        assert update.severity == AlertSeverity.LOW
        assert update.data["outcomePrices"] == [0.5, 0.5]
        assert update.data["currentProbability"] == 0.5
        assert update.data["volume"] == 250000.0

    @pytest.mark.asyncio
    async def test_shift_against_previous_snapshot(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        monitor = MarketProbabilityMonitor(db, gamma, data_client, clock=clock)
        await monitor.run()
        gamma.get_market_by_condition_id.return_value = _market("0.56")
        clock.now += timedelta(minutes=5)

        alerts = await monitor.run()

        assert _types(alerts) == [AlertType.PROBABILITY_SHIFT]
        shift = alerts[0]
        assert shift.severity == AlertSeverity.MEDIUM
        assert shift.title == "Probability up 12.0% on Will it rain tomorrow?"
        assert shift.data["previousProbability"] == 0.5
        assert shift.data["currentProbability"] == 0.56
        assert shift.data["direction"] == "up"
        assert shift.data["market"]["url"] == "https://polymarket.com/event/will-it-rain-tomorrow"

    @pytest.mark.asyncio
    async def test_large_drop_is_high_severity(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        monitor = MarketProbabilityMonitor(db, gamma, data_client, clock=clock)
        await monitor.run()
        gamma.get_market_by_condition_id.return_value = _market("0.30")
        clock.now += timedelta(minutes=5)

        alerts = await monitor.run()

        assert alerts[0].severity == AlertSeverity.HIGH
        assert alerts[0].title.startswith("Probability down 40.0%")

    @pytest.mark.asyncio
    async def test_change_below_threshold_is_quiet(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        monitor = MarketProbabilityMonitor(db, gamma, data_client, change_threshold_percent=5, clock=clock)
        await monitor.run()
        gamma.get_market_by_condition_id.return_value = _market("0.51")
        clock.now += timedelta(minutes=5)

        assert await monitor.run() == []

    @pytest.mark.asyncio
    async def test_zero_previous_probability_never_shifts(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        gamma.get_market_by_condition_id.return_value = _market("0")
        monitor = MarketProbabilityMonitor(db, gamma, data_client, update_interval_minutes=0, clock=clock)
        await monitor.run()
        gamma.get_market_by_condition_id.return_value = _market("0.9")
        clock.now += timedelta(minutes=5)

        assert await monitor.run() == []

    @pytest.mark.asyncio
    async def test_comparison_offset(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        monitor = MarketProbabilityMonitor(
            db, gamma, data_client, comparison_offset_minutes=30, update_interval_minutes=0, clock=clock
        )
        await monitor.run()
        clock.now += timedelta(minutes=20)
        gamma.get_market_by_condition_id.return_value = _market("0.70")

        # Nothing is at least 30 minutes old yet.
        assert await monitor.run() == []

        clock.now += timedelta(minutes=20)
        gamma.get_market_by_condition_id.return_value = _market("0.575")
        alerts = await monitor.run()

        assert _types(alerts) == [AlertType.PROBABILITY_SHIFT]
        assert alerts[0].data["previousProbability"] == 0.5
        assert alerts[0].severity == AlertSeverity.MEDIUM

    @pytest.mark.asyncio
    async def test_update_interval(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        monitor = MarketProbabilityMonitor(db, gamma, data_client, update_interval_minutes=60, clock=clock)

        assert _types(await monitor.run()) == [AlertType.MARKET_UPDATE]
        clock.now += timedelta(minutes=59)
        assert await monitor.run() == []
        clock.now += timedelta(minutes=1)
        assert _types(await monitor.run()) == [AlertType.MARKET_UPDATE]

    @pytest.mark.asyncio
    async def test_live_volume_change(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        data_client.get_live_volume.side_effect = [
            LiveVolume(total=1000.0, markets=((CONDITION_ID, 400.0),)),
            LiveVolume(total=1500.0, markets=((CONDITION_ID, 650.0),)),
        ]
        monitor = MarketProbabilityMonitor(db, gamma, data_client, update_interval_minutes=1, clock=clock)

        first = await monitor.run()
        clock.now += timedelta(minutes=1)
        second = await monitor.run()

        assert first[0].data["liveVolume"] == 400.0
        assert first[0].data["liveVolumeChange"] is None
        assert second[0].data["liveVolume"] == 650.0
        assert second[0].data["liveVolumeChange"] == 250.0
        data_client.get_live_volume.assert_awaited_with(42)

    @pytest.mark.asyncio
    async def test_live_volume_failure_does_not_block_update(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        data_client.get_live_volume.side_effect = ApiTransientError("HTTP 502")
        monitor = MarketProbabilityMonitor(db, gamma, data_client, clock=clock)

        alerts = await monitor.run()

        assert alerts[0].data["liveVolume"] is None

    @pytest.mark.asyncio
    async def test_falls_back_to_slugified_name(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        gamma.get_market_by_condition_id.return_value = None
        gamma.get_event_by_slug.return_value = GammaEvent(
            id="42", slug="will-it-rain-tomorrow", title="Rain", markets=(_market("0.5"),)
        )
        monitor = MarketProbabilityMonitor(db, gamma, data_client, clock=clock)

        alerts = await monitor.run()

        assert _types(alerts) == [AlertType.MARKET_UPDATE]
        gamma.get_event_by_slug.assert_awaited_once_with("will-it-rain-tomorrow")

    @pytest.mark.asyncio
    async def test_unresolved_market_is_skipped(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        gamma.get_market_by_condition_id.return_value = None
        monitor = MarketProbabilityMonitor(db, gamma, data_client, clock=clock)

        assert await monitor.run() == []

    @pytest.mark.asyncio
    async def test_one_failing_market_does_not_stop_others(
        self, db: DatabaseManager, gamma: AsyncMock, data_client: AsyncMock, clock: FakeClock
    ) -> None:
        other_id = "0x" + "cd" * 32
        async with db.session() as session:
            await TrackedMarketRepository(session).upsert(TrackedMarketDTO(condition_id=other_id, name="Other"))

        async def lookup(condition_id: str) -> GammaMarket:
            if condition_id == other_id:
                raise ApiTransientError("HTTP 500")
            return _market("0.5")

        gamma.get_market_by_condition_id.side_effect = lookup
        monitor = MarketProbabilityMonitor(db, gamma, data_client, clock=clock)

        alerts = await monitor.run()

        assert _types(alerts) == [AlertType.MARKET_UPDATE]
