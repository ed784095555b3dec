"""Tests for the volume outlier monitor."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from conftest import CONDITION_ID, FakeClock
from polymarket_monitor.alerter.models import AlertSeverity, AlertType
from polymarket_monitor.ingestor.models import GammaMarket
from polymarket_monitor.monitor.volume import VolumeOutlierMonitor
from polymarket_monitor.storage.database import DatabaseManager
from polymarket_monitor.storage.repos import MarketRepository, TradeDTO, TradeRepository


def _gamma_market(condition_id: str = CONDITION_ID) -> GammaMarket:
    return GammaMarket(
        id="1",
        condition_id=condition_id,
        slug="will-it-rain-tomorrow",
        question="Will it rain tomorrow?",
        outcome_prices=("0.6", "0.4"),
        volume_24hr=1000.0,
    )


async def _seed_trades(db: DatabaseManager, clock: FakeClock, sizes: list[float]) -> None:
    """Store trades oldest first; the last size becomes the most recent trade."""
    async with db.session() as session:
        market = await MarketRepository(session).upsert(
            condition_id=CONDITION_ID, slug="will-it-rain-tomorrow", title="Will it rain tomorrow?"
        )
        trades = TradeRepository(session)
        for i, size in enumerate(sizes):
            await trades.upsert(
                TradeDTO(
                    transaction_hash=f"0xtx{i}",
                    market_id=market.id,
                    user_address="0xabc",
                    side="BUY",
                    size=Decimal(str(size * 2)),
                    usdc_size=Decimal(str(size)),
                    price=Decimal("0.5"),
                    ts=clock.now - timedelta(minutes=len(sizes) - i),
                )
            )


@pytest.fixture
def gamma() -> AsyncMock:
    client = AsyncMock()
    client.get_active_markets = AsyncMock(return_value=[_gamma_market()])
    return client


class TestVolumeOutlierMonitor:
    @pytest.mark.asyncio
    async def test_flags_latest_trade_outlier(
        self, db: DatabaseManager, gamma: AsyncMock, clock: FakeClock
    ) -> None:
        await _seed_trades(db, clock, [100.0] * 9 + [110.0, 5000.0])
        monitor = VolumeOutlierMonitor(db, gamma, clock=clock)

        alerts = await monitor.run()

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.alert_type == AlertType.VOLUME_OUTLIER
        assert alert.title == "Large trade detected on Will it rain tomorrow?"
        assert alert.data["trade"]["usdcSize"] == 5000.0
        assert alert.data["trade"]["transactionHash"] == "0xtx10"
        assert alert.data["statistics"]["sampleSize"] == 11
        assert alert.data["statistics"]["isOutlier"] is True
        # A single spike among 11 samples sits just over 3 sd from the mean.
        assert alert.severity == AlertSeverity.MEDIUM
        gamma.get_active_markets.assert_awaited_once_with(limit=100)

    @pytest.mark.asyncio
    async def test_insufficient_samples_is_skipped(
        self, db: DatabaseManager, gamma: AsyncMock, clock: FakeClock
    ) -> None:
        await _seed_trades(db, clock, [100.0] * 8 + [5000.0])
        monitor = VolumeOutlierMonitor(db, gamma, clock=clock)

        assert await monitor.run() == []

    @pytest.mark.asyncio
    async def test_ordinary_latest_trade_is_not_flagged(
        self, db: DatabaseManager, gamma: AsyncMock, clock: FakeClock
    ) -> None:
        await _seed_trades(db, clock, [5000.0] + [100.0] * 10)
        monitor = VolumeOutlierMonitor(db, gamma, clock=clock)

        assert await monitor.run() == []

    @pytest.mark.asyncio
    async def test_trades_outside_window_are_ignored(
        self, db: DatabaseManager, gamma: AsyncMock, clock: FakeClock
    ) -> None:
        await _seed_trades(db, clock, [100.0] * 9 + [110.0, 5000.0])
        clock.now += timedelta(hours=25)
        monitor = VolumeOutlierMonitor(db, gamma, clock=clock)

        assert await monitor.run() == []

    @pytest.mark.asyncio
    async def test_market_failure_is_isolated(
        self, db: DatabaseManager, gamma: AsyncMock, clock: FakeClock
    ) -> None:
        await _seed_trades(db, clock, [100.0] * 9 + [110.0, 5000.0])
        # A NULL slug violates the markets table constraint.
        broken = replace(_gamma_market(condition_id="0x" + "cd" * 32), slug=None)
        gamma.get_active_markets.return_value = [broken, _gamma_market()]
        monitor = VolumeOutlierMonitor(db, gamma, clock=clock)

        alerts = await monitor.run()

        assert len(alerts) == 1

    @pytest.mark.asyncio
    async def test_market_list_failure_yields_no_alerts(self, db: DatabaseManager, clock: FakeClock) -> None:
        gamma = AsyncMock()
        gamma.get_active_markets = AsyncMock(side_effect=RuntimeError("gamma down"))
        monitor = VolumeOutlierMonitor(db, gamma, clock=clock)

        assert await monitor.run() == []

    @pytest.mark.asyncio
    async def test_disabled_monitor_does_nothing(self, db: DatabaseManager, gamma: AsyncMock) -> None:
        monitor = VolumeOutlierMonitor(db, gamma, enabled=False)

        assert await monitor.run() == []
        gamma.get_active_markets.assert_not_awaited()
