"""Tests for the monitor contract and shared helpers."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from conftest import CONDITION_ID
from polymarket_monitor.alerter.models import Alert, AlertSeverity, AlertType
from polymarket_monitor.ingestor.models import GammaEvent, GammaMarket
from polymarket_monitor.monitor import BaseMonitor, Monitor, resolve_tracked_market, slugify
from polymarket_monitor.storage.database import DatabaseManager
from polymarket_monitor.storage.repos import TrackedMarketDTO


def _market(condition_id: str = CONDITION_ID) -> GammaMarket:
    return GammaMarket(id="1", condition_id=condition_id, slug="rain", question="Rain?")


class StaticMonitor(BaseMonitor):
    name = "static"

    def __init__(self, db: DatabaseManager, result: list[Alert] | Exception, **kwargs: object) -> None:
        super().__init__(db, **kwargs)
        self.result = result
        self.calls = 0

    async def _run(self) -> list[Alert]:
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class TestSlugify:
    @pytest.mark.parametrize(
        ("name", "slug"),
        [
            ("Will it rain tomorrow?", "will-it-rain-tomorrow"),
            ("  Fed Rate -- Cut: 2026!  ", "fed-rate-cut-2026"),
            ("already-a-slug", "already-a-slug"),
            ("", ""),
        ],
    )
    def test_slugify(self, name: str, slug: str) -> None:
        assert slugify(name) == slug


class TestBaseMonitor:
    @pytest.mark.asyncio
    async def test_run_returns_alerts(self, db: DatabaseManager) -> None:
        alert = Alert(alert_type=AlertType.MARKET_UPDATE, severity=AlertSeverity.LOW, title="t")
        monitor = StaticMonitor(db, [alert])

        assert await monitor.run() == [alert]
        assert isinstance(monitor, Monitor)

    @pytest.mark.asyncio
    async def test_run_contains_errors(self, db: DatabaseManager) -> None:
        monitor = StaticMonitor(db, RuntimeError("boom"))

        assert await monitor.run() == []
        assert monitor.calls == 1

    @pytest.mark.asyncio
    async def test_disabled_skips_run(self, db: DatabaseManager) -> None:
        monitor = StaticMonitor(db, [], enabled=False)

        assert await monitor.run() == []
        assert monitor.calls == 0


class TestResolveTrackedMarket:
    @pytest.mark.asyncio
    async def test_direct_hit(self) -> None:
        gamma = AsyncMock()
        gamma.get_market_by_condition_id = AsyncMock(return_value=_market())

        market = await resolve_tracked_market(gamma, TrackedMarketDTO(condition_id=CONDITION_ID, name="Rain?"))

        assert market is not None
        gamma.get_event_by_slug.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fallback_by_slugified_name(self) -> None:
        gamma = AsyncMock()
        gamma.get_market_by_condition_id = AsyncMock(return_value=None)
        gamma.get_event_by_slug = AsyncMock(
            return_value=GammaEvent(id="1", slug="rain", title="Rain", markets=(_market("0xother"), _market()))
        )

        market = await resolve_tracked_market(gamma, TrackedMarketDTO(condition_id=CONDITION_ID, name="Rain?"))

        assert market is not None
        assert market.condition_id == CONDITION_ID
        gamma.get_event_by_slug.assert_awaited_once_with("rain")

    @pytest.mark.asyncio
    async def test_no_name_no_fallback(self) -> None:
        gamma = AsyncMock()
        gamma.get_market_by_condition_id = AsyncMock(return_value=None)

        assert await resolve_tracked_market(gamma, TrackedMarketDTO(condition_id=CONDITION_ID)) is None
        gamma.get_event_by_slug.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_event_without_market(self) -> None:
        gamma = AsyncMock()
        gamma.get_market_by_condition_id = AsyncMock(return_value=None)
        gamma.get_event_by_slug = AsyncMock(
            return_value=GammaEvent(id="1", slug="rain", title="Rain", markets=(_market("0xother"),))
        )

        assert await resolve_tracked_market(gamma, TrackedMarketDTO(condition_id=CONDITION_ID, name="Rain")) is None
