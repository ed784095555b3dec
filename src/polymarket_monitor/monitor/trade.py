"""Trade activity monitor: large trades and whale activity on tracked markets."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from polymarket_monitor.alerter.formatter import market_url, severity_for, to_iso
from polymarket_monitor.alerter.models import Alert, AlertType
from polymarket_monitor.ingestor.models import truncate_address
from polymarket_monitor.monitor.base import BaseMonitor, Clock, market_summary, resolve_tracked_market
from polymarket_monitor.storage.repos import TrackedMarketDTO

if TYPE_CHECKING:
    from polymarket_monitor.ingestor.data_client import DataApiClient
    from polymarket_monitor.ingestor.gamma_client import GammaClient
    from polymarket_monitor.ingestor.models import GammaMarket, MarketTrade
    from polymarket_monitor.profiler.trader_intel import TraderIntelligence
    from polymarket_monitor.storage.database import DatabaseManager

HIGH_NOTIONAL = 50_000.0
MEDIUM_NOTIONAL = 10_000.0
TRADE_PAGE_LIMIT = 100


class TradeActivityMonitor(BaseMonitor):
    """Scans each tracked market's trade feed since that market's cursor.

    An address becomes a known whale the first time one of its trades
    reaches the whale threshold, and stays one for the life of the
    process. Trades at or above the large-trade threshold alert, as
    WHALE_ACTIVITY for known whales and LARGE_TRADE otherwise.
    """

    name = "trade_activity"

    def __init__(
        self,
        db: DatabaseManager,
        gamma: GammaClient,
        data_client: DataApiClient,
        *,
        trader_intel: TraderIntelligence | None = None,
        enabled: bool = True,
        large_trade_threshold: float = 10.0,
        whale_pnl_threshold: float = 100_000.0,
        include_trader_intel: bool = True,
        initial_lookback_minutes: float = 5,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(db, enabled=enabled, clock=clock)
        self._gamma = gamma
        self._data = data_client
        self._trader_intel = trader_intel
        self._large_trade_threshold = large_trade_threshold
        self._whale_threshold = whale_pnl_threshold
        self._include_trader_intel = include_trader_intel and trader_intel is not None
        self._initial_lookback = timedelta(minutes=initial_lookback_minutes)
        self._cursors: dict[str, int] = {}
        self._trader_cache: dict[str, dict[str, Any]] = {}
        self.known_whales: set[str] = set()

    def cursor(self, condition_id: str) -> int | None:
        return self._cursors.get(condition_id)

    async def _run(self) -> list[Alert]:
        self._trader_cache.clear()
        if self._trader_intel is not None:
            await self._trader_intel.clear_cache()

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
                self.logger.warning("Failed to check trades on %s: %s", item.label, e)
        return alerts

    async def _check_market(self, tracked: TrackedMarketDTO, now: datetime) -> list[Alert]:
        cursor = self._cursors.get(tracked.condition_id)
        if cursor is None:
            cursor = int((now - self._initial_lookback).timestamp())

        trades = await self._data.get_market_trades(tracked.condition_id, limit=TRADE_PAGE_LIMIT, start=cursor)
        new_trades = sorted((t for t in trades if t.timestamp > cursor), key=lambda t: t.timestamp)
        if not new_trades:
            self._cursors[tracked.condition_id] = cursor
            return []
        self.logger.debug("%d new trade(s) on %s", len(new_trades), tracked.label)

        # A failed lookup propagates and leaves the cursor where it was.
        market: GammaMarket | None = None
        if any(t.notional >= self._large_trade_threshold for t in new_trades):
            market = await resolve_tracked_market(self._gamma, tracked)

        alerts: list[Alert] = []
        first_failed: int | None = None
        for trade in new_trades:
            try:
                notional = trade.notional
                address = trade.proxy_wallet.lower()
                if notional >= self._whale_threshold and address not in self.known_whales:
                    self.known_whales.add(address)
                    self.logger.info("New whale %s on %s ($%.2f)", address, tracked.label, notional)
                if notional < self._large_trade_threshold:
                    continue
                alerts.append(await self._trade_alert(tracked, market, trade, notional, now))
            except Exception as e:
                self.logger.warning("Failed to process trade %s on %s: %s", trade.transaction_hash, tracked.label, e)
                if first_failed is None:
                    first_failed = trade.timestamp

        if first_failed is None:
            self._cursors[tracked.condition_id] = new_trades[-1].timestamp
        else:
            self._cursors[tracked.condition_id] = max(cursor, first_failed - 1)
        return alerts

    async def _trader_data(self, trade: MarketTrade, condition_id: str) -> dict[str, Any]:
        address = trade.proxy_wallet.lower()
        if address in self._trader_cache:
            return self._trader_cache[address]

        data: dict[str, Any] = {
            "address": address,
            "name": trade.pseudonym or trade.name or truncate_address(address),
        }
        if self._include_trader_intel and self._trader_intel is not None:
            pnl = await self._trader_intel.get_trader_lifetime_pnl(address)
            data["pnl"] = pnl.value.to_dict()
            data["pnlKnown"] = pnl.ok
            position = await self._trader_intel.get_trader_position(address, condition_id)
            if position.value is not None:
                data["position"] = {
                    "size": position.value.size,
                    "avgPrice": position.value.avg_price,
                    "currentValue": position.value.current_value,
                    "cashPnl": position.value.cash_pnl,
                    "outcome": position.value.outcome,
                }
        self._trader_cache[address] = data
        return data

    async def _trade_alert(
        self,
        tracked: TrackedMarketDTO,
        market: GammaMarket | None,
        trade: MarketTrade,
        notional: float,
        now: datetime,
    ) -> Alert:
        is_whale = trade.proxy_wallet.lower() in self.known_whales
        question = market.question if market is not None else tracked.label
        if market is not None:
            market_block: dict[str, Any] = {**market_summary(market), "url": market_url(market.slug)}
        else:
            market_block = {"conditionId": tracked.condition_id, "title": tracked.label}

        return Alert(
            alert_type=AlertType.WHALE_ACTIVITY if is_whale else AlertType.LARGE_TRADE,
            severity=severity_for(notional, high_above=HIGH_NOTIONAL, medium_above=MEDIUM_NOTIONAL),
            title=f"Whale trader active on {question}" if is_whale else f"Large trade on {question}",
            timestamp=now,
            data={
                "market": market_block,
                "trade": {
                    "side": trade.side,
                    "size": trade.size,
                    "price": trade.price,
                    "usdcValue": notional,
                    "outcome": trade.outcome,
                    "outcomeIndex": trade.outcome_index,
                    "transactionHash": trade.transaction_hash,
                    "timestamp": to_iso(datetime.fromtimestamp(trade.timestamp, tz=UTC)),
                },
                "trader": await self._trader_data(trade, tracked.condition_id),
                "currentProbability": market.probability if market is not None else None,
                "outcomePrices": market.outcome_price_values if market is not None else [],
                "isKnownWhale": is_whale,
            },
        )
