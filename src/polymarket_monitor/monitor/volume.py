"""Volume outlier monitor: flags a market's latest trade when its size is a z-score outlier."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from polymarket_monitor.alerter.formatter import severity_for, to_iso
from polymarket_monitor.alerter.models import Alert, AlertType
from polymarket_monitor.detector.statistics import StatisticalAnalyzer
from polymarket_monitor.monitor.base import BaseMonitor, Clock
from polymarket_monitor.storage.repos import MarketRepository, TradeRepository

if TYPE_CHECKING:
    from polymarket_monitor.ingestor.gamma_client import GammaClient
    from polymarket_monitor.ingestor.models import GammaMarket
    from polymarket_monitor.storage.database import DatabaseManager

MIN_SAMPLES = 10
TRADE_SAMPLE_LIMIT = 500
HIGH_Z_SCORE = 4.0
MEDIUM_Z_SCORE = 3.0


class VolumeOutlierMonitor(BaseMonitor):
    """Tests each active market's most recent stored trade against the window's trade sizes."""

    name = "volume_outlier"

    def __init__(
        self,
        db: DatabaseManager,
        gamma: GammaClient,
        *,
        enabled: bool = True,
        std_deviation_threshold: float = 2.0,
        time_window_hours: int = 24,
        market_scan_limit: int = 100,
        analyzer: StatisticalAnalyzer | None = None,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(db, enabled=enabled, clock=clock)
        self._gamma = gamma
        self._threshold = std_deviation_threshold
        self._window = timedelta(hours=time_window_hours)
        self._scan_limit = market_scan_limit
        self._analyzer = analyzer or StatisticalAnalyzer()

    async def _run(self) -> list[Alert]:
        now = self.now()
        markets = await self._gamma.get_active_markets(limit=self._scan_limit)
        self.logger.info("Checking %d active markets for volume outliers", len(markets))

        alerts: list[Alert] = []
        for market in markets:
            try:
                alert = await self._check_market(market, now)
            except Exception as e:
                self.logger.warning("Skipping market %s: %s", market.condition_id, e)
                continue
            if alert is not None:
                alerts.append(alert)
        return alerts

    async def _check_market(self, gamma_market: GammaMarket, now: datetime) -> Alert | None:
        async with self._db.session() as session:
            market = await MarketRepository(session).upsert(
                condition_id=gamma_market.condition_id,
                slug=gamma_market.slug,
                title=gamma_market.question,
                volume_24hr=gamma_market.volume_24hr,
            )
            trades = await TradeRepository(session).find_by_market(
                market.id, limit=TRADE_SAMPLE_LIMIT, since=now - self._window
            )

        if len(trades) < MIN_SAMPLES:
            return None

        sizes = [float(t.usdc_size) for t in trades]
        latest = trades[0]
        result = self._analyzer.detect_outlier(sizes[0], sizes, self._threshold)
        if not result.is_outlier:
            return None

        self.logger.info(
            "Outlier on %s: $%.2f is %.2f sd from mean $%.2f",
            gamma_market.slug,
            result.value,
            result.z_score,
            result.mean,
        )
        return Alert(
            alert_type=AlertType.VOLUME_OUTLIER,
            severity=severity_for(result.z_score, high_above=HIGH_Z_SCORE, medium_above=MEDIUM_Z_SCORE),
            title=f"Large trade detected on {gamma_market.question}",
            timestamp=now,
            data={
                "market": {
                    "slug": gamma_market.slug,
                    "title": gamma_market.question,
                    "conditionId": gamma_market.condition_id,
                    "volume24hr": gamma_market.volume_24hr,
                },
                "trade": {
                    "size": float(latest.size),
                    "usdcSize": float(latest.usdc_size),
                    "price": float(latest.price),
                    "side": latest.side,
                    "userAddress": latest.user_address,
                    "transactionHash": latest.transaction_hash,
                    "timestamp": to_iso(latest.ts),
                },
                "statistics": {**result.to_dict(), "sampleSize": len(sizes)},
            },
        )
