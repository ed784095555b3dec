"""Account activity monitor: one alert per new trade by a tracked account."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from polymarket_monitor.alerter.formatter import market_url, severity_for, to_iso
from polymarket_monitor.alerter.models import Alert, AlertType
from polymarket_monitor.monitor.base import BaseMonitor, Clock
from polymarket_monitor.storage.repos import (
    MarketRepository,
    TrackedAccountDTO,
    TrackedAccountRepository,
    TradeDTO,
    TradeRepository,
)

if TYPE_CHECKING:
    from polymarket_monitor.ingestor.data_client import DataApiClient
    from polymarket_monitor.ingestor.models import Activity
    from polymarket_monitor.storage.database import DatabaseManager

HIGH_USDC = 10_000.0
MEDIUM_USDC = 1_000.0
ACTIVITY_PAGE_LIMIT = 100


class AccountActivityMonitor(BaseMonitor):
    """Polls each tracked account's trade feed since that account's checkpoint.

    Checkpoints are kept per account and only advance, after the whole
    account loop, for accounts whose feed was fetched successfully.
    """

    name = "account_activity"

    def __init__(
        self,
        db: DatabaseManager,
        data_client: DataApiClient,
        *,
        enabled: bool = True,
        initial_lookback_minutes: float = 5,
        clock: Clock | None = None,
    ) -> None:
        super().__init__(db, enabled=enabled, clock=clock)
        self._data = data_client
        self._initial_lookback = timedelta(minutes=initial_lookback_minutes)
        self._checkpoints: dict[str, datetime] = {}

    def checkpoint(self, address: str) -> datetime | None:
        return self._checkpoints.get(address.lower())

    async def _run(self) -> list[Alert]:
        now = self.now()
        async with self._db.session() as session:
            accounts = await TrackedAccountRepository(session).list_enabled()
        if not accounts:
            self.logger.debug("No tracked accounts")
            return []

        alerts: list[Alert] = []
        fetched: list[str] = []
        for account in accounts:
            since = self._checkpoints.get(account.address, now - self._initial_lookback)
            try:
                activities = await self._data.get_user_activity(
                    account.address,
                    activity_type="TRADE",
                    start=int(since.timestamp()),
                    limit=ACTIVITY_PAGE_LIMIT,
                )
            except Exception as e:
                self.logger.warning("Failed to fetch activity for %s: %s", account.address, e)
                continue
            fetched.append(account.address)

            for activity in activities:
                try:
                    alert = await self._process_activity(account, activity, now)
                except Exception as e:
                    self.logger.warning(
                        "Failed to process activity %s of %s: %s",
                        activity.transaction_hash,
                        account.address,
                        e,
                    )
                    continue
                if alert is not None:
                    alerts.append(alert)

        for address in fetched:
            self._checkpoints[address] = now
        return alerts

    async def _process_activity(
        self, account: TrackedAccountDTO, activity: Activity, now: datetime
    ) -> Alert | None:
        if activity.market is None:
            self.logger.debug("Activity %s has no market; skipping", activity.transaction_hash)
            return None

        traded_at = datetime.fromtimestamp(activity.timestamp, tz=UTC)
        async with self._db.session() as session:
            markets = MarketRepository(session)
            market = await markets.get_by_condition_id(activity.market.condition_id)
            if market is None:
                market = await markets.upsert(
                    condition_id=activity.market.condition_id,
                    slug=activity.market.slug,
                    title=activity.market.title,
                )
            await TradeRepository(session).upsert(
                TradeDTO(
                    transaction_hash=activity.transaction_hash,
                    market_id=market.id,
                    user_address=activity.proxy_wallet,
                    side=activity.side or "",
                    size=Decimal(str(activity.size)),
                    usdc_size=Decimal(str(activity.usdc_size)),
                    price=Decimal(str(activity.price)),
                    ts=traded_at,
                )
            )

        label = account.name or account.address
        return Alert(
            alert_type=AlertType.ACCOUNT_ACTIVITY,
            severity=severity_for(activity.usdc_size, high_above=HIGH_USDC, medium_above=MEDIUM_USDC),
            title=f"Tracked account activity: {label}",
            timestamp=now,
            data={
                "account": {"address": account.address, "name": account.name},
                "market": {
                    "slug": activity.market.slug,
                    "title": activity.market.title,
                    "conditionId": activity.market.condition_id,
                    "outcome": activity.market.outcome,
                    "url": market_url(activity.market.slug),
                },
                "trade": {
                    "side": activity.side,
                    "size": activity.size,
                    "usdcSize": activity.usdc_size,
                    "price": activity.price,
                    "outcomeIndex": activity.outcome_index,
                    "transactionHash": activity.transaction_hash,
                    "timestamp": to_iso(traded_at),
                },
            },
        )
