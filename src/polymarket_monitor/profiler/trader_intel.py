"""Per-address trader P&L lookups with a short-lived cache.

A lookup failure never propagates: callers receive a ``PnLResult`` whose
value is zeroed and whose ``ok`` flag is False.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable

from redis.asyncio import Redis

from polymarket_monitor.ingestor.data_client import (
    MAX_CLOSED_POSITIONS_LIMIT,
    MAX_POSITIONS_LIMIT,
    DataApiClient,
)
from polymarket_monitor.ingestor.models import UserPosition, truncate_address
from polymarket_monitor.profiler.models import PnLResult, TraderPnLSummary

logger = logging.getLogger(__name__)

DEFAULT_PNL_CACHE_TTL = 300  # 5 minutes


class TraderIntelligence:
    """Fetches and caches lifetime P&L summaries per address.

    The in-process cache is always used. When a Redis client is supplied the
    summaries are also written there (``SET ... EX ttl``) so that restarts
    within the TTL do not refetch.
    """

    def __init__(
        self,
        data_client: DataApiClient,
        *,
        redis: Redis | None = None,
        cache_ttl_seconds: int = DEFAULT_PNL_CACHE_TTL,
        namespace: str = "trader_pnl",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = data_client
        self._redis = redis
        self._cache_ttl = cache_ttl_seconds
        self._cache_prefix = f"{namespace}:"
        self._clock = clock
        self._cache: dict[str, tuple[float, TraderPnLSummary]] = {}

    def _cache_key(self, address: str) -> str:
        return f"{self._cache_prefix}{address.lower()}"

    async def _get_cached(self, address: str) -> TraderPnLSummary | None:
        entry = self._cache.get(address)
        if entry is not None:
            stored_at, summary = entry
            if self._clock() - stored_at < self._cache_ttl:
                return summary
            del self._cache[address]

        if self._redis is None:
            return None
        try:
            cached = await self._redis.get(self._cache_key(address))
            if cached is None:
                return None
            summary = TraderPnLSummary.from_dict(
                json.loads(cached if isinstance(cached, str) else cached.decode())
            )
        except Exception as e:
            logger.warning("Failed to read cached P&L for %s: %s", address, e)
            return None
        self._cache[address] = (self._clock(), summary)
        return summary

    async def _store(self, address: str, summary: TraderPnLSummary) -> None:
        self._cache[address] = (self._clock(), summary)
        if self._redis is None:
            return
        try:
            await self._redis.set(self._cache_key(address), json.dumps(summary.to_dict()), ex=self._cache_ttl)
        except Exception as e:
            logger.warning("Failed to cache P&L for %s: %s", address, e)

    async def get_trader_lifetime_pnl(self, address: str) -> PnLResult[TraderPnLSummary]:
        """Lifetime P&L: realized over open and closed positions plus unrealized over open ones."""
        address = address.lower()
        cached = await self._get_cached(address)
        if cached is not None:
            return PnLResult.success(cached)

        try:
            open_positions = await self._client.get_user_positions(address, limit=MAX_POSITIONS_LIMIT)
            closed_positions = await self._client.get_user_closed_positions(
                address, limit=MAX_CLOSED_POSITIONS_LIMIT
            )
        except Exception as e:
            logger.warning("Failed to fetch P&L for %s: %s", address, e)
            return PnLResult.failed(TraderPnLSummary(), e)

        summary = TraderPnLSummary(
            total_realized_pnl=sum(p.realized_pnl for p in open_positions)
            + sum(p.realized_pnl for p in closed_positions),
            total_cash_pnl=sum(p.cash_pnl for p in open_positions),
            open_positions_count=len(open_positions),
            closed_positions_count=len(closed_positions),
        )
        await self._store(address, summary)
        return PnLResult.success(summary)

    async def get_trader_position(self, address: str, condition_id: str) -> PnLResult[UserPosition | None]:
        """The account's open position in one market, if any."""
        try:
            positions = await self._client.get_user_positions(address.lower(), market=condition_id, limit=1)
        except Exception as e:
            logger.warning("Failed to fetch position of %s in %s: %s", address, condition_id, e)
            return PnLResult.failed(None, e)
        return PnLResult.success(positions[0] if positions else None)

    async def get_trader_name(self, address: str) -> PnLResult[str]:
        """Display name from the account's latest activity, else a truncated address."""
        fallback = truncate_address(address)
        try:
            activity = await self._client.get_user_activity(address.lower(), activity_type=None, limit=1)
        except Exception as e:
            logger.debug("Failed to fetch name of %s: %s", address, e)
            return PnLResult.failed(fallback, e)
        if activity and activity[0].user_name:
            return PnLResult.success(activity[0].user_name)
        return PnLResult.success(fallback)

    async def clear_cache(self) -> None:
        """Drop every cached summary, including this namespace's Redis keys."""
        self._cache.clear()
        if self._redis is None:
            return
        try:
            keys = [key async for key in self._redis.scan_iter(match=f"{self._cache_prefix}*")]
            if keys:
                await self._redis.delete(*keys)
        except Exception as e:
            logger.warning("Failed to clear Redis P&L cache: %s", e)
