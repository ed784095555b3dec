"""Client for the Polymarket Data API (activity, trades, positions, holders)."""

from __future__ import annotations

import logging

import httpx

from polymarket_monitor.ingestor.http import BaseApiClient, MAX_REQUESTS_PER_SECOND
from polymarket_monitor.ingestor.models import (
    Activity,
    ClosedPosition,
    LiveVolume,
    MarketHolders,
    MarketTrade,
    OpenInterest,
    UserPosition,
)

logger = logging.getLogger(__name__)

DEFAULT_DATA_URL = "https://data-api.polymarket.com"
DEFAULT_TIMEOUT_SECONDS = 15.0

MAX_POSITIONS_LIMIT = 500
MAX_CLOSED_POSITIONS_LIMIT = 50
MAX_HOLDERS_LIMIT = 20


class DataApiClient(BaseApiClient):
    """Account and market activity queries.

    All list endpoints raise ``ApiClientError`` subclasses on failure;
    callers decide whether a failure skips one item or the whole run.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_DATA_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        requests_per_second: float = MAX_REQUESTS_PER_SECOND,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(
            base_url,
            timeout=timeout,
            requests_per_second=requests_per_second,
            transport=transport,
        )

    async def get_user_activity(
        self,
        user: str,
        *,
        activity_type: str | None = "TRADE",
        start: int | None = None,
        end: int | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Activity]:
        """Activity for an account; ``start``/``end`` are unix seconds."""
        body = await self._get_json(
            "/activity",
            {
                "user": user,
                "type": activity_type,
                "start": start,
                "end": end,
                "limit": limit,
                "offset": offset,
            },
        )
        return self._parse_list("/activity", body, Activity.from_dict)

    async def get_market_trades(
        self,
        condition_id: str,
        *,
        limit: int = 100,
        start: int | None = None,
    ) -> list[MarketTrade]:
        body = await self._get_json("/trades", {"market": condition_id, "limit": limit, "start": start})
        return self._parse_list("/trades", body, MarketTrade.from_dict)

    async def get_user_positions(
        self,
        user: str,
        *,
        market: str | None = None,
        limit: int = 100,
    ) -> list[UserPosition]:
        body = await self._get_json(
            "/positions",
            {"user": user, "market": market, "limit": min(limit, MAX_POSITIONS_LIMIT)},
        )
        return self._parse_list("/positions", body, UserPosition.from_dict)

    async def get_user_closed_positions(
        self,
        user: str,
        *,
        market: str | None = None,
        limit: int = MAX_CLOSED_POSITIONS_LIMIT,
    ) -> list[ClosedPosition]:
        body = await self._get_json(
            "/v1/closed-positions",
            {"user": user, "market": market, "limit": min(limit, MAX_CLOSED_POSITIONS_LIMIT)},
        )
        return self._parse_list("/v1/closed-positions", body, ClosedPosition.from_dict)

    async def get_market_holders(self, condition_id: str, limit: int = MAX_HOLDERS_LIMIT) -> list[MarketHolders]:
        body = await self._get_json(
            "/holders",
            {"market": condition_id, "limit": min(limit, MAX_HOLDERS_LIMIT)},
        )
        return self._parse_list("/holders", body, MarketHolders.from_dict)

    async def get_open_interest(self, condition_ids: list[str]) -> list[OpenInterest]:
        body = await self._get_json("/oi", {"market": ",".join(condition_ids)})
        return self._parse_list("/oi", body, OpenInterest.from_dict)

    async def get_live_volume(self, event_id: int) -> LiveVolume | None:
        body = await self._get_json("/live-volume", {"id": event_id})
        volumes = self._parse_list("/live-volume", body, LiveVolume.from_dict)
        return volumes[0] if volumes else None
