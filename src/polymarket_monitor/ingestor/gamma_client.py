"""Client for the Polymarket Gamma API (markets and events)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from polymarket_monitor.ingestor.http import BaseApiClient, MAX_REQUESTS_PER_SECOND
from polymarket_monitor.ingestor.models import GammaEvent, GammaMarket

logger = logging.getLogger(__name__)

DEFAULT_GAMMA_URL = "https://gamma-api.polymarket.com"
DEFAULT_TIMEOUT_SECONDS = 10.0

EVENT_SCAN_LIMIT = 200
MARKET_PAGE_SIZE = 100
MAX_MARKET_PAGES = 50


class GammaClient(BaseApiClient):
    """Market and event lookups.

    Example:
        >>> async with GammaClient() as gamma:
        ...     market = await gamma.get_market_by_condition_id("0xabc...")
    """

    def __init__(
        self,
        base_url: str = DEFAULT_GAMMA_URL,
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

    async def get_active_markets(self, limit: int = 100, offset: int = 0) -> list[GammaMarket]:
        body = await self._get_json(
            "/markets",
            {"active": "true", "closed": "false", "archived": "false", "limit": limit, "offset": offset},
        )
        return self._parse_list("/markets", body, GammaMarket.from_dict)

    async def get_active_events(self, limit: int = 50, offset: int = 0) -> list[GammaEvent]:
        body = await self._get_json(
            "/events",
            {"active": "true", "closed": "false", "archived": "false", "limit": limit, "offset": offset},
        )
        return self._parse_list("/events", body, GammaEvent.from_dict)

    async def get_market_by_slug(self, slug: str) -> GammaMarket | None:
        body = await self._get_json("/markets", {"slug": slug})
        markets = self._parse_list("/markets", body, GammaMarket.from_dict)
        return markets[0] if markets else None

    async def get_event_by_slug(self, slug: str) -> GammaEvent | None:
        body = await self._get_json("/events", {"slug": slug})
        events = self._parse_list("/events", body, GammaEvent.from_dict)
        return events[0] if events else None

    async def get_market_by_condition_id(self, condition_id: str) -> GammaMarket | None:
        """Find a market by condition id.

        Scans active events first, then pages through active markets.
        Returns None when nothing matches.
        """
        events = await self._get_json("/events", {"active": "true", "limit": EVENT_SCAN_LIMIT})
        if not isinstance(events, list):
            events = []
        match = _find_raw_market(
            (m for event in events if isinstance(event, dict) for m in (event.get("markets") or [])),
            condition_id,
        )
        if match is not None:
            return self._parse_one("/events", match, GammaMarket.from_dict)

        offset = 0
        for _ in range(MAX_MARKET_PAGES):
            page = await self._get_json(
                "/markets", {"active": "true", "limit": MARKET_PAGE_SIZE, "offset": offset}
            )
            if not isinstance(page, list) or not page:
                break
            match = _find_raw_market(page, condition_id)
            if match is not None:
                return self._parse_one("/markets", match, GammaMarket.from_dict)
            offset += MARKET_PAGE_SIZE

        logger.debug("Market %s not found in Gamma scan", condition_id)
        return None


def _find_raw_market(markets: Any, condition_id: str) -> dict[str, Any] | None:
    for market in markets:
        if isinstance(market, dict) and market.get("conditionId") == condition_id:
            return market
    return None
