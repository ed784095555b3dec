"""Data ingestion layer - Polymarket Gamma and Data API clients."""

from polymarket_monitor.ingestor.data_client import DataApiClient
from polymarket_monitor.ingestor.gamma_client import GammaClient
from polymarket_monitor.ingestor.http import (
    ApiClientError,
    ApiNotFoundError,
    ApiResponseError,
    ApiTransientError,
    RateLimiter,
)
from polymarket_monitor.ingestor.models import (
    Activity,
    ClosedPosition,
    GammaEvent,
    GammaMarket,
    Holder,
    LiveVolume,
    MarketHolders,
    MarketTrade,
    OpenInterest,
    UserPosition,
)

__all__ = [
    "Activity",
    "ApiClientError",
    "ApiNotFoundError",
    "ApiResponseError",
    "ApiTransientError",
    "ClosedPosition",
    "DataApiClient",
    "GammaClient",
    "GammaEvent",
    "GammaMarket",
    "Holder",
    "LiveVolume",
    "MarketHolders",
    "MarketTrade",
    "OpenInterest",
    "RateLimiter",
    "UserPosition",
]
