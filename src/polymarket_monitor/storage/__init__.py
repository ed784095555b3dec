"""Storage layer - Database schemas and repositories."""

from polymarket_monitor.storage.database import (
    DatabaseManager,
    create_async_db_engine,
    create_async_session_factory,
    init_async_db,
)
from polymarket_monitor.storage.models import (
    AlertModel,
    Base,
    MarketModel,
    MarketSnapshotModel,
    PriceSnapshotModel,
    TrackedAccountModel,
    TrackedMarketModel,
    TradeModel,
)
from polymarket_monitor.storage.repos import (
    AlertDTO,
    AlertRepository,
    MarketDTO,
    MarketRepository,
    MarketSnapshotDTO,
    MarketSnapshotRepository,
    PriceSnapshotDTO,
    PriceSnapshotRepository,
    TrackedAccountDTO,
    TrackedAccountRepository,
    TrackedMarketDTO,
    TrackedMarketRepository,
    TradeDTO,
    TradeRepository,
)

__all__ = [
    "AlertDTO",
    "AlertModel",
    "AlertRepository",
    "Base",
    "DatabaseManager",
    "MarketDTO",
    "MarketModel",
    "MarketRepository",
    "MarketSnapshotDTO",
    "MarketSnapshotModel",
    "MarketSnapshotRepository",
    "PriceSnapshotDTO",
    "PriceSnapshotModel",
    "PriceSnapshotRepository",
    "TrackedAccountDTO",
    "TrackedAccountModel",
    "TrackedAccountRepository",
    "TrackedMarketDTO",
    "TrackedMarketModel",
    "TrackedMarketRepository",
    "TradeDTO",
    "TradeModel",
    "TradeRepository",
    "create_async_db_engine",
    "create_async_session_factory",
    "init_async_db",
]
