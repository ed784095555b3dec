"""Tracked accounts and markets file.

The file is JSON of the form::

    {
      "accounts": [{"address": "0x...", "name": "whale-1", "enabled": true}],
      "markets": [{"condition_id": "0x...", "name": "Will X happen?", "event_id": 123}]
    }

and is synced into the tracked tables at startup.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field, ValidationError

from polymarket_monitor.storage.repos import (
    TrackedAccountDTO,
    TrackedAccountRepository,
    TrackedMarketDTO,
    TrackedMarketRepository,
)

if TYPE_CHECKING:
    from polymarket_monitor.storage.database import DatabaseManager

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = r"^0x[a-fA-F0-9]{40}$"


class TrackedConfigError(Exception):
    """Raised when the tracked file exists but cannot be parsed or validated."""


class TrackedAccountEntry(BaseModel):
    address: str = Field(pattern=ADDRESS_PATTERN)
    name: str | None = None
    enabled: bool = True


class TrackedMarketEntry(BaseModel):
    condition_id: str = Field(min_length=1)
    name: str | None = None
    event_id: int | None = None
    enabled: bool = True


class TrackedConfig(BaseModel):
    accounts: list[TrackedAccountEntry] = Field(default_factory=list)
    markets: list[TrackedMarketEntry] = Field(default_factory=list)


@dataclass
class SyncResult:
    accounts: int = 0
    markets: int = 0


def load_tracked_config(path: Path) -> TrackedConfig:
    """Read and validate the tracked file.

    A missing file is not an error: nothing is tracked from it.

    Raises:
        TrackedConfigError: If the file is not valid JSON or fails validation.
    """
    if not path.exists():
        logger.warning("Tracked config %s not found; no accounts or markets loaded from it", path)
        return TrackedConfig()
    try:
        return TrackedConfig.model_validate_json(path.read_text(encoding="utf-8"))
    except ValidationError as e:
        raise TrackedConfigError(f"Invalid tracked config {path}: {e}") from e


async def sync_tracked(db: DatabaseManager, config: TrackedConfig) -> SyncResult:
    """Upsert every entry of ``config`` into the tracked tables."""
    result = SyncResult()
    async with db.session() as session:
        accounts = TrackedAccountRepository(session)
        for account in config.accounts:
            await accounts.upsert(TrackedAccountDTO(address=account.address, name=account.name, enabled=account.enabled))
            result.accounts += 1

        markets = TrackedMarketRepository(session)
        for market in config.markets:
            await markets.upsert(
                TrackedMarketDTO(
                    condition_id=market.condition_id,
                    name=market.name,
                    event_id=market.event_id,
                    enabled=market.enabled,
                )
            )
            result.markets += 1

    logger.info("Synced %d tracked account(s) and %d tracked market(s)", result.accounts, result.markets)
    return result
