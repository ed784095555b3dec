"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from polymarket_monitor.storage.database import DatabaseManager
from polymarket_monitor.storage.repos import TrackedMarketDTO, TrackedMarketRepository

CONDITION_ID = "0x" + "ab" * 32
ACCOUNT_ADDRESS = "0x1234567890abcdef1234567890abcdef12345678"


class FakeClock:
    """Settable clock for monitors; starts at a fixed UTC instant."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def sample_market_id() -> str:
    """Sample condition id for testing."""
    return CONDITION_ID


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def db(tmp_path: Path) -> AsyncIterator[DatabaseManager]:
    """A database manager over a fresh SQLite file with the schema created."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await manager.init_schema()
    yield manager
    await manager.dispose()


@pytest.fixture
async def tracked_market(db: DatabaseManager) -> TrackedMarketDTO:
    dto = TrackedMarketDTO(condition_id=CONDITION_ID, name="Will it rain tomorrow?", event_id=42)
    async with db.session() as session:
        await TrackedMarketRepository(session).upsert(dto)
    return dto
