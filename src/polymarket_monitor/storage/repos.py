"""Repository pattern implementations for data access.

This module provides data access abstractions for markets, tracked
entities, trades, the probability and smart-money snapshot series, and
persisted alerts.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from polymarket_monitor.alerter.models import Alert, AlertSeverity, AlertType
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

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Alerts whose retry count reaches this bound are never swept again.
MAX_ALERT_RETRIES = 3
DEFAULT_PENDING_BATCH = 50


def _dialect_insert(session: AsyncSession, model: type[Base]) -> Any:
    """Return an INSERT supporting ON CONFLICT for the session's dialect."""
    if session.get_bind().dialect.name == "postgresql":
        return pg_insert(model)
    return sqlite_insert(model)


@dataclass
class MarketDTO:
    """Data transfer object for markets."""

    id: int
    condition_id: str
    slug: str
    title: str
    volume_24hr: Decimal
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: MarketModel) -> MarketDTO:
        return cls(
            id=model.id,
            condition_id=model.condition_id,
            slug=model.slug,
            title=model.title,
            volume_24hr=model.volume_24hr,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )


@dataclass
class TrackedMarketDTO:
    """Data transfer object for tracked markets."""

    condition_id: str
    name: str | None = None
    event_id: int | None = None
    enabled: bool = True

    @property
    def label(self) -> str:
        return self.name or self.condition_id

    @classmethod
    def from_model(cls, model: TrackedMarketModel) -> TrackedMarketDTO:
        return cls(
            condition_id=model.condition_id,
            name=model.name,
            event_id=model.event_id,
            enabled=model.enabled,
        )


@dataclass
class TrackedAccountDTO:
    """Data transfer object for tracked accounts."""

    address: str
    name: str | None = None
    enabled: bool = True

    @classmethod
    def from_model(cls, model: TrackedAccountModel) -> TrackedAccountDTO:
        return cls(address=model.address, name=model.name, enabled=model.enabled)


@dataclass
class TradeDTO:
    """Data transfer object for trades."""

    transaction_hash: str
    market_id: int
    user_address: str
    side: str
    size: Decimal
    usdc_size: Decimal
    price: Decimal
    ts: datetime
    id: int | None = None
    created_at: datetime | None = None

    @classmethod
    def from_model(cls, model: TradeModel) -> TradeDTO:
        return cls(
            id=model.id,
            transaction_hash=model.transaction_hash,
            market_id=model.market_id,
            user_address=model.user_address,
            side=model.side,
            size=model.size,
            usdc_size=model.usdc_size,
            price=model.price,
            ts=model.ts,
            created_at=model.created_at,
        )


@dataclass
class PriceSnapshotDTO:
    market_id: int
    probability: float
    ts: datetime
    id: int | None = None

    @classmethod
    def from_model(cls, model: PriceSnapshotModel) -> PriceSnapshotDTO:
        return cls(id=model.id, market_id=model.market_id, probability=model.probability, ts=model.ts)


@dataclass
class MarketSnapshotDTO:
    """Data transfer object for smart-money snapshots."""

    condition_id: str
    open_interest: float = 0.0
    live_volume: float = 0.0
    yes_holders: int = 0
    no_holders: int = 0
    yes_concentration: float = 0.0
    no_concentration: float = 0.0
    yes_side_pnl: float = 0.0
    no_side_pnl: float = 0.0
    probability: float = 0.0
    snapshot_time: datetime | None = None
    id: int | None = None

    @classmethod
    def from_model(cls, model: MarketSnapshotModel) -> MarketSnapshotDTO:
        return cls(
            id=model.id,
            condition_id=model.condition_id,
            open_interest=model.open_interest,
            live_volume=model.live_volume,
            yes_holders=model.yes_holders,
            no_holders=model.no_holders,
            yes_concentration=model.yes_concentration,
            no_concentration=model.no_concentration,
            yes_side_pnl=model.yes_side_pnl,
            no_side_pnl=model.no_side_pnl,
            probability=model.probability,
            snapshot_time=model.snapshot_time,
        )


@dataclass
class AlertDTO:
    """A persisted alert together with its delivery state."""

    id: str
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    data: dict[str, Any]
    alert_timestamp: datetime
    webhook_sent: bool = False
    sent_at: datetime | None = None
    retry_count: int = 0
    created_at: datetime | None = None

    def to_alert(self) -> Alert:
        """Rebuild the transient alert for replay."""
        return Alert(
            alert_type=self.alert_type,
            severity=self.severity,
            title=self.title,
            data=self.data,
            timestamp=self.alert_timestamp,
        )

    @classmethod
    def from_model(cls, model: AlertModel) -> AlertDTO:
        return cls(
            id=model.id,
            alert_type=AlertType(model.alert_type),
            severity=AlertSeverity(model.severity),
            title=model.title,
            data=model.data,
            alert_timestamp=model.alert_timestamp,
            webhook_sent=model.webhook_sent,
            sent_at=model.sent_at,
            retry_count=model.retry_count,
            created_at=model.created_at,
        )


class MarketRepository:
    """Repository for markets keyed by condition id."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(
        self,
        *,
        condition_id: str,
        slug: str,
        title: str,
        volume_24hr: Decimal | float = Decimal(0),
        now: datetime | None = None,
    ) -> MarketDTO:
        """Insert or refresh a market and return the stored row."""
        now = now or datetime.now(UTC)
        stmt = _dialect_insert(self.session, MarketModel).values(
            condition_id=condition_id,
            slug=slug,
            title=title,
            volume_24hr=Decimal(str(volume_24hr)),
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["condition_id"],
            set_={
                "slug": stmt.excluded.slug,
                "title": stmt.excluded.title,
                "volume_24hr": stmt.excluded.volume_24hr,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()

        market = await self.get_by_condition_id(condition_id)
        if market is None:
            raise RuntimeError(f"Market upsert did not persist {condition_id}")
        return market

    async def get_by_condition_id(self, condition_id: str) -> MarketDTO | None:
        result = await self.session.execute(
            select(MarketModel)
            .where(MarketModel.condition_id == condition_id)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return MarketDTO.from_model(model) if model else None

    async def find_by_slug(self, slug: str) -> MarketDTO | None:
        result = await self.session.execute(select(MarketModel).where(MarketModel.slug == slug).limit(1))
        model = result.scalar_one_or_none()
        return MarketDTO.from_model(model) if model else None

    async def find_all(self, limit: int = 1000) -> list[MarketDTO]:
        result = await self.session.execute(
            select(MarketModel).order_by(MarketModel.volume_24hr.desc()).limit(limit)
        )
        return [MarketDTO.from_model(m) for m in result.scalars().all()]


class TrackedMarketRepository:
    """Repository for the tracked-market list."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(self, dto: TrackedMarketDTO) -> TrackedMarketDTO:
        stmt = _dialect_insert(self.session, TrackedMarketModel).values(
            condition_id=dto.condition_id,
            name=dto.name,
            event_id=dto.event_id,
            enabled=dto.enabled,
            created_at=datetime.now(UTC),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["condition_id"],
            set_={
                "name": stmt.excluded.name,
                "event_id": stmt.excluded.event_id,
                "enabled": stmt.excluded.enabled,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return dto

    async def list_enabled(self) -> list[TrackedMarketDTO]:
        result = await self.session.execute(
            select(TrackedMarketModel)
            .where(TrackedMarketModel.enabled.is_(True))
            .order_by(TrackedMarketModel.id)
        )
        return [TrackedMarketDTO.from_model(m) for m in result.scalars().all()]

    async def list_all(self) -> list[TrackedMarketDTO]:
        result = await self.session.execute(select(TrackedMarketModel).order_by(TrackedMarketModel.id))
        return [TrackedMarketDTO.from_model(m) for m in result.scalars().all()]


class TrackedAccountRepository:
    """Repository for the tracked-account list."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(self, dto: TrackedAccountDTO) -> TrackedAccountDTO:
        now = datetime.now(UTC)
        stmt = _dialect_insert(self.session, TrackedAccountModel).values(
            address=dto.address.lower(),
            name=dto.name,
            enabled=dto.enabled,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["address"],
            set_={
                "name": stmt.excluded.name,
                "enabled": stmt.excluded.enabled,
                "updated_at": now,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return TrackedAccountDTO(address=dto.address.lower(), name=dto.name, enabled=dto.enabled)

    async def get_by_address(self, address: str) -> TrackedAccountDTO | None:
        result = await self.session.execute(
            select(TrackedAccountModel).where(TrackedAccountModel.address == address.lower())
        )
        model = result.scalar_one_or_none()
        return TrackedAccountDTO.from_model(model) if model else None

    async def list_enabled(self) -> list[TrackedAccountDTO]:
        result = await self.session.execute(
            select(TrackedAccountModel)
            .where(TrackedAccountModel.enabled.is_(True))
            .order_by(TrackedAccountModel.id)
        )
        return [TrackedAccountDTO.from_model(m) for m in result.scalars().all()]


class TradeRepository:
    """Repository for persisted trades."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def upsert(self, dto: TradeDTO) -> TradeDTO:
        """Upsert trade by transaction hash (replays never duplicate rows)."""
        stmt = _dialect_insert(self.session, TradeModel).values(
            transaction_hash=dto.transaction_hash,
            market_id=dto.market_id,
            user_address=dto.user_address.lower(),
            side=dto.side,
            size=dto.size,
            usdc_size=dto.usdc_size,
            price=dto.price,
            ts=dto.ts,
            created_at=datetime.now(UTC),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["transaction_hash"],
            set_={
                "market_id": stmt.excluded.market_id,
                "user_address": stmt.excluded.user_address,
                "side": stmt.excluded.side,
                "size": stmt.excluded.size,
                "usdc_size": stmt.excluded.usdc_size,
                "price": stmt.excluded.price,
                "ts": stmt.excluded.ts,
            },
        )
        await self.session.execute(stmt)
        await self.session.flush()
        return dto

    async def get_by_transaction_hash(self, transaction_hash: str) -> TradeDTO | None:
        result = await self.session.execute(
            select(TradeModel)
            .where(TradeModel.transaction_hash == transaction_hash)
            .execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return TradeDTO.from_model(model) if model else None

    async def find_by_market(
        self,
        market_id: int,
        *,
        limit: int = 500,
        since: datetime | None = None,
    ) -> list[TradeDTO]:
        """Trades for a market, newest first."""
        stmt = select(TradeModel).where(TradeModel.market_id == market_id)
        if since is not None:
            stmt = stmt.where(TradeModel.ts >= since)
        stmt = stmt.order_by(TradeModel.ts.desc(), TradeModel.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return [TradeDTO.from_model(m) for m in result.scalars().all()]

    async def find_by_user(self, user_address: str, *, limit: int = 100) -> list[TradeDTO]:
        result = await self.session.execute(
            select(TradeModel)
            .where(TradeModel.user_address == user_address.lower())
            .order_by(TradeModel.ts.desc())
            .limit(limit)
        )
        return [TradeDTO.from_model(m) for m in result.scalars().all()]

    async def find_recent(self, *, limit: int = 100) -> list[TradeDTO]:
        result = await self.session.execute(select(TradeModel).order_by(TradeModel.ts.desc()).limit(limit))
        return [TradeDTO.from_model(m) for m in result.scalars().all()]

    async def get_latest_timestamp(self, market_id: int) -> datetime | None:
        result = await self.session.execute(
            select(TradeModel.ts)
            .where(TradeModel.market_id == market_id)
            .order_by(TradeModel.ts.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()


class PriceSnapshotRepository:
    """Append-only access to the probability series."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, *, market_id: int, probability: float, ts: datetime) -> PriceSnapshotDTO:
        model = PriceSnapshotModel(market_id=market_id, probability=probability, ts=ts)
        self.session.add(model)
        await self.session.flush()
        return PriceSnapshotDTO.from_model(model)

    async def get_latest(self, market_id: int) -> PriceSnapshotDTO | None:
        result = await self.session.execute(
            select(PriceSnapshotModel)
            .where(PriceSnapshotModel.market_id == market_id)
            .order_by(PriceSnapshotModel.ts.desc(), PriceSnapshotModel.id.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return PriceSnapshotDTO.from_model(model) if model else None

    async def get_at_or_before(self, market_id: int, *, at: datetime) -> PriceSnapshotDTO | None:
        """Latest snapshot recorded at or before ``at``."""
        result = await self.session.execute(
            select(PriceSnapshotModel)
            .where((PriceSnapshotModel.market_id == market_id) & (PriceSnapshotModel.ts <= at))
            .order_by(PriceSnapshotModel.ts.desc(), PriceSnapshotModel.id.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return PriceSnapshotDTO.from_model(model) if model else None

    async def history(self, market_id: int, *, hours: int = 24, now: datetime | None = None) -> list[PriceSnapshotDTO]:
        since = (now or datetime.now(UTC)) - timedelta(hours=hours)
        result = await self.session.execute(
            select(PriceSnapshotModel)
            .where((PriceSnapshotModel.market_id == market_id) & (PriceSnapshotModel.ts >= since))
            .order_by(PriceSnapshotModel.ts.asc())
        )
        return [PriceSnapshotDTO.from_model(m) for m in result.scalars().all()]


class MarketSnapshotRepository:
    """Append-only access to the smart-money series."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, dto: MarketSnapshotDTO) -> MarketSnapshotDTO:
        model = MarketSnapshotModel(
            condition_id=dto.condition_id,
            open_interest=dto.open_interest,
            live_volume=dto.live_volume,
            yes_holders=dto.yes_holders,
            no_holders=dto.no_holders,
            yes_concentration=dto.yes_concentration,
            no_concentration=dto.no_concentration,
            yes_side_pnl=dto.yes_side_pnl,
            no_side_pnl=dto.no_side_pnl,
            probability=dto.probability,
            snapshot_time=dto.snapshot_time or datetime.now(UTC),
        )
        self.session.add(model)
        await self.session.flush()
        return MarketSnapshotDTO.from_model(model)

    async def get_latest(self, condition_id: str) -> MarketSnapshotDTO | None:
        result = await self.session.execute(
            select(MarketSnapshotModel)
            .where(MarketSnapshotModel.condition_id == condition_id)
            .order_by(MarketSnapshotModel.snapshot_time.desc(), MarketSnapshotModel.id.desc())
            .limit(1)
        )
        model = result.scalar_one_or_none()
        return MarketSnapshotDTO.from_model(model) if model else None

    async def get_recent(
        self, condition_id: str, *, hours: int = 24, now: datetime | None = None
    ) -> list[MarketSnapshotDTO]:
        since = (now or datetime.now(UTC)) - timedelta(hours=hours)
        result = await self.session.execute(
            select(MarketSnapshotModel)
            .where(
                (MarketSnapshotModel.condition_id == condition_id)
                & (MarketSnapshotModel.snapshot_time >= since)
            )
            .order_by(MarketSnapshotModel.snapshot_time.desc())
        )
        return [MarketSnapshotDTO.from_model(m) for m in result.scalars().all()]

    async def delete_old(self, *, days_to_keep: int = 7, now: datetime | None = None) -> int:
        cutoff = (now or datetime.now(UTC)) - timedelta(days=days_to_keep)
        result = await self.session.execute(
            delete(MarketSnapshotModel).where(MarketSnapshotModel.snapshot_time < cutoff)
        )
        await self.session.flush()
        return int(result.rowcount or 0)


class AlertRepository:
    """Repository for persisted alerts and their delivery state."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create(self, alert: Alert, *, now: datetime | None = None) -> AlertDTO:
        model = AlertModel(
            id=str(uuid.uuid4()),
            alert_type=alert.alert_type.value,
            severity=alert.severity.value,
            title=alert.title,
            data=alert.data,
            alert_timestamp=alert.timestamp,
            webhook_sent=False,
            retry_count=0,
            created_at=now or datetime.now(UTC),
        )
        self.session.add(model)
        await self.session.flush()
        return AlertDTO.from_model(model)

    async def get_by_id(self, alert_id: str) -> AlertDTO | None:
        result = await self.session.execute(
            select(AlertModel).where(AlertModel.id == alert_id).execution_options(populate_existing=True)
        )
        model = result.scalar_one_or_none()
        return AlertDTO.from_model(model) if model else None

    async def find_pending(
        self,
        *,
        limit: int = DEFAULT_PENDING_BATCH,
        max_retries: int = MAX_ALERT_RETRIES,
        created_before: datetime | None = None,
    ) -> list[AlertDTO]:
        """Unsent alerts still eligible for the backlog sweep, oldest first."""
        stmt = select(AlertModel).where(
            (AlertModel.webhook_sent.is_(False)) & (AlertModel.retry_count < max_retries)
        )
        if created_before is not None:
            stmt = stmt.where(AlertModel.created_at < created_before)
        result = await self.session.execute(stmt.order_by(AlertModel.created_at.asc()).limit(limit))
        return [AlertDTO.from_model(m) for m in result.scalars().all()]

    async def mark_sent(self, alert_id: str, *, sent_at: datetime | None = None) -> None:
        await self.session.execute(
            update(AlertModel)
            .where(AlertModel.id == alert_id)
            .values(webhook_sent=True, sent_at=sent_at or datetime.now(UTC))
        )
        await self.session.flush()

    async def increment_retry_count(self, alert_id: str) -> None:
        await self.session.execute(
            update(AlertModel)
            .where(AlertModel.id == alert_id)
            .values(retry_count=AlertModel.retry_count + 1)
        )
        await self.session.flush()

    async def find_recent(self, *, limit: int = 100) -> list[AlertDTO]:
        result = await self.session.execute(
            select(AlertModel).order_by(AlertModel.created_at.desc()).limit(limit)
        )
        return [AlertDTO.from_model(m) for m in result.scalars().all()]
