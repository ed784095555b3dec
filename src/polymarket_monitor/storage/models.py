"""SQLAlchemy models for persistent storage.

This module defines the database schema for markets, tracked entities,
trades, the two snapshot series and persisted alerts.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class MarketModel(Base):
    """Markets seen by any monitor, keyed by condition id."""

    __tablename__ = "markets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    condition_id: Mapped[str] = mapped_column(String(66), nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    volume_24hr: Mapped[Decimal] = mapped_column(Numeric(24, 6), nullable=False, default=Decimal(0))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_markets_slug", "slug"),)


class TrackedMarketModel(Base):
    """Markets explicitly followed by the probability, trade and smart-money monitors."""

    __tablename__ = "tracked_markets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    condition_id: Mapped[str] = mapped_column(String(66), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    event_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class TrackedAccountModel(Base):
    """Accounts whose trading activity is followed."""

    __tablename__ = "tracked_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    address: Mapped[str] = mapped_column(String(42), nullable=False, unique=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class TradeModel(Base):
    """Trades, idempotent on transaction hash."""

    __tablename__ = "trades"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    transaction_hash: Mapped[str] = mapped_column(String(66), nullable=False, unique=True)
    market_id: Mapped[int] = mapped_column(ForeignKey("markets.id", ondelete="CASCADE"), nullable=False)
    user_address: Mapped[str] = mapped_column(String(42), nullable=False)
    side: Mapped[str] = mapped_column(String(4), nullable=False)
    size: Mapped[Decimal] = mapped_column(Numeric(24, 6), nullable=False)
    usdc_size: Mapped[Decimal] = mapped_column(Numeric(24, 6), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_trades_market_ts", "market_id", "ts"),
        Index("idx_trades_user_ts", "user_address", "ts"),
    )


class PriceSnapshotModel(Base):
    """Append-only probability series per market."""

    __tablename__ = "price_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    market_id: Mapped[int] = mapped_column(ForeignKey("markets.id", ondelete="CASCADE"), nullable=False)
    probability: Mapped[float] = mapped_column(Float, nullable=False)
    ts: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_price_snapshots_market_ts", "market_id", "ts"),)


class MarketSnapshotModel(Base):
    """Append-only smart-money series per tracked market."""

    __tablename__ = "market_snapshots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    condition_id: Mapped[str] = mapped_column(String(66), nullable=False)
    open_interest: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    live_volume: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    yes_holders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    no_holders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    yes_concentration: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    no_concentration: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    yes_side_pnl: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    no_side_pnl: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    probability: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    snapshot_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (Index("idx_market_snapshots_condition_time", "condition_id", "snapshot_time"),)


class AlertModel(Base):
    """Persisted alerts and their webhook delivery state."""

    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    alert_type: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[str] = mapped_column(String(8), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    alert_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    webhook_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_alerts_pending", "webhook_sent", "retry_count", "created_at"),
        Index("idx_alerts_created_at", "created_at"),
    )
