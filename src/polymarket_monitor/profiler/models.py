"""Data models for trader and holder profiling."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

T = TypeVar("T")

Side = Literal["YES", "NO"]


@dataclass(frozen=True)
class PnLResult(Generic[T]):
    """A lookup result that records whether the value is real or a fallback.

    A failed lookup still carries a usable default (zeros, a truncated
    address, None) so callers can keep going, but ``ok`` lets them tell
    "the trader has no P&L" apart from "the fetch failed".
    """

    value: T
    ok: bool = True
    error: str | None = None

    @classmethod
    def success(cls, value: T) -> PnLResult[T]:
        return cls(value=value, ok=True)

    @classmethod
    def failed(cls, default: T, error: BaseException | str) -> PnLResult[T]:
        return cls(value=default, ok=False, error=str(error))


@dataclass(frozen=True)
class TraderPnLSummary:
    """Lifetime P&L of one account across open and closed positions."""

    total_realized_pnl: float = 0.0
    total_cash_pnl: float = 0.0
    open_positions_count: int = 0
    closed_positions_count: int = 0

    @property
    def total_pnl(self) -> float:
        return self.total_realized_pnl + self.total_cash_pnl

    def to_dict(self) -> dict[str, float | int]:
        return {
            "totalRealizedPnl": self.total_realized_pnl,
            "totalCashPnl": self.total_cash_pnl,
            "totalPnl": self.total_pnl,
            "openPositionsCount": self.open_positions_count,
            "closedPositionsCount": self.closed_positions_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TraderPnLSummary:
        return cls(
            total_realized_pnl=float(data["totalRealizedPnl"]),
            total_cash_pnl=float(data["totalCashPnl"]),
            open_positions_count=int(data["openPositionsCount"]),
            closed_positions_count=int(data["closedPositionsCount"]),
        )


@dataclass(frozen=True)
class HolderInfo:
    """A holder as seen in the distribution step, before any P&L lookup."""

    address: str
    name: str
    amount: float


@dataclass(frozen=True)
class EnrichedHolder:
    """A holder together with the lifetime P&L fetched for it."""

    address: str
    name: str
    amount: float
    pnl: float = 0.0
    realized_pnl: float = 0.0
    unrealized_pnl: float = 0.0
    pnl_known: bool = True

    @classmethod
    def from_holder(cls, holder: HolderInfo, result: PnLResult[TraderPnLSummary]) -> EnrichedHolder:
        summary = result.value if result.ok else TraderPnLSummary()
        return cls(
            address=holder.address,
            name=holder.name,
            amount=holder.amount,
            pnl=summary.total_pnl,
            realized_pnl=summary.total_realized_pnl,
            unrealized_pnl=summary.total_cash_pnl,
            pnl_known=result.ok,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "name": self.name,
            "amount": self.amount,
            "pnl": self.pnl,
            "realizedPnL": self.realized_pnl,
            "unrealizedPnL": self.unrealized_pnl,
        }


@dataclass(frozen=True)
class HolderDistribution:
    """Top holders of a market split into the yes (outcome 0) and no (outcome 1) sides."""

    yes_holders: tuple[HolderInfo, ...] = ()
    no_holders: tuple[HolderInfo, ...] = ()
    yes_concentration: float = 0.0
    no_concentration: float = 0.0
    total_yes_amount: float = 0.0
    total_no_amount: float = 0.0


@dataclass(frozen=True)
class EnrichedDistribution:
    """A holder distribution whose holders carry P&L."""

    yes_holders: tuple[EnrichedHolder, ...] = ()
    no_holders: tuple[EnrichedHolder, ...] = ()
    yes_concentration: float = 0.0
    no_concentration: float = 0.0
    total_yes_amount: float = 0.0
    total_no_amount: float = 0.0


@dataclass(frozen=True)
class SidePnLAnalysis:
    """Aggregated holder P&L per side of a market."""

    yes_side_pnl: float = 0.0
    no_side_pnl: float = 0.0
    yes_side_avg_pnl: float = 0.0
    no_side_avg_pnl: float = 0.0
    smarter_side: Side = "NO"
    distribution: EnrichedDistribution = field(default_factory=EnrichedDistribution)
    failed_lookups: int = 0

    @property
    def smarter_side_avg_pnl(self) -> float:
        return self.yes_side_avg_pnl if self.smarter_side == "YES" else self.no_side_avg_pnl
