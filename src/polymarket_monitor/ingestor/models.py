"""Data models for the ingestor module.

Upstream records are parsed into frozen dataclasses. Missing required keys
raise ``KeyError`` and malformed values raise ``ValueError``/``TypeError``;
the API clients translate both into ``ApiResponseError``.
"""

import json
import math
from dataclasses import dataclass
from typing import Any


def to_number(value: Any) -> float:
    """Coerce a number-ish upstream value to float (non-numeric -> 0)."""
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    try:
        parsed = float(str(value))
    except ValueError:
        return 0.0
    return parsed if math.isfinite(parsed) else 0.0


def _string_list(value: Any) -> tuple[str, ...]:
    """Outcome lists arrive either as arrays or as JSON-encoded strings."""
    if value is None:
        return ()
    if isinstance(value, str):
        value = json.loads(value) if value else []
    if not isinstance(value, list):
        raise ValueError(f"Expected a list, got {type(value).__name__}")
    return tuple(str(v) for v in value)


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def truncate_address(address: str) -> str:
    """Short display form of an address, e.g. ``0x1234...abcd``."""
    if len(address) <= 10:
        return address
    return f"{address[:6]}...{address[-4:]}"


@dataclass(frozen=True)
class GammaMarket:
    """A market as returned by the Gamma API."""

    id: str
    condition_id: str
    slug: str
    question: str
    outcomes: tuple[str, ...] = ()
    outcome_prices: tuple[str, ...] = ()
    description: str = ""
    volume: float = 0.0
    volume_24hr: float = 0.0
    liquidity: float = 0.0
    active: bool = True
    closed: bool = False
    end_date: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GammaMarket":
        return cls(
            id=str(data["id"]),
            condition_id=str(data["conditionId"]),
            slug=str(data["slug"]),
            question=str(data["question"]),
            outcomes=_string_list(data.get("outcomes")),
            outcome_prices=_string_list(data.get("outcomePrices")),
            description=str(data.get("description") or ""),
            volume=to_number(data.get("volume")),
            volume_24hr=to_number(data.get("volume24hr")),
            liquidity=to_number(data.get("liquidity")),
            active=bool(data.get("active", True)),
            closed=bool(data.get("closed", False)),
            end_date=_optional_str(data.get("endDate")),
        )

    @property
    def probability(self) -> float:
        """Price of the first outcome, read as its probability."""
        return to_number(self.outcome_prices[0]) if self.outcome_prices else 0.0

    @property
    def outcome_price_values(self) -> list[float]:
        return [to_number(p) for p in self.outcome_prices]


@dataclass(frozen=True)
class GammaEvent:
    """An event grouping one or more markets."""

    id: str
    slug: str
    title: str
    markets: tuple[GammaMarket, ...] = ()
    volume: float = 0.0
    active: bool = True
    closed: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GammaEvent":
        return cls(
            id=str(data["id"]),
            slug=str(data["slug"]),
            title=str(data["title"]),
            markets=tuple(GammaMarket.from_dict(m) for m in data.get("markets") or []),
            volume=to_number(data.get("volume")),
            active=bool(data.get("active", True)),
            closed=bool(data.get("closed", False)),
        )

    def find_market(self, condition_id: str) -> GammaMarket | None:
        for market in self.markets:
            if market.condition_id == condition_id:
                return market
        return None


@dataclass(frozen=True)
class ActivityMarket:
    condition_id: str
    slug: str
    title: str
    outcome: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActivityMarket":
        return cls(
            condition_id=str(data["conditionId"]),
            slug=str(data.get("slug") or ""),
            title=str(data.get("title") or ""),
            outcome=_optional_str(data.get("outcome")),
        )


@dataclass(frozen=True)
class Activity:
    """One entry of an account's activity feed."""

    proxy_wallet: str
    timestamp: int
    condition_id: str
    type: str
    size: float
    usdc_size: float
    transaction_hash: str
    price: float = 0.0
    side: str | None = None
    outcome_index: int | None = None
    asset: str | None = None
    market: ActivityMarket | None = None
    user_name: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Activity":
        market_data = data.get("market")
        user_data = data.get("user") or {}
        outcome_index = data.get("outcomeIndex")
        return cls(
            proxy_wallet=str(data["proxyWallet"]),
            timestamp=int(data["timestamp"]),
            condition_id=str(data["conditionId"]),
            type=str(data["type"]),
            size=to_number(data.get("size")),
            usdc_size=to_number(data.get("usdcSize")),
            transaction_hash=str(data["transactionHash"]),
            price=to_number(data.get("price")),
            side=_optional_str(data.get("side")),
            outcome_index=int(outcome_index) if outcome_index is not None else None,
            asset=_optional_str(data.get("asset")),
            market=ActivityMarket.from_dict(market_data) if isinstance(market_data, dict) else None,
            user_name=_optional_str(user_data.get("name") or user_data.get("pseudonym")),
        )


@dataclass(frozen=True)
class MarketTrade:
    """A trade from a market's public trade feed."""

    proxy_wallet: str
    side: str
    size: float
    price: float
    timestamp: int
    transaction_hash: str
    outcome: str | None = None
    outcome_index: int | None = None
    name: str | None = None
    pseudonym: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MarketTrade":
        outcome_index = data.get("outcomeIndex")
        return cls(
            proxy_wallet=str(data["proxyWallet"]),
            side=str(data.get("side") or ""),
            size=to_number(data.get("size")),
            price=to_number(data.get("price")),
            timestamp=int(data["timestamp"]),
            transaction_hash=str(data.get("transactionHash") or ""),
            outcome=_optional_str(data.get("outcome")),
            outcome_index=int(outcome_index) if outcome_index is not None else None,
            name=_optional_str(data.get("name")),
            pseudonym=_optional_str(data.get("pseudonym")),
        )

    @property
    def notional(self) -> float:
        """USDC value of the trade (size x price)."""
        return self.size * self.price


@dataclass(frozen=True)
class UserPosition:
    """An open position held by an account."""

    proxy_wallet: str
    asset: str
    condition_id: str
    size: float
    avg_price: float
    current_value: float
    cash_pnl: float
    realized_pnl: float
    outcome: str = ""
    title: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserPosition":
        return cls(
            proxy_wallet=str(data["proxyWallet"]),
            asset=str(data["asset"]),
            condition_id=str(data["conditionId"]),
            size=to_number(data.get("size")),
            avg_price=to_number(data.get("avgPrice")),
            current_value=to_number(data.get("currentValue")),
            cash_pnl=to_number(data.get("cashPnl")),
            realized_pnl=to_number(data.get("realizedPnl")),
            outcome=str(data.get("outcome") or ""),
            title=str(data.get("title") or ""),
        )


@dataclass(frozen=True)
class ClosedPosition:
    proxy_wallet: str
    asset: str
    condition_id: str
    realized_pnl: float
    timestamp: int = 0
    title: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClosedPosition":
        return cls(
            proxy_wallet=str(data["proxyWallet"]),
            asset=str(data["asset"]),
            condition_id=str(data["conditionId"]),
            realized_pnl=to_number(data.get("realizedPnl")),
            timestamp=int(data.get("timestamp") or 0),
            title=str(data.get("title") or ""),
        )


@dataclass(frozen=True)
class Holder:
    """A top holder of one outcome token."""

    proxy_wallet: str
    amount: float
    outcome_index: int
    asset: str = ""
    name: str | None = None
    pseudonym: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Holder":
        return cls(
            proxy_wallet=str(data["proxyWallet"]),
            amount=to_number(data.get("amount")),
            outcome_index=int(data["outcomeIndex"]),
            asset=str(data.get("asset") or ""),
            name=_optional_str(data.get("name")),
            pseudonym=_optional_str(data.get("pseudonym")),
        )

    @property
    def display_name(self) -> str:
        return self.pseudonym or self.name or truncate_address(self.proxy_wallet)


@dataclass(frozen=True)
class MarketHolders:
    token: str
    holders: tuple[Holder, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MarketHolders":
        return cls(
            token=str(data["token"]),
            holders=tuple(Holder.from_dict(h) for h in data.get("holders") or []),
        )


@dataclass(frozen=True)
class OpenInterest:
    market: str
    value: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OpenInterest":
        return cls(market=str(data["market"]), value=to_number(data.get("value")))


@dataclass(frozen=True)
class LiveVolume:
    """Live traded volume of an event, broken down per market."""

    total: float
    markets: tuple[tuple[str, float], ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LiveVolume":
        return cls(
            total=to_number(data.get("total")),
            markets=tuple(
                (str(m["market"]), to_number(m.get("value"))) for m in data.get("markets") or []
            ),
        )

    def value_for(self, condition_id: str) -> float | None:
        for market, value in self.markets:
            if market == condition_id:
                return value
        return None
