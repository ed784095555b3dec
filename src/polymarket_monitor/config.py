"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Polymarket Monitor application, loading and validating environment
variables (and an optional ``.env`` file) at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL or SQLite connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite://", "sqlite+aiosqlite://")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or SQLite connection string")
        return v


class RedisSettings(BaseSettings):
    """Optional Redis backing for the trader P&L cache."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string (unset = in-process cache)",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is None:
            return v
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v

    @property
    def enabled(self) -> bool:
        return self.url is not None


class PolymarketSettings(BaseSettings):
    """Polymarket HTTP API settings."""

    model_config = SettingsConfigDict(env_prefix="POLYMARKET_", extra="ignore")

    gamma_api_url: str = Field(
        default="https://gamma-api.polymarket.com",
        alias="POLYMARKET_GAMMA_API_URL",
        description="Gamma API host (markets, events)",
    )
    data_api_url: str = Field(
        default="https://data-api.polymarket.com",
        alias="POLYMARKET_DATA_API_URL",
        description="Data API host (activity, trades, positions, holders)",
    )
    gamma_timeout_seconds: float = Field(
        default=10.0,
        alias="POLYMARKET_GAMMA_TIMEOUT_SECONDS",
        ge=1.0,
        le=120.0,
    )
    data_timeout_seconds: float = Field(
        default=15.0,
        alias="POLYMARKET_DATA_TIMEOUT_SECONDS",
        ge=1.0,
        le=120.0,
    )
    requests_per_second: float = Field(
        default=10.0,
        alias="POLYMARKET_REQUESTS_PER_SECOND",
        gt=0.0,
        le=100.0,
        description="Client-side rate limit shared by each API client",
    )

    @field_validator("gamma_api_url", "data_api_url")
    @classmethod
    def validate_http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("Polymarket API URLs must be HTTP(S) endpoints")
        return v.rstrip("/")


class WebhookSettings(BaseSettings):
    """Outbound webhook delivery settings."""

    model_config = SettingsConfigDict(env_prefix="WEBHOOK_", extra="ignore")

    url: str = Field(
        alias="WEBHOOK_URL",
        description="Endpoint receiving alert envelopes via POST",
    )
    retry_attempts: int = Field(
        default=3,
        alias="WEBHOOK_RETRY_ATTEMPTS",
        ge=0,
        le=10,
        description="Attempts per delivery before giving up for this cycle",
    )
    timeout_ms: int = Field(
        default=5000,
        alias="WEBHOOK_TIMEOUT_MS",
        ge=1000,
        le=30000,
        description="Per-request timeout in milliseconds",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("WEBHOOK_URL must be an HTTP(S) endpoint")
        return v


class PollingSettings(BaseSettings):
    """Orchestrator cycle cadence."""

    model_config = SettingsConfigDict(env_prefix="POLLING_", extra="ignore")

    interval_minutes: float = Field(
        default=1.5,
        alias="POLLING_INTERVAL_MINUTES",
        ge=0.5,
        le=60.0,
    )


class VolumeOutlierSettings(BaseSettings):
    """Volume outlier monitor configuration."""

    model_config = SettingsConfigDict(env_prefix="VOLUME_OUTLIER_", extra="ignore")

    enabled: bool = Field(default=True, alias="VOLUME_OUTLIER_ENABLED")
    std_deviation_threshold: float = Field(
        default=2.0,
        alias="VOLUME_OUTLIER_STD_DEVIATION_THRESHOLD",
        ge=1.0,
        le=5.0,
        description="z-score above which the latest trade is an outlier",
    )
    time_window_hours: int = Field(
        default=24,
        alias="VOLUME_OUTLIER_TIME_WINDOW_HOURS",
        ge=1,
        le=168,
    )
    market_scan_limit: int = Field(
        default=100,
        alias="VOLUME_OUTLIER_MARKET_SCAN_LIMIT",
        ge=1,
        le=500,
        description="Active markets refreshed from Gamma each run",
    )


class AccountActivitySettings(BaseSettings):
    """Tracked-account activity monitor configuration."""

    model_config = SettingsConfigDict(env_prefix="ACCOUNT_ACTIVITY_", extra="ignore")

    enabled: bool = Field(default=True, alias="ACCOUNT_ACTIVITY_ENABLED")
    initial_lookback_minutes: int = Field(
        default=5,
        alias="ACCOUNT_ACTIVITY_INITIAL_LOOKBACK_MINUTES",
        ge=1,
        le=24 * 60,
    )


class MarketProbabilitySettings(BaseSettings):
    """Tracked-market probability monitor configuration."""

    model_config = SettingsConfigDict(env_prefix="MARKET_PROBABILITY_", extra="ignore")

    enabled: bool = Field(default=True, alias="MARKET_PROBABILITY_ENABLED")
    change_threshold_percent: float = Field(
        default=1.0,
        alias="MARKET_PROBABILITY_CHANGE_THRESHOLD_PERCENT",
        ge=1.0,
        le=50.0,
    )
    track_live_volume: bool = Field(default=True, alias="MARKET_PROBABILITY_TRACK_LIVE_VOLUME")
    comparison_offset_minutes: int = Field(
        default=0,
        alias="MARKET_PROBABILITY_COMPARISON_OFFSET_MINUTES",
        ge=0,
        le=24 * 60,
        description="Compare against the latest snapshot at least this old (0 = previous)",
    )
    update_interval_minutes: int = Field(
        default=60,
        alias="MARKET_PROBABILITY_UPDATE_INTERVAL_MINUTES",
        ge=0,
        le=24 * 60,
        description="Cadence of MARKET_UPDATE alerts per market (0 = disabled)",
    )


class TradeActivitySettings(BaseSettings):
    """Tracked-market trade monitor configuration."""

    model_config = SettingsConfigDict(env_prefix="TRADE_ACTIVITY_", extra="ignore")

    enabled: bool = Field(default=True, alias="TRADE_ACTIVITY_ENABLED")
    large_trade_threshold: float = Field(
        default=10.0,
        alias="TRADE_ACTIVITY_LARGE_TRADE_THRESHOLD",
        ge=10.0,
        le=1_000_000.0,
        description="Minimum USDC notional for a trade alert",
    )
    whale_pnl_threshold: float = Field(
        default=100_000.0,
        alias="TRADE_ACTIVITY_WHALE_PNL_THRESHOLD",
        ge=10_000.0,
        le=10_000_000.0,
        description="Single-trade USDC notional that marks an address as a whale",
    )
    include_trader_intel: bool = Field(default=True, alias="TRADE_ACTIVITY_INCLUDE_TRADER_INTEL")
    initial_lookback_minutes: int = Field(
        default=5,
        alias="TRADE_ACTIVITY_INITIAL_LOOKBACK_MINUTES",
        ge=1,
        le=24 * 60,
    )


class SmartMoneySettings(BaseSettings):
    """Smart-money report configuration."""

    model_config = SettingsConfigDict(env_prefix="SMART_MONEY_", extra="ignore")

    enabled: bool = Field(default=True, alias="SMART_MONEY_ENABLED")
    interval_minutes: float = Field(
        default=60.0,
        alias="SMART_MONEY_INTERVAL_MINUTES",
        ge=1.0,
        le=24 * 60,
    )


class TrackedSettings(BaseSettings):
    """Location of the tracked accounts/markets file."""

    model_config = SettingsConfigDict(env_prefix="TRACKED_", extra="ignore")

    config_path: Path | None = Field(
        default=None,
        alias="TRACKED_CONFIG_PATH",
        description="JSON file with tracked accounts and markets, synced at startup",
    )


class Settings(BaseSettings):
    """Main application settings.

    Example:
        ```python
        from polymarket_monitor.config import get_settings

        settings = get_settings()
        print(settings.webhook.url)
        print(settings.polling.interval_minutes)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    database: DatabaseSettings = Field(
        default_factory=lambda: DatabaseSettings(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)
    )
    polymarket: PolymarketSettings = Field(
        default_factory=lambda: PolymarketSettings(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)
    )
    webhook: WebhookSettings = Field(
        default_factory=lambda: WebhookSettings(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)
    )
    polling: PollingSettings = Field(
        default_factory=lambda: PollingSettings(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)
    )
    volume_outlier: VolumeOutlierSettings = Field(
        default_factory=lambda: VolumeOutlierSettings(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)
    )
    account_activity: AccountActivitySettings = Field(
        default_factory=lambda: AccountActivitySettings(
            _env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING
        )
    )
    market_probability: MarketProbabilitySettings = Field(
        default_factory=lambda: MarketProbabilitySettings(
            _env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING
        )
    )
    trade_activity: TradeActivitySettings = Field(
        default_factory=lambda: TradeActivitySettings(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)
    )
    smart_money: SmartMoneySettings = Field(
        default_factory=lambda: SmartMoneySettings(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)
    )
    tracked: TrackedSettings = Field(
        default_factory=lambda: TrackedSettings(_env_file=_ENV_FILE, _env_file_encoding=_ENV_FILE_ENCODING)
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Persist alerts but never POST them",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted."""
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "polymarket": {
                "gamma_api_url": self.polymarket.gamma_api_url,
                "data_api_url": self.polymarket.data_api_url,
            },
            "webhook": {
                "url": self._redact_webhook(self.webhook.url),
                "retry_attempts": str(self.webhook.retry_attempts),
                "timeout_ms": str(self.webhook.timeout_ms),
            },
            "polling_interval_minutes": str(self.polling.interval_minutes),
            "monitors": {
                "volume_outlier": str(self.volume_outlier.enabled),
                "account_activity": str(self.account_activity.enabled),
                "market_probability": str(self.market_probability.enabled),
                "trade_activity": str(self.trade_activity.enabled),
                "smart_money": str(self.smart_money.enabled),
            },
            "tracked_config_path": str(self.tracked.config_path) if self.tracked.config_path else "(not set)",
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url

    @staticmethod
    def _redact_webhook(url: str) -> str:
        """Keep scheme and host only; webhook paths often embed tokens."""
        if "://" not in url:
            return url
        protocol_end = url.index("://") + 3
        host_end = url.find("/", protocol_end)
        if host_end == -1:
            return url
        return f"{url[:host_end]}/***"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
