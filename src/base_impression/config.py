"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Base Impression engine, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal
from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"

DEFAULT_RPC_URLS = (
    "https://mainnet.base.org",
    "https://base.llamarpc.com",
    "https://base-rpc.publicnode.com",
    "https://1rpc.io/base",
)

DEFAULT_REQUIRED_TAGS = (
    "@jessepollak",
    "@brian_armstrong",
    "@base",
    "@baseapp",
    "@baseposting",
    "$lamboless",
)


def _split_csv(v: object, *, name: str) -> tuple[str, ...]:
    if v is None:
        raise ValueError(f"{name} must be set")
    if isinstance(v, str):
        return tuple(p.strip() for p in v.split(",") if p.strip())
    if isinstance(v, (list, tuple)):
        return tuple(str(x) for x in v)
    raise TypeError(f"Invalid {name} type")


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="sqlite+aiosqlite:///./base_impression.db",
        alias="DATABASE_URL",
        description="SQLAlchemy async connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("sqlite+aiosqlite://", "postgresql://", "postgresql+asyncpg://")):
            raise ValueError("DATABASE_URL must be a SQLite (aiosqlite) or PostgreSQL connection string")
        return v


class RedisSettings(BaseSettings):
    """Redis connection settings (optional price cache)."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str | None = Field(
        default=None,
        alias="REDIS_URL",
        description="Redis connection string; caching is disabled when unset",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str | None) -> str | None:
        """Validate Redis URL format."""
        if v is not None and not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class ChainSettings(BaseSettings):
    """Chain-read endpoint settings for balance resolution."""

    model_config = SettingsConfigDict(env_prefix="CHAIN_", extra="ignore")

    rpc_urls: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_RPC_URLS,
        alias="CHAIN_RPC_URLS",
        description="Ordered, interchangeable RPC endpoints (comma-separated)",
    )
    max_retries: int = Field(
        default=3,
        alias="CHAIN_MAX_RETRIES",
        ge=1,
        le=50,
        description="Attempt budget per balance resolution",
    )
    retry_delay_seconds: float = Field(
        default=0.5,
        alias="CHAIN_RETRY_DELAY_SECONDS",
        ge=0.0,
        le=30.0,
        description="Fixed backoff between attempts",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        alias="CHAIN_REQUEST_TIMEOUT_SECONDS",
        gt=0.0,
        le=120.0,
        description="Bounded wait for a single balance read",
    )
    dex_chain_id: str = Field(
        default="base",
        alias="CHAIN_DEX_CHAIN_ID",
        description="Chain identifier used by the market-data aggregator",
    )

    @field_validator("rpc_urls", mode="before")
    @classmethod
    def _parse_rpc_urls(cls, v: object) -> tuple[str, ...]:
        return _split_csv(v, name="CHAIN_RPC_URLS")

    @field_validator("rpc_urls")
    @classmethod
    def validate_rpc_urls(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Validate RPC URL format."""
        if not v:
            raise ValueError("CHAIN_RPC_URLS must contain at least one endpoint")
        for url in v:
            if not url.startswith(("http://", "https://")):
                raise ValueError("RPC URL must be an HTTP(S) endpoint")
        return v


class TokenSettings(BaseSettings):
    """Campaign token settings."""

    model_config = SettingsConfigDict(env_prefix="TOKEN_", extra="ignore")

    contract_address: str = Field(
        default="0xbe7c48aad42eea060150cb64f94b6448a89c1cef",
        alias="TOKEN_CONTRACT_ADDRESS",
        description="ERC20 contract whose holdings are scored",
    )
    min_asset_value_usd: Decimal = Field(
        default=Decimal("2.5"),
        alias="TOKEN_MIN_ASSET_VALUE_USD",
        description="Minimum held USD value required to claim",
    )

    @field_validator("min_asset_value_usd")
    @classmethod
    def validate_min_asset_value(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("TOKEN_MIN_ASSET_VALUE_USD must be >= 0")
        return v


class PriceSettings(BaseSettings):
    """Market-data aggregator settings."""

    model_config = SettingsConfigDict(env_prefix="PRICE_", extra="ignore")

    api_url: str = Field(
        default="https://api.dexscreener.com/latest/dex/tokens",
        alias="PRICE_API_URL",
        description="Aggregator endpoint keyed by token contract address",
    )
    timeout_seconds: float = Field(
        default=10.0,
        alias="PRICE_TIMEOUT_SECONDS",
        gt=0.0,
        le=120.0,
        description="Bounded wait for a single price request",
    )
    sentinel_usd: Decimal = Field(
        default=Decimal("0.0001"),
        alias="PRICE_SENTINEL_USD",
        description="Price returned when no usable pair is found",
    )
    cache_ttl_seconds: int = Field(
        default=60,
        alias="PRICE_CACHE_TTL_SECONDS",
        ge=1,
        le=86_400,
        description="Redis TTL for resolved prices",
    )

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("PRICE_API_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")

    @field_validator("sentinel_usd")
    @classmethod
    def validate_sentinel(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError("PRICE_SENTINEL_USD must be > 0")
        return v


class SocialSettings(BaseSettings):
    """Social platform API settings."""

    model_config = SettingsConfigDict(env_prefix="SOCIAL_", extra="ignore")

    api_base_url: str = Field(
        default="https://api.twitter.com",
        alias="SOCIAL_API_BASE_URL",
        description="Social platform API host",
    )
    bearer_token: SecretStr | None = Field(
        default=None,
        alias="SOCIAL_BEARER_TOKEN",
        description="App-only bearer token; live scanning is enabled when set",
    )
    timeout_seconds: float = Field(
        default=15.0,
        alias="SOCIAL_TIMEOUT_SECONDS",
        gt=0.0,
        le=120.0,
        description="Bounded wait for a single social API request",
    )
    required_tags: Annotated[tuple[str, ...], NoDecode] = Field(
        default=DEFAULT_REQUIRED_TAGS,
        alias="SOCIAL_REQUIRED_TAGS",
        description="Campaign tags a post must mention to count (comma-separated)",
    )
    fallback_post_count: int = Field(
        default=40,
        alias="SOCIAL_FALLBACK_POST_COUNT",
        ge=0,
        le=1000,
        description="Synthesized posts per scan when live credentials are absent",
    )

    @field_validator("api_base_url")
    @classmethod
    def validate_api_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("SOCIAL_API_BASE_URL must be an HTTP(S) endpoint")
        return v.rstrip("/")

    @field_validator("required_tags", mode="before")
    @classmethod
    def _parse_required_tags(cls, v: object) -> tuple[str, ...]:
        return _split_csv(v, name="SOCIAL_REQUIRED_TAGS")

    @property
    def live_enabled(self) -> bool:
        """Check if live social scanning is possible."""
        return self.bearer_token is not None


class CampaignSettings(BaseSettings):
    """Campaign window and claim supply settings."""

    model_config = SettingsConfigDict(env_prefix="CAMPAIGN_", extra="ignore")

    window_start: datetime = Field(
        default=datetime(2025, 11, 1, 0, 1, tzinfo=UTC),
        alias="CAMPAIGN_WINDOW_START",
        description="Inclusive start of the activity snapshot window",
    )
    window_end: datetime = Field(
        default=datetime(2026, 1, 15, 23, 49, tzinfo=UTC),
        alias="CAMPAIGN_WINDOW_END",
        description="Inclusive end of the activity snapshot window",
    )
    claim_opens_at: datetime | None = Field(
        default=datetime(2026, 1, 16, 2, 0, tzinfo=UTC),
        alias="CAMPAIGN_CLAIM_OPENS_AT",
        description="Claims are refused before this instant",
    )
    supply_platinum: int = Field(default=5, alias="CAMPAIGN_SUPPLY_PLATINUM", ge=0)
    supply_gold: int = Field(default=20, alias="CAMPAIGN_SUPPLY_GOLD", ge=0)
    supply_silver: int = Field(default=475, alias="CAMPAIGN_SUPPLY_SILVER", ge=0)
    supply_bronze: int = Field(default=500, alias="CAMPAIGN_SUPPLY_BRONZE", ge=0)

    @field_validator("window_start", "window_end", "claim_opens_at")
    @classmethod
    def validate_timezone(cls, v: datetime | None) -> datetime | None:
        if v is not None and v.tzinfo is None:
            raise ValueError("Campaign timestamps must be timezone-aware")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> CampaignSettings:
        if self.window_end < self.window_start:
            raise ValueError("CAMPAIGN_WINDOW_END must not precede CAMPAIGN_WINDOW_START")
        return self

    def initial_supply(self) -> dict[str, int]:
        """Initial remaining count per tier name."""
        return {
            "PLATINUM": self.supply_platinum,
            "GOLD": self.supply_gold,
            "SILVER": self.supply_silver,
            "BRONZE": self.supply_bronze,
        }


class ScoringSettings(BaseSettings):
    """Point rates for the score calculator."""

    model_config = SettingsConfigDict(env_prefix="SCORING_", extra="ignore")

    age_rate: Decimal = Field(
        default=Decimal("1.0"),
        alias="SCORING_AGE_RATE",
        description="Points per day of social account age",
    )
    activity_rate: Decimal = Field(
        default=Decimal("10"),
        alias="SCORING_ACTIVITY_RATE",
        description="Points per capped post-day unit",
    )
    asset_rate: Decimal = Field(
        default=Decimal("10"),
        alias="SCORING_ASSET_RATE",
        description="Points per USD of held asset value",
    )
    daily_cap: int = Field(
        default=5,
        alias="SCORING_DAILY_CAP",
        ge=1,
        le=1000,
        description="Maximum counted posts per calendar day",
    )

    @field_validator("age_rate", "activity_rate", "asset_rate")
    @classmethod
    def validate_rate(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Scoring rates must be >= 0")
        return v


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from base_impression.config import get_settings

        settings = get_settings()
        print(settings.chain.rpc_urls)
        print(settings.log_level)
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
        default_factory=lambda: DatabaseSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    chain: ChainSettings = Field(
        default_factory=lambda: ChainSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    token: TokenSettings = Field(
        default_factory=lambda: TokenSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    price: PriceSettings = Field(
        default_factory=lambda: PriceSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    social: SocialSettings = Field(
        default_factory=lambda: SocialSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    campaign: CampaignSettings = Field(
        default_factory=lambda: CampaignSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    scoring: ScoringSettings = Field(
        default_factory=lambda: ScoringSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "redis_url": self._redact_url(self.redis.url) if self.redis.url else "(not set)",
            "chain": {
                "rpc_urls": ", ".join(self.chain.rpc_urls),
                "max_retries": str(self.chain.max_retries),
                "dex_chain_id": self.chain.dex_chain_id,
            },
            "token": {
                "contract_address": self.token.contract_address,
                "min_asset_value_usd": str(self.token.min_asset_value_usd),
            },
            "social": {
                "api_base_url": self.social.api_base_url,
                "bearer_token": "(set)" if self.social.bearer_token else "(not set)",
                "required_tags": ", ".join(self.social.required_tags),
            },
            "campaign": {
                "window_start": self.campaign.window_start.isoformat(),
                "window_end": self.campaign.window_end.isoformat(),
                "claim_opens_at": (
                    self.campaign.claim_opens_at.isoformat()
                    if self.campaign.claim_opens_at
                    else "(not set)"
                ),
            },
            "log_level": self.log_level,
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


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
