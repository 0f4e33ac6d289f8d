"""Pydantic configuration models for the Discogs gateway."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class LogLevel(StrEnum):
    """Valid logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ResultType(StrEnum):
    """Upstream resource kinds a lookup can be pinned to."""

    MASTER = "master"
    RELEASE = "release"


class DiscogsConfig(BaseModel):
    """Upstream API connection settings."""

    token: str = ""
    base_url: str = "https://api.discogs.com"
    user_agent: str = "Crategate/1.0 +https://github.com/crategate/crategate"
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        """Store the base URL without a trailing slash."""
        return value.rstrip("/")


class RateLimitConfig(BaseModel):
    """Rolling window rate limit for upstream calls.

    Discogs publishes 60 requests per minute for authenticated clients;
    the default stays below that to leave room for clock drift.
    """

    requests_per_window: int = Field(default=55, ge=1)
    window_seconds: float = Field(default=60.0, gt=0)
    safety_margin_seconds: float = Field(default=0.025, ge=0)


class RetryConfig(BaseModel):
    """Throttle retry settings."""

    default_retry_after_seconds: float = Field(default=60.0, ge=0)


class CacheConfig(BaseModel):
    """Per-lookup response cache settings."""

    release_ttl_seconds: float = Field(default=86400.0, gt=0)
    artists_ttl_seconds: float = Field(default=86400.0, gt=0)
    barcode_ttl_seconds: float = Field(default=3600.0, gt=0)
    search_ttl_seconds: float = Field(default=600.0, gt=0)
    max_entries: int = Field(default=5000, ge=1)
    sweep_interval_seconds: float = Field(default=300.0, gt=0)


class ScoringWeights(BaseModel):
    """Additive bonuses applied by the search ranker."""

    catalog_exact: int = Field(default=20000, ge=0)
    title_exact: int = Field(default=15000, ge=0)
    title_partial: int = Field(default=2000, ge=0)
    artist_exact: int = Field(default=10000, ge=0)
    artist_partial: int = Field(default=5000, ge=0)


class SearchConfig(BaseModel):
    """Free-text search settings."""

    max_results: int = Field(default=40, ge=1)
    upstream_per_page: int = Field(default=100, ge=1, le=100)
    weights: ScoringWeights = Field(default_factory=ScoringWeights)
    wildcard_artists: list[str] = Field(default_factory=lambda: ["various", "va"])


class BarcodeConfig(BaseModel):
    """Barcode lookup settings."""

    per_page: int = Field(default=5, ge=1, le=100)
    consult_shared_store: bool = False


class SharedDetailsConfig(BaseModel):
    """Durable shared album details store."""

    store_file: str = "cache/album_details.json"


class ServerConfig(BaseModel):
    """Inbound HTTP server settings."""

    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    logs_base_dir: str = "logs"
    main_log_file: str = "main/main.log"
    console_level: LogLevel = LogLevel.INFO
    file_level: LogLevel = LogLevel.DEBUG

    @field_validator("console_level", "file_level", mode="before")
    @classmethod
    def upper_level(cls, value: object) -> object:
        """Accept log level names in any case."""
        return value.upper() if isinstance(value, str) else value


class AppConfig(BaseModel):
    """Main application configuration model."""

    discogs: DiscogsConfig = Field(default_factory=DiscogsConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    barcode: BarcodeConfig = Field(default_factory=BarcodeConfig)
    shared_details: SharedDetailsConfig = Field(default_factory=SharedDetailsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
