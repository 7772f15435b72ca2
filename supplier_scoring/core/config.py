"""Application configuration using pydantic-settings.

Scoring thresholds, cache behaviour and provider timeouts are all read from
the environment (or a ``.env`` file) through the settings object rather than
hard-coded in the pipeline stages. Pipeline functions accept a ``Settings``
instance explicitly and fall back to the module-level one.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Supplier scoring settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Transaction store behind the SQL metrics provider
    database_url: str = "sqlite+aiosqlite:///./data/supplier_scoring.db"

    # Redis - optional, used as the cache backend
    redis_url: Optional[str] = None

    # Server
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # ==========================================================================
    # Cache
    # ==========================================================================
    cache_enabled: bool = True
    cache_ttl_seconds: int = 300
    cache_max_entries: int = 1000
    single_flight: bool = True

    # ==========================================================================
    # Metrics provider boundary
    # ==========================================================================
    metrics_timeout_seconds: float = 30.0
    default_window_days: int = 90
    min_transactions: int = 1

    # ==========================================================================
    # Scoring policy
    # ==========================================================================
    default_weight_profile: str = "balanced"
    neutral_score: float = 50.0
    delivery_grace_days: float = 1.0
    critical_component_floor: float = 30.0
    minimum_volume_floor: float = 1000.0
    trend_rank_threshold: int = 0
    exclude_all_neutral: bool = False
    fulfillment_variant: Literal["auto", "reliability", "order"] = "auto"

    @field_validator("cache_ttl_seconds", "cache_max_entries", "metrics_timeout_seconds", "default_window_days")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator(
        "min_transactions",
        "delivery_grace_days",
        "critical_component_floor",
        "minimum_volume_floor",
        "trend_rank_threshold",
    )
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @field_validator("neutral_score")
    @classmethod
    def validate_neutral_score(cls, v: float) -> float:
        if not 0 <= v <= 100:
            raise ValueError("neutral_score must lie within [0, 100]")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
