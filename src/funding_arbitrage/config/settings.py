"""
Application settings with environment variable support.

Uses Pydantic Settings for type-safe configuration with automatic
environment variable loading and validation. The strategy block is
loaded from ``STRATEGY__*`` variables.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from funding_arbitrage.config.constants import (
    ASTER_REST_URL,
    DEFAULT_CLOSE_RETRY_ATTEMPTS,
    DEFAULT_CLOSE_RETRY_DELAY_S,
    DEFAULT_MARKET_DATA_MAX_AGE_S,
    DEFAULT_MONITOR_INTERVAL_S,
    DEFAULT_PAPER_BALANCE,
    DEFAULT_RATE_REFRESH_INTERVAL_S,
    HYPERLIQUID_REST_URL,
)
from funding_arbitrage.config.strategy import StrategyConfig


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Exchange Endpoints
    # =========================================================================

    aster_rest_url: str = Field(
        default=ASTER_REST_URL,
        description="AsterDEX futures REST base URL",
    )
    hyperliquid_rest_url: str = Field(
        default=HYPERLIQUID_REST_URL,
        description="HyperLiquid REST base URL",
    )
    request_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=60,
        description="Timeout for public market data requests",
    )

    # =========================================================================
    # Operation Mode
    # =========================================================================

    paper_mode: bool = Field(
        default=True,
        description="Fill orders against a paper exchange instead of real venues",
    )

    demo_mode: bool = Field(
        default=False,
        description="Drive the strategy from a simulated funding market",
    )

    paper_balance: float = Field(
        default=DEFAULT_PAPER_BALANCE,
        gt=0,
        description="Starting paper balance per exchange in USD",
    )

    auto_start: bool = Field(
        default=False,
        description="Start the strategy immediately after launch",
    )

    # =========================================================================
    # Scheduling
    # =========================================================================

    monitor_interval_seconds: float = Field(
        default=DEFAULT_MONITOR_INTERVAL_S,
        gt=0,
        description="Interval between position ticks and negative-spread checks",
    )

    rate_refresh_interval_seconds: float = Field(
        default=DEFAULT_RATE_REFRESH_INTERVAL_S,
        gt=0,
        description="Interval between funding feed polls",
    )

    market_data_max_age_seconds: float = Field(
        default=DEFAULT_MARKET_DATA_MAX_AGE_S,
        gt=0,
        description="Age after which a funding snapshot is considered stale",
    )

    # =========================================================================
    # Execution
    # =========================================================================

    close_retry_attempts: int = Field(
        default=DEFAULT_CLOSE_RETRY_ATTEMPTS,
        ge=0,
        le=10,
        description="Retries for a closing leg that failed",
    )

    close_retry_delay_seconds: float = Field(
        default=DEFAULT_CLOSE_RETRY_DELAY_S,
        ge=0,
        le=60,
        description="Delay between closing-leg retries",
    )

    # =========================================================================
    # Persistence & Telemetry
    # =========================================================================

    state_file: Path | None = Field(
        default=Path("data/strategy_state.json"),
        description="Strategy state file, unset for in-memory state",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )

    log_file: Path | None = Field(default=None, description="Optional log file")

    # =========================================================================
    # Control API
    # =========================================================================

    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8000, ge=1, le=65535)

    use_uvloop: bool = Field(
        default=True,
        description="Use uvloop for improved async performance",
    )

    # =========================================================================
    # Strategy
    # =========================================================================

    strategy: StrategyConfig = Field(default_factory=StrategyConfig)

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("aster_rest_url", "hyperliquid_rest_url", mode="after")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Endpoints are joined onto base URLs without a trailing slash."""
        return v.rstrip("/")

    @field_validator("paper_mode", mode="after")
    @classmethod
    def warn_live_mode(cls, v: bool) -> bool:
        """Warn when live order routing is requested."""
        if not v:
            import warnings

            warnings.warn(
                "Live mode requires authenticated ExchangeClient implementations",
                stacklevel=2,
            )
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are loaded only once.
    Clear cache with `get_settings.cache_clear()` if needed.
    """
    return Settings()
