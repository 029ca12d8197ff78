"""
Strategy configuration snapshot.

The configuration is owned by the caller and handed to the engine by value.
Models are frozen so the engine can never mutate the caller's copy; structural
rules that must surface as a ConfigurationError (allocation sums, positive
capital) are enforced by the allocation engine rather than at construction.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from funding_arbitrage.config.constants import (
    DEFAULT_ALLOCATIONS,
    DEFAULT_AVERAGE_APR_WINDOW,
    DEFAULT_MANUAL_REBALANCE_COOLDOWN_S,
    DEFAULT_MIN_POSITION_USD,
    DEFAULT_MIN_SPREAD_THRESHOLD,
    DEFAULT_NUMBER_OF_PAIRS,
    DEFAULT_REBALANCE_INTERVAL_MINUTES,
    DEFAULT_TOTAL_CAPITAL,
)


class MappingConfig(BaseModel):
    """A manual asset mapping supplied by the user."""

    model_config = ConfigDict(frozen=True)

    canonical: str = Field(min_length=1)
    aster_symbol: str = Field(min_length=1)
    hyperliquid_symbol: str = Field(min_length=1)
    multiplier: float = Field(default=1.0, gt=0)

    @field_validator("canonical", mode="after")
    @classmethod
    def normalize_canonical(cls, v: str) -> str:
        """Canonical names are upper-case."""
        return v.strip().upper()


class StrategyConfig(BaseModel):
    """
    Funding arbitrage strategy configuration.

    Percentages are expressed in percent (30.0 = 30%), the spread threshold
    and the APR filters in annualized percent.
    """

    model_config = ConfigDict(frozen=True)

    total_capital: float = Field(
        default=DEFAULT_TOTAL_CAPITAL,
        description="Total USD deployed across all pairs",
    )
    number_of_pairs: int = Field(
        default=DEFAULT_NUMBER_OF_PAIRS,
        description="Number of top-ranked spreads to hold",
    )
    allocations: tuple[float, ...] = Field(
        default=DEFAULT_ALLOCATIONS,
        description="Per-rank allocation percentages, rank 1 first",
    )
    rebalance_interval_minutes: float = Field(
        default=DEFAULT_REBALANCE_INTERVAL_MINUTES,
        gt=0,
        description="Minutes between scheduled rebalances",
    )
    min_spread_threshold: float = Field(
        default=DEFAULT_MIN_SPREAD_THRESHOLD,
        ge=0,
        description="Minimum annualized spread to enter, APR percent",
    )
    min_market_cap: float | None = Field(default=None, ge=0)
    min_liquidity: float | None = Field(
        default=None,
        ge=0,
        description="Minimum 24h notional volume in USD",
    )
    min_average_apr: float | None = Field(
        default=None,
        ge=0,
        description="Minimum average APR percent over the observation window",
    )
    average_apr_window: int = Field(default=DEFAULT_AVERAGE_APR_WINDOW, ge=1)
    excluded_symbols: tuple[str, ...] = ()
    wallet_addresses: dict[str, str] = Field(default_factory=dict)
    manual_mappings: tuple[MappingConfig, ...] = ()
    manual_rebalance_cooldown_seconds: float = Field(
        default=DEFAULT_MANUAL_REBALANCE_COOLDOWN_S,
        ge=0,
    )
    exit_spread_window: int = Field(
        default=1,
        ge=1,
        description="Observations averaged before a negative spread triggers an exit",
    )
    min_position_usd: float = Field(default=DEFAULT_MIN_POSITION_USD, ge=0)
    redistribute_unfilled: bool = Field(
        default=True,
        description="Spread unfilled rank allocations over the filled ranks",
    )

    @field_validator("excluded_symbols", mode="after")
    @classmethod
    def normalize_exclusions(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Exclusions are matched on upper-case canonical names."""
        return tuple(s.strip().upper() for s in v if s.strip())

    @property
    def rebalance_interval_seconds(self) -> float:
        """Rebalance interval in seconds."""
        return self.rebalance_interval_minutes * 60.0

    @property
    def active_allocations(self) -> tuple[float, ...]:
        """Allocation entries for the configured number of pairs."""
        return self.allocations[: self.number_of_pairs]

    def is_excluded(self, canonical: str) -> bool:
        """Check if a canonical asset is excluded."""
        return canonical.upper() in self.excluded_symbols
