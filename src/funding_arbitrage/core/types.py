"""
Type definitions for the funding arbitrage engine.

This module contains all dataclasses, enums and Protocol definitions used
throughout the application. Market data types are frozen so a computed
spread can never be mutated in place; positions are the only mutable state
and are owned by the position manager.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from funding_arbitrage.config.constants import ASTER_PAYMENTS_PER_DAY, HYPERLIQUID_PAYMENTS_PER_DAY
from funding_arbitrage.utils.math import annualize, hourly_to_annual, to_hourly


# =============================================================================
# Enums
# =============================================================================


class ExchangeName(str, Enum):
    """Supported perpetual venues."""

    ASTER = "aster"
    HYPERLIQUID = "hyperliquid"

    @property
    def payments_per_day(self) -> int:
        """Funding settlements per day on this venue."""
        return FUNDING_PAYMENTS_PER_DAY[self]


FUNDING_PAYMENTS_PER_DAY: dict[ExchangeName, int] = {
    ExchangeName.ASTER: ASTER_PAYMENTS_PER_DAY,
    ExchangeName.HYPERLIQUID: HYPERLIQUID_PAYMENTS_PER_DAY,
}


class OrderSide(str, Enum):
    """Order side enumeration."""

    BUY = "BUY"
    SELL = "SELL"

    @property
    def opposite(self) -> "OrderSide":
        """Side that offsets this one."""
        return OrderSide.SELL if self is OrderSide.BUY else OrderSide.BUY


class OrderType(str, Enum):
    """Order type enumeration."""

    LIMIT = "LIMIT"
    MARKET = "MARKET"


class PositionStatus(str, Enum):
    """Lifecycle of a delta-neutral pair."""

    PENDING = "pending"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


class ExitReason(str, Enum):
    """Why a position was closed."""

    NEGATIVE_SPREAD = "negative_spread"
    REBALANCE = "rebalance"
    MANUAL = "manual"
    STOP = "stop"


class ExecutionStatus(str, Enum):
    """Outcome of a two-leg execution."""

    SUCCESS = "success"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"
    PARTIAL = "partial"


class RebalanceTrigger(str, Enum):
    """What started a rebalance."""

    START = "start"
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class NotificationLevel(str, Enum):
    """Severity of a strategy notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


# =============================================================================
# Market Data Types
# =============================================================================


@dataclass(slots=True, frozen=True)
class FundingRate:
    """
    Latest funding snapshot for one symbol on one exchange.

    ``rate`` is the venue's native per-period rate as a fraction.
    """

    exchange: ExchangeName
    symbol: str
    rate: float
    mark_price: float
    next_funding_time_ms: int = 0
    timestamp_ms: int = 0
    payments_per_day: int = 0

    def __post_init__(self) -> None:
        if self.payments_per_day <= 0:
            object.__setattr__(self, "payments_per_day", self.exchange.payments_per_day)

    @property
    def hourly_rate(self) -> float:
        """Rate normalized to a one-hour period."""
        return to_hourly(self.rate, self.payments_per_day)

    @property
    def daily_rate(self) -> float:
        """Funding paid per day."""
        return self.rate * self.payments_per_day

    @property
    def annual_rate(self) -> float:
        """Annualized funding rate."""
        return annualize(self.rate, self.payments_per_day)


@dataclass(slots=True, frozen=True)
class AssetMapping:
    """
    Curated mapping of a canonical asset to per-exchange symbols.

    ``multiplier`` is the Aster contract price divided by the HyperLiquid
    contract price (1000 when only one side lists the 1000x contract).
    """

    canonical: str
    aster_symbol: str
    hyperliquid_symbol: str
    multiplier: float = 1.0
    market_cap: float | None = None

    def symbol_for(self, exchange: ExchangeName) -> str:
        """Trading symbol of this asset on an exchange."""
        if exchange is ExchangeName.ASTER:
            return self.aster_symbol
        return self.hyperliquid_symbol


@dataclass(slots=True, frozen=True)
class FundingSpread:
    """
    Funding differential between two exchanges for one asset.

    ``spread`` and ``annual_spread`` are signed relative to the
    (exchange_a, exchange_b) order; the long/short fields carry the
    direction that collects the differential.
    """

    canonical: str
    exchange_a: ExchangeName
    exchange_b: ExchangeName
    rate_a: FundingRate
    rate_b: FundingRate
    spread: float
    annual_spread: float
    long_exchange: ExchangeName
    short_exchange: ExchangeName
    long_symbol: str
    short_symbol: str
    long_rate: float
    short_rate: float
    long_mark_price: float
    short_mark_price: float
    timestamp_ms: int = 0

    @property
    def apr_pct(self) -> float:
        """Absolute annualized spread in percent."""
        return abs(self.annual_spread) * 100.0

    @property
    def favorable_spread(self) -> float:
        """Hourly spread collected by the long/short direction."""
        return abs(self.spread)

    def rate_for(self, exchange: ExchangeName) -> FundingRate:
        """Funding snapshot of one side."""
        return self.rate_a if exchange is self.exchange_a else self.rate_b


@dataclass(slots=True, frozen=True)
class MarketStats:
    """Eligibility metrics for a canonical asset."""

    canonical: str
    market_cap: float | None = None
    volume_24h: float | None = None


@dataclass(slots=True, frozen=True)
class EligibilityFailure:
    """A candidate filtered out of selection, with the reason."""

    canonical: str
    reason: str


@dataclass(slots=True)
class SelectionResult:
    """Output of the ranked selector."""

    selected: list[FundingSpread]
    rejected: list[EligibilityFailure] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def canonicals(self) -> list[str]:
        """Selected canonical names in rank order."""
        return [s.canonical for s in self.selected]


@dataclass(slots=True, frozen=True)
class Allocation:
    """Capital assigned to one selected rank."""

    rank: int
    canonical: str
    allocation_pct: float
    size_usd: float

    @property
    def long_size(self) -> float:
        """USD on the long leg."""
        return self.size_usd / 2

    @property
    def short_size(self) -> float:
        """USD on the short leg."""
        return self.size_usd / 2


# =============================================================================
# Execution Types
# =============================================================================


@dataclass(slots=True)
class OrderResult:
    """Result reported by an exchange client for a single order."""

    success: bool
    order_id: str | None = None
    price: float | None = None
    size: float = 0.0
    filled: bool = False
    error: str = ""

    @property
    def is_filled(self) -> bool:
        """Check if the order was accepted and filled."""
        return self.success and self.filled


@dataclass(slots=True)
class LegResult:
    """Result of executing one leg of a pair."""

    exchange: ExchangeName
    symbol: str
    side: OrderSide
    size_usd: float
    order: OrderResult | None = None
    error_message: str = ""
    attempts: int = 1

    @property
    def is_filled(self) -> bool:
        """Check if leg was filled."""
        return self.order is not None and self.order.is_filled

    @property
    def fill_price(self) -> float | None:
        """Executed price, if reported."""
        return self.order.price if self.order else None

    def describe(self) -> str:
        """Human-readable leg identifier for reconciliation."""
        return f"{self.exchange.value} {self.symbol} {self.side.value} ${self.size_usd:.2f}"


@dataclass(slots=True, frozen=True)
class ResidualExposure:
    """One-sided exposure that needs manual reconciliation."""

    exchange: ExchangeName
    symbol: str
    side: OrderSide
    size_usd: float
    reason: str
    timestamp_ms: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        return {
            "exchange": self.exchange.value,
            "symbol": self.symbol,
            "side": self.side.value,
            "size_usd": self.size_usd,
            "reason": self.reason,
            "timestamp_ms": self.timestamp_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResidualExposure":
        """Build from a persisted dict."""
        return cls(
            exchange=ExchangeName(data["exchange"]),
            symbol=data["symbol"],
            side=OrderSide(data["side"]),
            size_usd=float(data["size_usd"]),
            reason=data["reason"],
            timestamp_ms=int(data["timestamp_ms"]),
        )


@dataclass(slots=True)
class PairExecutionResult:
    """
    Result of opening or closing a long/short pair.

    A leg is None when a close only had to address the other leg.
    """

    status: ExecutionStatus
    long_leg: LegResult | None
    short_leg: LegResult | None
    residuals: list[ResidualExposure] = field(default_factory=list)
    error_message: str = ""
    start_timestamp_ms: int = 0
    end_timestamp_ms: int = 0

    @property
    def is_success(self) -> bool:
        """Check if both legs succeeded."""
        return self.status is ExecutionStatus.SUCCESS

    @property
    def latency_ms(self) -> int:
        """Time spent executing the pair."""
        return self.end_timestamp_ms - self.start_timestamp_ms

    @property
    def failed_legs(self) -> list[LegResult]:
        """Legs that were attempted and not filled."""
        return [
            leg for leg in (self.long_leg, self.short_leg)
            if leg is not None and not leg.is_filled
        ]


# =============================================================================
# Position Types
# =============================================================================


@dataclass(slots=True)
class StrategyPosition:
    """
    Delta-neutral pair held by the strategy.

    ``spread`` is oriented so that positive means the pair collects funding.
    """

    id: str
    canonical: str
    rank: int
    allocation_pct: float

    long_exchange: ExchangeName
    long_symbol: str
    long_size: float
    long_entry_price: float
    long_rate: float
    long_payments_per_day: int

    short_exchange: ExchangeName
    short_symbol: str
    short_size: float
    short_entry_price: float
    short_rate: float
    short_payments_per_day: int

    entry_spread: float
    spread: float
    entry_time_ms: int

    long_current_price: float = 0.0
    short_current_price: float = 0.0
    last_accrual_ms: int = 0
    exit_time_ms: int | None = None
    funding_earned: float = 0.0
    pnl: float = 0.0
    status: PositionStatus = PositionStatus.PENDING
    exit_reason: ExitReason | None = None
    long_open: bool = True
    short_open: bool = True
    recent_spreads: list[float] = field(default_factory=list)
    last_error: str = ""

    def __post_init__(self) -> None:
        if not self.long_current_price:
            self.long_current_price = self.long_entry_price
        if not self.short_current_price:
            self.short_current_price = self.short_entry_price
        if not self.last_accrual_ms:
            self.last_accrual_ms = self.entry_time_ms

    @property
    def notional(self) -> float:
        """Total USD committed across both legs."""
        return self.long_size + self.short_size

    @property
    def long_hourly_rate(self) -> float:
        """Long leg funding rate per hour."""
        return to_hourly(self.long_rate, self.long_payments_per_day)

    @property
    def short_hourly_rate(self) -> float:
        """Short leg funding rate per hour."""
        return to_hourly(self.short_rate, self.short_payments_per_day)

    @property
    def annual_spread(self) -> float:
        """Current favorable spread annualized."""
        return hourly_to_annual(self.spread)

    @property
    def long_price_pnl(self) -> float:
        """Mark-to-market P&L of the long leg."""
        if self.long_entry_price <= 0:
            return 0.0
        return (
            (self.long_current_price - self.long_entry_price) / self.long_entry_price
        ) * self.long_size

    @property
    def short_price_pnl(self) -> float:
        """Mark-to-market P&L of the short leg."""
        if self.short_entry_price <= 0:
            return 0.0
        return (
            (self.short_entry_price - self.short_current_price) / self.short_entry_price
        ) * self.short_size

    @property
    def smoothed_spread(self) -> float:
        """Mean of the recent spread observations."""
        if not self.recent_spreads:
            return self.spread
        return sum(self.recent_spreads) / len(self.recent_spreads)

    @property
    def is_open(self) -> bool:
        """Check if the pair is fully open."""
        return self.status is PositionStatus.OPEN

    @property
    def has_open_legs(self) -> bool:
        """Check if any leg still carries exposure."""
        return self.long_open or self.short_open

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        return {
            "id": self.id,
            "canonical": self.canonical,
            "rank": self.rank,
            "allocation_pct": self.allocation_pct,
            "long_exchange": self.long_exchange.value,
            "long_symbol": self.long_symbol,
            "long_size": self.long_size,
            "long_entry_price": self.long_entry_price,
            "long_current_price": self.long_current_price,
            "long_rate": self.long_rate,
            "long_payments_per_day": self.long_payments_per_day,
            "short_exchange": self.short_exchange.value,
            "short_symbol": self.short_symbol,
            "short_size": self.short_size,
            "short_entry_price": self.short_entry_price,
            "short_current_price": self.short_current_price,
            "short_rate": self.short_rate,
            "short_payments_per_day": self.short_payments_per_day,
            "entry_spread": self.entry_spread,
            "spread": self.spread,
            "entry_time_ms": self.entry_time_ms,
            "last_accrual_ms": self.last_accrual_ms,
            "exit_time_ms": self.exit_time_ms,
            "funding_earned": self.funding_earned,
            "pnl": self.pnl,
            "status": self.status.value,
            "exit_reason": self.exit_reason.value if self.exit_reason else None,
            "long_open": self.long_open,
            "short_open": self.short_open,
            "recent_spreads": list(self.recent_spreads),
            "last_error": self.last_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StrategyPosition":
        """Build from a persisted dict."""
        exit_reason = data.get("exit_reason")
        return cls(
            id=data["id"],
            canonical=data["canonical"],
            rank=int(data["rank"]),
            allocation_pct=float(data["allocation_pct"]),
            long_exchange=ExchangeName(data["long_exchange"]),
            long_symbol=data["long_symbol"],
            long_size=float(data["long_size"]),
            long_entry_price=float(data["long_entry_price"]),
            long_current_price=float(data.get("long_current_price", 0.0)),
            long_rate=float(data["long_rate"]),
            long_payments_per_day=int(data["long_payments_per_day"]),
            short_exchange=ExchangeName(data["short_exchange"]),
            short_symbol=data["short_symbol"],
            short_size=float(data["short_size"]),
            short_entry_price=float(data["short_entry_price"]),
            short_current_price=float(data.get("short_current_price", 0.0)),
            short_rate=float(data["short_rate"]),
            short_payments_per_day=int(data["short_payments_per_day"]),
            entry_spread=float(data["entry_spread"]),
            spread=float(data["spread"]),
            entry_time_ms=int(data["entry_time_ms"]),
            last_accrual_ms=int(data.get("last_accrual_ms", 0)),
            exit_time_ms=data.get("exit_time_ms"),
            funding_earned=float(data.get("funding_earned", 0.0)),
            pnl=float(data.get("pnl", 0.0)),
            status=PositionStatus(data.get("status", PositionStatus.OPEN.value)),
            exit_reason=ExitReason(exit_reason) if exit_reason else None,
            long_open=bool(data.get("long_open", True)),
            short_open=bool(data.get("short_open", True)),
            recent_spreads=[float(s) for s in data.get("recent_spreads", [])],
            last_error=data.get("last_error", ""),
        )


@dataclass(slots=True)
class RebalanceEvent:
    """Record of one executed rebalance."""

    timestamp_ms: int
    trigger: RebalanceTrigger
    entered: list[str] = field(default_factory=list)
    exited: list[str] = field(default_factory=list)
    capital_deployed: float = 0.0
    spreads: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        return {
            "timestamp_ms": self.timestamp_ms,
            "trigger": self.trigger.value,
            "entered": list(self.entered),
            "exited": list(self.exited),
            "capital_deployed": self.capital_deployed,
            "spreads": list(self.spreads),
            "warnings": list(self.warnings),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RebalanceEvent":
        """Build from a persisted dict."""
        return cls(
            timestamp_ms=int(data["timestamp_ms"]),
            trigger=RebalanceTrigger(data["trigger"]),
            entered=list(data.get("entered", [])),
            exited=list(data.get("exited", [])),
            capital_deployed=float(data.get("capital_deployed", 0.0)),
            spreads=list(data.get("spreads", [])),
            warnings=list(data.get("warnings", [])),
        )


@dataclass(slots=True)
class RebalanceResult:
    """Outcome of a rebalance request."""

    trigger: RebalanceTrigger
    executed: bool
    skipped_reason: str = ""
    entered: list[str] = field(default_factory=list)
    exited: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    event: RebalanceEvent | None = None

    @property
    def orders_placed(self) -> bool:
        """Check if the rebalance touched any position."""
        return bool(self.entered or self.exited)


@dataclass(slots=True)
class StrategyStatus:
    """Read-only snapshot of the strategy for display."""

    enabled: bool
    total_capital: float
    allocated_capital: float
    available_capital: float
    open_positions: list[StrategyPosition]
    total_pnl: float
    total_funding_earned: float
    last_rebalance_ms: int
    next_rebalance_ms: int | None
    residual_exposures: list[ResidualExposure] = field(default_factory=list)
    rebalance_in_progress: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dict."""
        return {
            "enabled": self.enabled,
            "total_capital": self.total_capital,
            "allocated_capital": self.allocated_capital,
            "available_capital": self.available_capital,
            "open_positions": [p.to_dict() for p in self.open_positions],
            "total_pnl": self.total_pnl,
            "total_funding_earned": self.total_funding_earned,
            "last_rebalance_ms": self.last_rebalance_ms,
            "next_rebalance_ms": self.next_rebalance_ms,
            "residual_exposures": [r.to_dict() for r in self.residual_exposures],
            "rebalance_in_progress": self.rebalance_in_progress,
        }


def spread_to_dict(spread: FundingSpread) -> dict[str, Any]:
    """Convert a spread to a JSON-friendly dict."""
    return {
        "canonical": spread.canonical,
        "spread": spread.spread,
        "annual_spread": spread.annual_spread,
        "apr_pct": spread.apr_pct,
        "long_exchange": spread.long_exchange.value,
        "short_exchange": spread.short_exchange.value,
        "long_symbol": spread.long_symbol,
        "short_symbol": spread.short_symbol,
        "long_rate": spread.long_rate,
        "short_rate": spread.short_rate,
        "long_mark_price": spread.long_mark_price,
        "short_mark_price": spread.short_mark_price,
        "timestamp_ms": spread.timestamp_ms,
    }


# =============================================================================
# Protocols (Interfaces)
# =============================================================================


class ExchangeClient(Protocol):
    """Order placement and balance contract consumed by the engine."""

    @property
    def name(self) -> ExchangeName:
        """Exchange served by this client."""
        ...

    async def place_order(
        self,
        symbol: str,
        side: OrderSide,
        size_usd: float,
        price: float | None = None,
        order_type: OrderType = OrderType.MARKET,
        reduce_only: bool = False,
    ) -> OrderResult:
        """Place an order sized in USD."""
        ...

    async def get_available_balance(self) -> float:
        """Available USD-equivalent balance."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


class StateStore(Protocol):
    """Persistence contract for strategy state."""

    def load(self) -> dict[str, Any] | None:
        """Load the last saved state, if any."""
        ...

    def save(self, state: dict[str, Any]) -> None:
        """Persist a state snapshot."""
        ...


class FundingFeed(Protocol):
    """Source of funding snapshots for one exchange."""

    @property
    def exchange(self) -> ExchangeName:
        """Exchange served by this feed."""
        ...

    async def fetch_rates(self) -> list[FundingRate]:
        """Latest funding snapshot for every listed symbol."""
        ...

    async def fetch_volumes(self) -> dict[str, float]:
        """24h notional volume in USD keyed by symbol."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...
