"""
Strategy constants and configuration values.

This module contains all hardcoded values used throughout the funding engine.
Values are organized by category for easy maintenance and auditing.
"""

from typing import Final


# =============================================================================
# Exchange Endpoints
# =============================================================================

ASTER_REST_URL: Final[str] = "https://fapi.asterdex.com"
HYPERLIQUID_REST_URL: Final[str] = "https://api.hyperliquid.xyz"

# API Endpoints
ENDPOINT_ASTER_PREMIUM_INDEX: Final[str] = "/fapi/v1/premiumIndex"
ENDPOINT_ASTER_TICKER_24H: Final[str] = "/fapi/v1/ticker/24hr"
ENDPOINT_HYPERLIQUID_INFO: Final[str] = "/info"


# =============================================================================
# Funding Schedules
# =============================================================================

# Aster settles the displayed 8h rate three times a day
ASTER_PAYMENTS_PER_DAY: Final[int] = 3

# HyperLiquid settles the hourly rate every hour
HYPERLIQUID_PAYMENTS_PER_DAY: Final[int] = 24

DAYS_PER_YEAR: Final[int] = 365
HOURS_PER_DAY: Final[int] = 24


# =============================================================================
# Rate Limiting
# =============================================================================

# Aster weight budget per minute (80% of the 2400 published limit)
ASTER_WEIGHT_PER_MINUTE: Final[int] = 1920
ASTER_REQUESTS_PER_SECOND: Final[int] = 10

# HyperLiquid info endpoint budget
HYPERLIQUID_REQUESTS_PER_SECOND: Final[int] = 16
HYPERLIQUID_WEIGHT_PER_MINUTE: Final[int] = 1200

# Endpoint weights
ASTER_PREMIUM_INDEX_WEIGHT: Final[int] = 10
ASTER_TICKER_24H_WEIGHT: Final[int] = 40
HYPERLIQUID_META_CTX_WEIGHT: Final[int] = 20


# =============================================================================
# Strategy Defaults
# =============================================================================

DEFAULT_TOTAL_CAPITAL: Final[float] = 10_000.0
DEFAULT_NUMBER_OF_PAIRS: Final[int] = 5
DEFAULT_ALLOCATIONS: Final[tuple[float, ...]] = (30.0, 30.0, 20.0, 10.0, 10.0)

# Four hours between scheduled rebalances
DEFAULT_REBALANCE_INTERVAL_MINUTES: Final[float] = 240.0

# Minimum annualized spread to enter, in APR percent
DEFAULT_MIN_SPREAD_THRESHOLD: Final[float] = 10.0

DEFAULT_MANUAL_REBALANCE_COOLDOWN_S: Final[float] = 60.0
DEFAULT_MIN_POSITION_USD: Final[float] = 10.0
DEFAULT_AVERAGE_APR_WINDOW: Final[int] = 24

# Allowed deviation of the allocation table from 100%
ALLOCATION_TOLERANCE: Final[float] = 0.01

# Oversize, in percent of total capital, before a held position is re-entered smaller
RESIZE_TOLERANCE_PCT: Final[float] = 1.0


# =============================================================================
# Position Management
# =============================================================================

# Closed positions kept in history
MAX_CLOSED_POSITIONS: Final[int] = 50

# Rebalance events kept in history
MAX_REBALANCE_HISTORY: Final[int] = 100

DEFAULT_CLOSE_RETRY_ATTEMPTS: Final[int] = 3
DEFAULT_CLOSE_RETRY_DELAY_S: Final[float] = 1.0

DEFAULT_MONITOR_INTERVAL_S: Final[float] = 10.0
DEFAULT_RATE_REFRESH_INTERVAL_S: Final[float] = 30.0

# Rates older than this are treated as unavailable
DEFAULT_MARKET_DATA_MAX_AGE_S: Final[float] = 300.0


# =============================================================================
# Asset Mapping
# =============================================================================

# Normalized mark prices must agree within 15% for a mapping to be trusted
PRICE_MATCH_TOLERANCE: Final[float] = 0.15

# Contract-size multipliers recognized by price-ratio detection
KNOWN_MULTIPLIERS: Final[tuple[int, ...]] = (1, 10, 100, 1000, 10_000, 100_000, 1_000_000)

# Suffixes and prefixes stripped when suggesting a canonical name
QUOTE_SUFFIXES: Final[tuple[str, ...]] = ("USDT", "USDC", "USD", "PERP")
CONTRACT_PREFIXES: Final[tuple[str, ...]] = ("1000000", "1000", "k")


# =============================================================================
# Paper Trading
# =============================================================================

DEFAULT_PAPER_BALANCE: Final[float] = 100_000.0


# =============================================================================
# Logging & Telemetry
# =============================================================================

LOG_FORMAT: Final[str] = "%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

# Status panel refresh interval (seconds)
STATUS_REPORT_INTERVAL: Final[float] = 5.0

# Maximum log queue size
MAX_LOG_QUEUE_SIZE: Final[int] = 10_000

# Notifications kept for the execution log view
MAX_EVENT_LOG_SIZE: Final[int] = 500
