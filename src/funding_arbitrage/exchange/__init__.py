"""Exchange integration module for public funding feeds."""

from funding_arbitrage.exchange.client import AsterFundingFeed, HyperliquidFundingFeed
from funding_arbitrage.exchange.models import (
    AsterPremiumIndex,
    AsterTicker24h,
    HyperliquidMetaAndAssetCtxs,
)
from funding_arbitrage.exchange.rate_limiter import RateLimiter, TokenBucket


__all__ = [
    "AsterFundingFeed",
    "AsterPremiumIndex",
    "AsterTicker24h",
    "HyperliquidFundingFeed",
    "HyperliquidMetaAndAssetCtxs",
    "RateLimiter",
    "TokenBucket",
]
