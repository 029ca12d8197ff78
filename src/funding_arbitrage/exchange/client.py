"""
Async public funding feeds for AsterDEX and HyperLiquid.

Each feed owns one aiohttp session with connection pooling, parses bodies
with orjson, validates them against pydantic schemas and converts them to
FundingRate snapshots. Only unauthenticated market data endpoints are
used.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import aiohttp
import orjson
from pydantic import BaseModel, ValidationError

from funding_arbitrage.config.constants import (
    ASTER_PREMIUM_INDEX_WEIGHT,
    ASTER_REQUESTS_PER_SECOND,
    ASTER_REST_URL,
    ASTER_TICKER_24H_WEIGHT,
    ASTER_WEIGHT_PER_MINUTE,
    ENDPOINT_ASTER_PREMIUM_INDEX,
    ENDPOINT_ASTER_TICKER_24H,
    ENDPOINT_HYPERLIQUID_INFO,
    HYPERLIQUID_META_CTX_WEIGHT,
    HYPERLIQUID_REQUESTS_PER_SECOND,
    HYPERLIQUID_REST_URL,
    HYPERLIQUID_WEIGHT_PER_MINUTE,
)
from funding_arbitrage.core.errors import ExchangeResponseError
from funding_arbitrage.core.types import ExchangeName, FundingRate
from funding_arbitrage.exchange.models import (
    AsterPremiumIndexList,
    AsterTicker24hList,
    HyperliquidMetaAndAssetCtxs,
)
from funding_arbitrage.exchange.rate_limiter import RateLimiter
from funding_arbitrage.utils.time import get_timestamp_ms


logger = logging.getLogger(__name__)


class _JsonFeed:
    """
    Shared HTTP plumbing for public JSON endpoints.

    Features:
    - Single session with connection pooling
    - Keep-alive for reduced latency
    - orjson for fast JSON parsing
    - Integrated rate limiting
    """

    def __init__(
        self,
        base_url: str,
        rate_limiter: RateLimiter,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._rate_limiter = rate_limiter
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(
                limit=20,
                limit_per_host=10,
                keepalive_timeout=30,
                enable_cleanup_closed=True,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=self._timeout,
                headers={"Content-Type": "application/json"},
                json_serialize=lambda x: orjson.dumps(x).decode(),
            )
        return self._session

    async def close(self) -> None:
        """Close the feed session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    @asynccontextmanager
    async def _request_context(self) -> AsyncIterator[aiohttp.ClientSession]:
        """Context manager for making requests."""
        session = await self._get_session()
        try:
            yield session
        except aiohttp.ClientError as e:
            raise ExchangeResponseError(f"Network error: {e}") from e
        except TimeoutError as e:
            raise ExchangeResponseError("Request timed out") from e

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
        weight: int = 1,
    ) -> Any:
        """
        Make an API request and return the decoded body.

        Raises:
            ExchangeResponseError: On network errors, HTTP errors or invalid JSON.
        """
        await self._rate_limiter.acquire(weight)
        url = f"{self._base_url}{endpoint}"

        async with self._request_context() as session:
            if method == "GET":
                async with session.get(url, params=params) as response:
                    return await self._handle_response(response)
            elif method == "POST":
                async with session.post(url, json=body) as response:
                    return await self._handle_response(response)
            else:
                raise ExchangeResponseError(f"Unsupported method: {method}")

    async def _handle_response(self, response: aiohttp.ClientResponse) -> Any:
        """Parse and validate response."""
        raw = await response.read()

        if response.status >= 400:
            raise ExchangeResponseError(
                f"HTTP {response.status} from {response.url.path}: {raw[:200]!r}",
                status=response.status,
            )

        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise ExchangeResponseError(f"Invalid JSON response: {e}") from e

    @staticmethod
    def _parse(model: type[BaseModel], data: Any, what: str) -> Any:
        """Validate a decoded body against its schema."""
        try:
            return model.model_validate(data)
        except ValidationError as e:
            raise ExchangeResponseError(
                f"Unexpected {what} response: {e.error_count()} schema errors, first: "
                f"{e.errors()[0]['loc']} {e.errors()[0]['msg']}"
            ) from e


class AsterFundingFeed(_JsonFeed):
    """AsterDEX futures funding feed (8-hourly funding)."""

    def __init__(
        self,
        base_url: str = ASTER_REST_URL,
        rate_limiter: RateLimiter | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        """
        Initialize the Aster feed.

        Args:
            base_url: Futures REST base URL.
            rate_limiter: Optional rate limiter instance.
            timeout_seconds: Total request timeout.
        """
        super().__init__(
            base_url,
            rate_limiter or RateLimiter(ASTER_REQUESTS_PER_SECOND, ASTER_WEIGHT_PER_MINUTE),
            timeout_seconds,
        )

    @property
    def exchange(self) -> ExchangeName:
        return ExchangeName.ASTER

    async def fetch_rates(self) -> list[FundingRate]:
        """Funding snapshot for every Aster perpetual."""
        data = await self._request(
            "GET", ENDPOINT_ASTER_PREMIUM_INDEX, weight=ASTER_PREMIUM_INDEX_WEIGHT
        )
        entries = self._parse(AsterPremiumIndexList, data, "premiumIndex").root
        now = get_timestamp_ms()

        rates = []
        for entry in entries:
            if entry.mark_price <= 0:
                logger.debug(f"Skipping {entry.symbol}: no mark price")
                continue
            rates.append(
                FundingRate(
                    exchange=ExchangeName.ASTER,
                    symbol=entry.symbol,
                    rate=entry.last_funding_rate,
                    mark_price=entry.mark_price,
                    next_funding_time_ms=entry.next_funding_time,
                    timestamp_ms=entry.time or now,
                )
            )
        return rates

    async def fetch_volumes(self) -> dict[str, float]:
        """24h quote volume per Aster symbol."""
        data = await self._request("GET", ENDPOINT_ASTER_TICKER_24H, weight=ASTER_TICKER_24H_WEIGHT)
        tickers = self._parse(AsterTicker24hList, data, "ticker/24hr").root
        return {t.symbol: t.quote_volume for t in tickers}


class HyperliquidFundingFeed(_JsonFeed):
    """HyperLiquid perpetuals funding feed (hourly funding)."""

    def __init__(
        self,
        base_url: str = HYPERLIQUID_REST_URL,
        rate_limiter: RateLimiter | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        """
        Initialize the HyperLiquid feed.

        Args:
            base_url: REST base URL.
            rate_limiter: Optional rate limiter instance.
            timeout_seconds: Total request timeout.
        """
        super().__init__(
            base_url,
            rate_limiter
            or RateLimiter(HYPERLIQUID_REQUESTS_PER_SECOND, HYPERLIQUID_WEIGHT_PER_MINUTE),
            timeout_seconds,
        )
        self._last_response: HyperliquidMetaAndAssetCtxs | None = None

    @property
    def exchange(self) -> ExchangeName:
        return ExchangeName.HYPERLIQUID

    async def _meta_and_contexts(self) -> HyperliquidMetaAndAssetCtxs:
        data = await self._request(
            "POST",
            ENDPOINT_HYPERLIQUID_INFO,
            body={"type": "metaAndAssetCtxs"},
            weight=HYPERLIQUID_META_CTX_WEIGHT,
        )
        parsed: HyperliquidMetaAndAssetCtxs = self._parse(
            HyperliquidMetaAndAssetCtxs, data, "metaAndAssetCtxs"
        )
        self._last_response = parsed
        return parsed

    async def fetch_rates(self) -> list[FundingRate]:
        """Funding snapshot for every listed HyperLiquid perpetual."""
        response = await self._meta_and_contexts()
        now = get_timestamp_ms()
        # Funding settles on the hour
        next_funding = (now // 3_600_000 + 1) * 3_600_000

        rates = []
        for asset, ctx in response.listed():
            if ctx.mark_px <= 0:
                logger.debug(f"Skipping {asset.name}: no mark price")
                continue
            rates.append(
                FundingRate(
                    exchange=ExchangeName.HYPERLIQUID,
                    symbol=asset.name,
                    rate=ctx.funding,
                    mark_price=ctx.mark_px,
                    next_funding_time_ms=next_funding,
                    timestamp_ms=now,
                )
            )
        return rates

    async def fetch_volumes(self) -> dict[str, float]:
        """24h notional volume per HyperLiquid asset."""
        response = self._last_response or await self._meta_and_contexts()
        return {asset.name: ctx.day_ntl_vlm for asset, ctx in response.listed()}
