"""
Pydantic models for public funding feed responses.

These models give type-safe parsing of exchange responses. Numeric fields
arrive as strings and are coerced to floats; anything missing or
malformed fails validation instead of defaulting to zero.
"""

from typing import Any

from pydantic import BaseModel, Field, RootModel, model_validator


# =============================================================================
# AsterDEX
# =============================================================================


class AsterPremiumIndex(BaseModel):
    """Entry of ``GET /fapi/v1/premiumIndex``."""

    symbol: str = Field(min_length=1)
    mark_price: float = Field(alias="markPrice", ge=0)
    index_price: float | None = Field(default=None, alias="indexPrice")
    last_funding_rate: float = Field(alias="lastFundingRate")
    next_funding_time: int = Field(alias="nextFundingTime", ge=0)
    time: int = Field(ge=0)

    model_config = {"populate_by_name": True}


class AsterPremiumIndexList(RootModel[list[AsterPremiumIndex]]):
    """Full premium index response."""


class AsterTicker24h(BaseModel):
    """Entry of ``GET /fapi/v1/ticker/24hr``."""

    symbol: str = Field(min_length=1)
    last_price: float | None = Field(default=None, alias="lastPrice")
    volume: float | None = None
    quote_volume: float = Field(alias="quoteVolume", ge=0)

    model_config = {"populate_by_name": True}


class AsterTicker24hList(RootModel[list[AsterTicker24h]]):
    """Full 24h ticker response."""


# =============================================================================
# HyperLiquid
# =============================================================================


class HyperliquidAsset(BaseModel):
    """Perpetual listed in the HyperLiquid universe."""

    name: str = Field(min_length=1)
    sz_decimals: int = Field(alias="szDecimals")
    max_leverage: int | None = Field(default=None, alias="maxLeverage")
    is_delisted: bool = Field(default=False, alias="isDelisted")

    model_config = {"populate_by_name": True}


class HyperliquidMeta(BaseModel):
    """Universe metadata."""

    universe: list[HyperliquidAsset]


class HyperliquidAssetContext(BaseModel):
    """Per-asset market context, aligned by index with the universe."""

    funding: float
    mark_px: float = Field(alias="markPx", ge=0)
    oracle_px: float | None = Field(default=None, alias="oraclePx")
    open_interest: float | None = Field(default=None, alias="openInterest")
    day_ntl_vlm: float = Field(alias="dayNtlVlm", ge=0)
    premium: float | None = None

    model_config = {"populate_by_name": True}


class HyperliquidMetaAndAssetCtxs(BaseModel):
    """Response of ``POST /info {"type": "metaAndAssetCtxs"}``."""

    meta: HyperliquidMeta
    contexts: list[HyperliquidAssetContext]

    @model_validator(mode="before")
    @classmethod
    def from_pair(cls, data: Any) -> Any:
        """The endpoint returns a two-element array ``[meta, contexts]``."""
        if isinstance(data, list):
            if len(data) != 2:
                raise ValueError(f"expected [meta, contexts], got {len(data)} elements")
            return {"meta": data[0], "contexts": data[1]}
        return data

    @model_validator(mode="after")
    def check_alignment(self) -> "HyperliquidMetaAndAssetCtxs":
        """Contexts must line up one-to-one with the universe."""
        if len(self.meta.universe) != len(self.contexts):
            raise ValueError(
                f"universe has {len(self.meta.universe)} assets "
                f"but {len(self.contexts)} contexts"
            )
        return self

    def listed(self) -> list[tuple[HyperliquidAsset, HyperliquidAssetContext]]:
        """Asset and context pairs, delisted assets excluded."""
        return [
            (asset, ctx)
            for asset, ctx in zip(self.meta.universe, self.contexts, strict=True)
            if not asset.is_delisted
        ]
