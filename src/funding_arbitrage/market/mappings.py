"""
Curated asset mappings.

Maps canonical assets to their Aster and HyperLiquid contract symbols.
There is no automatic matching: only curated defaults and user-supplied
manual mappings take part in arbitrage.
"""

import logging
from collections.abc import Iterable

from funding_arbitrage.config.constants import (
    CONTRACT_PREFIXES,
    KNOWN_MULTIPLIERS,
    QUOTE_SUFFIXES,
)
from funding_arbitrage.config.strategy import MappingConfig
from funding_arbitrage.core.types import AssetMapping


logger = logging.getLogger(__name__)


def _m(canonical: str, aster: str, hyperliquid: str, market_cap: float) -> AssetMapping:
    return AssetMapping(canonical, aster, hyperliquid, 1.0, market_cap)


# Top assets listed on both venues, with approximate market caps in USD
DEFAULT_MAPPINGS: tuple[AssetMapping, ...] = (
    _m("BTC", "BTCUSDT", "BTC", 1_811_784_623_364),
    _m("ETH", "ETHUSDT", "ETH", 374_760_469_599),
    _m("XRP", "XRPUSDT", "XRP", 127_248_491_801),
    _m("BNB", "BNBUSDT", "BNB", 125_604_719_915),
    _m("SOL", "SOLUSDT", "SOL", 77_035_560_822),
    _m("DOGE", "DOGEUSDT", "DOGE", 26_000_000_000),
    _m("TON", "TONUSDT", "TON", 24_000_000_000),
    _m("ADA", "ADAUSDT", "ADA", 21_000_000_000),
    _m("TRX", "TRXUSDT", "TRX", 19_000_000_000),
    _m("AVAX", "AVAXUSDT", "AVAX", 16_000_000_000),
    # Both venues list the 1000x contract
    _m("SHIB", "1000SHIBUSDT", "kSHIB", 15_000_000_000),
    _m("DOT", "DOTUSDT", "DOT", 12_000_000_000),
    _m("LINK", "LINKUSDT", "LINK", 11_000_000_000),
    _m("BCH", "BCHUSDT", "BCH", 10_500_000_000),
    _m("LTC", "LTCUSDT", "LTC", 9_800_000_000),
    _m("UNI", "UNIUSDT", "UNI", 8_500_000_000),
    _m("NEAR", "NEARUSDT", "NEAR", 8_200_000_000),
    _m("ICP", "ICPUSDT", "ICP", 7_800_000_000),
    _m("ETC", "ETCUSDT", "ETC", 7_200_000_000),
    _m("XLM", "XLMUSDT", "XLM", 7_000_000_000),
    _m("ATOM", "ATOMUSDT", "ATOM", 6_800_000_000),
    _m("FIL", "FILUSDT", "FIL", 6_200_000_000),
    _m("LDO", "LDOUSDT", "LDO", 5_800_000_000),
    _m("APT", "APTUSDT", "APT", 5_600_000_000),
    _m("HBAR", "HBARUSDT", "HBAR", 5_400_000_000),
    _m("ARB", "ARBUSDT", "ARB", 5_200_000_000),
    _m("INJ", "INJUSDT", "INJ", 4_200_000_000),
    _m("OP", "OPUSDT", "OP", 4_000_000_000),
    _m("RNDR", "RNDRUSDT", "RENDER", 4_400_000_000),
    _m("AAVE", "AAVEUSDT", "AAVE", 3_300_000_000),
    _m("SUI", "SUIUSDT", "SUI", 3_100_000_000),
    _m("ALGO", "ALGOUSDT", "ALGO", 2_800_000_000),
    _m("PEPE", "1000PEPEUSDT", "kPEPE", 310_000_000),
)


def detect_multiplier(aster_price: float, hyperliquid_price: float) -> float:
    """
    Infer the contract-size multiplier from the two mark prices.

    The ratio snaps to a known power of ten (or its inverse) when within
    10% of it, otherwise the rounded ratio is returned.

    Args:
        aster_price: Aster mark price.
        hyperliquid_price: HyperLiquid mark price.

    Returns:
        Aster price divided by HyperLiquid price, snapped.

    Example:
        >>> detect_multiplier(0.0123, 0.0000124)
        1000.0
    """
    if aster_price <= 0 or hyperliquid_price <= 0:
        return 1.0

    ratio = aster_price / hyperliquid_price

    for known in KNOWN_MULTIPLIERS:
        if abs(ratio - known) < known * 0.1:
            return float(known)
        inverse = 1.0 / known
        if abs(ratio - inverse) < inverse * 0.1:
            return inverse

    rounded = round(ratio)
    return float(rounded) if rounded >= 1 else 1.0


def _strip(symbol: str, prefixes: Iterable[str]) -> str:
    base = symbol
    for suffix in QUOTE_SUFFIXES:
        if base.upper().endswith(suffix):
            base = base[: -len(suffix)]
            break
    for prefix in prefixes:
        if base.startswith(prefix) and len(base) > len(prefix):
            base = base[len(prefix):]
            break
    return base.upper()


def suggest_canonical(aster_symbol: str, hyperliquid_symbol: str) -> str:
    """
    Suggest a canonical name for a pair of exchange symbols.

    Quote suffixes and 1000x contract prefixes are stripped; when the two
    bases differ the shorter one wins.

    Example:
        >>> suggest_canonical("1000PEPEUSDT", "kPEPE")
        'PEPE'
    """
    aster_base = _strip(aster_symbol, CONTRACT_PREFIXES)
    hl_base = _strip(hyperliquid_symbol, CONTRACT_PREFIXES)

    if aster_base == hl_base:
        return aster_base
    return aster_base if len(aster_base) < len(hl_base) else hl_base


class MappingRegistry:
    """
    Registry of active asset mappings.

    Manual mappings replace a curated default with the same canonical name.
    """

    def __init__(self, defaults: Iterable[AssetMapping] = DEFAULT_MAPPINGS) -> None:
        self._defaults: dict[str, AssetMapping] = {m.canonical: m for m in defaults}
        self._manual: dict[str, AssetMapping] = {}

    def set_manual(self, mappings: Iterable[MappingConfig]) -> None:
        """
        Replace the manual mappings.

        Args:
            mappings: User-supplied mappings from the strategy config.
        """
        manual: dict[str, AssetMapping] = {}
        for cfg in mappings:
            default = self._defaults.get(cfg.canonical)
            manual[cfg.canonical] = AssetMapping(
                canonical=cfg.canonical,
                aster_symbol=cfg.aster_symbol,
                hyperliquid_symbol=cfg.hyperliquid_symbol,
                multiplier=cfg.multiplier,
                market_cap=default.market_cap if default else None,
            )
        self._manual = manual
        if manual:
            logger.info(f"Loaded {len(manual)} manual mappings: {', '.join(manual)}")

    def get(self, canonical: str) -> AssetMapping | None:
        """Active mapping for a canonical asset."""
        key = canonical.upper()
        return self._manual.get(key) or self._defaults.get(key)

    def all(self) -> list[AssetMapping]:
        """All active mappings, defaults first then manual-only additions."""
        merged = {**self._defaults, **self._manual}
        return list(merged.values())

    def market_cap(self, canonical: str) -> float | None:
        """Curated market cap, if known."""
        mapping = self.get(canonical)
        return mapping.market_cap if mapping else None

    def __len__(self) -> int:
        return len({**self._defaults, **self._manual})
