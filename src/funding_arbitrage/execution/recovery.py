"""
Recovery for one-sided entries.

When only one leg of an entry fills, the filled leg is unwound with a
reduce-only market order. Exposure that cannot be unwound is recorded for
manual reconciliation rather than retried indefinitely.
"""

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum, auto

from funding_arbitrage.config.constants import (
    DEFAULT_CLOSE_RETRY_ATTEMPTS,
    DEFAULT_CLOSE_RETRY_DELAY_S,
)
from funding_arbitrage.core.types import (
    ExchangeClient,
    ExchangeName,
    LegResult,
    OrderType,
    ResidualExposure,
)
from funding_arbitrage.utils.time import LatencyTimer, get_timestamp_ms


logger = logging.getLogger(__name__)


class RecoveryAction(Enum):
    """Type of recovery action taken."""

    NONE = auto()
    UNWIND = auto()
    RESIDUAL = auto()


@dataclass
class RecoveryResult:
    """Result of a recovery operation."""

    action: RecoveryAction
    success: bool
    leg: LegResult
    attempts: int
    latency_us: int
    residual: ResidualExposure | None = None
    error_message: str = ""


class LegRecovery:
    """
    Unwinds orphaned legs and keeps the residual exposure ledger.

    Residual exposures stay in the ledger until an operator acknowledges
    them.
    """

    def __init__(
        self,
        clients: Mapping[ExchangeName, ExchangeClient],
        attempts: int = DEFAULT_CLOSE_RETRY_ATTEMPTS,
        retry_delay_s: float = DEFAULT_CLOSE_RETRY_DELAY_S,
    ) -> None:
        """
        Initialize recovery handler.

        Args:
            clients: Exchange clients keyed by venue.
            attempts: Unwind attempts before giving up.
            retry_delay_s: Delay between attempts.
        """
        self._clients = clients
        self._attempts = max(1, attempts)
        self._retry_delay_s = retry_delay_s
        self._residuals: list[ResidualExposure] = []

    async def unwind(self, leg: LegResult, reason: str) -> RecoveryResult:
        """
        Offset a filled leg with a reduce-only market order.

        Args:
            leg: The leg that filled while its partner did not.
            reason: Why the leg is orphaned.

        Returns:
            RecoveryResult with outcome; a failed unwind carries the
            recorded residual exposure.
        """
        if not leg.is_filled:
            return RecoveryResult(
                action=RecoveryAction.NONE,
                success=True,
                leg=leg,
                attempts=0,
                latency_us=0,
            )

        client = self._clients[leg.exchange]
        side = leg.side.opposite
        errors: list[str] = []
        attempts = 0
        filled = False

        logger.warning(f"Unwinding orphaned leg {leg.describe()}: {reason}")

        with LatencyTimer() as timer:
            while attempts < self._attempts and not filled:
                attempts += 1
                try:
                    order = await client.place_order(
                        symbol=leg.symbol,
                        side=side,
                        size_usd=leg.size_usd,
                        price=None,
                        order_type=OrderType.MARKET,
                        reduce_only=True,
                    )
                    filled = order.is_filled
                    if not filled:
                        errors.append(order.error or "unwind order not filled")
                except Exception as e:
                    errors.append(str(e))
                    logger.error(f"Unwind attempt {attempts} failed for {leg.describe()}: {e}")

                if not filled and attempts < self._attempts:
                    await asyncio.sleep(self._retry_delay_s)

        if filled:
            logger.info(f"Unwound {leg.describe()} after {attempts} attempt(s)")
            return RecoveryResult(
                action=RecoveryAction.UNWIND,
                success=True,
                leg=leg,
                attempts=attempts,
                latency_us=timer.latency_us,
            )

        residual = ResidualExposure(
            exchange=leg.exchange,
            symbol=leg.symbol,
            side=leg.side,
            size_usd=leg.size_usd,
            reason=f"{reason}; unwind failed: {errors[-1] if errors else 'unknown'}",
            timestamp_ms=get_timestamp_ms(),
        )
        self._residuals.append(residual)
        logger.error(f"Residual exposure requires manual reconciliation: {leg.describe()}")

        return RecoveryResult(
            action=RecoveryAction.RESIDUAL,
            success=False,
            leg=leg,
            attempts=attempts,
            latency_us=timer.latency_us,
            residual=residual,
            error_message="; ".join(errors),
        )

    @property
    def residuals(self) -> list[ResidualExposure]:
        """Outstanding residual exposures, oldest first."""
        return list(self._residuals)

    def restore(self, residuals: Iterable[ResidualExposure]) -> None:
        """Reload the ledger from persisted state."""
        self._residuals = list(residuals)

    def acknowledge(self, exchange: ExchangeName, symbol: str) -> int:
        """
        Drop reconciled residuals for a symbol.

        Returns:
            Number of entries removed.
        """
        before = len(self._residuals)
        self._residuals = [
            r for r in self._residuals if not (r.exchange is exchange and r.symbol == symbol)
        ]
        return before - len(self._residuals)
