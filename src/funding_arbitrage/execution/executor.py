"""
Pair execution engine.

Places the two legs of a delta-neutral pair concurrently. Entries are
all-or-nothing: a one-sided fill is handed to recovery and never retried.
Closing legs are retried individually.
"""

import asyncio
import logging
from collections.abc import Mapping

from funding_arbitrage.config.constants import (
    DEFAULT_CLOSE_RETRY_ATTEMPTS,
    DEFAULT_CLOSE_RETRY_DELAY_S,
)
from funding_arbitrage.core.types import (
    Allocation,
    ExchangeClient,
    ExchangeName,
    ExecutionStatus,
    FundingSpread,
    LegResult,
    OrderResult,
    OrderSide,
    OrderType,
    PairExecutionResult,
    StrategyPosition,
)
from funding_arbitrage.execution.recovery import LegRecovery, RecoveryResult
from funding_arbitrage.utils.time import LatencyTimer, get_timestamp_ms


logger = logging.getLogger(__name__)


class PairExecutor:
    """
    Executes long/short pairs across two exchanges.

    Features:
    - Concurrent leg placement
    - All-or-nothing entry with unwind of orphaned legs
    - Per-leg retries for closing orders
    """

    def __init__(
        self,
        clients: Mapping[ExchangeName, ExchangeClient],
        recovery: LegRecovery,
        close_retry_attempts: int = DEFAULT_CLOSE_RETRY_ATTEMPTS,
        close_retry_delay_s: float = DEFAULT_CLOSE_RETRY_DELAY_S,
    ) -> None:
        """
        Initialize executor.

        Args:
            clients: Exchange clients keyed by venue.
            recovery: Handler for orphaned entry legs.
            close_retry_attempts: Retries after a failed closing order.
            close_retry_delay_s: Delay between closing retries.
        """
        self._clients = clients
        self._recovery = recovery
        self._close_retry_attempts = close_retry_attempts
        self._close_retry_delay_s = close_retry_delay_s

        # Statistics
        self._total_entries = 0
        self._successful_entries = 0
        self._failed_entries = 0
        self._total_closes = 0
        self._failed_closes = 0

    @property
    def recovery(self) -> LegRecovery:
        """Recovery handler and residual ledger."""
        return self._recovery

    async def open_pair(
        self,
        spread: FundingSpread,
        allocation: Allocation,
    ) -> PairExecutionResult:
        """
        Open both legs of a pair concurrently.

        Args:
            spread: Spread providing direction, symbols and mark prices.
            allocation: USD size for the pair.

        Returns:
            PairExecutionResult; SUCCESS only when both legs filled.
        """
        start_time = get_timestamp_ms()
        self._total_entries += 1

        long_leg = LegResult(
            exchange=spread.long_exchange,
            symbol=spread.long_symbol,
            side=OrderSide.BUY,
            size_usd=allocation.long_size,
        )
        short_leg = LegResult(
            exchange=spread.short_exchange,
            symbol=spread.short_symbol,
            side=OrderSide.SELL,
            size_usd=allocation.short_size,
        )

        logger.info(
            f"Opening {spread.canonical}: long {long_leg.describe()}, short {short_leg.describe()}"
        )

        results = await asyncio.gather(
            self._place_leg(long_leg, spread.long_mark_price, reduce_only=False),
            self._place_leg(short_leg, spread.short_mark_price, reduce_only=False),
            return_exceptions=True,
        )
        self._apply_result(long_leg, results[0])
        self._apply_result(short_leg, results[1])

        filled = [leg for leg in (long_leg, short_leg) if leg.is_filled]

        if len(filled) == 2:
            self._successful_entries += 1
            return PairExecutionResult(
                status=ExecutionStatus.SUCCESS,
                long_leg=long_leg,
                short_leg=short_leg,
                start_timestamp_ms=start_time,
                end_timestamp_ms=get_timestamp_ms(),
            )

        self._failed_entries += 1
        errors = "; ".join(
            f"{leg.describe()}: {leg.error_message}"
            for leg in (long_leg, short_leg)
            if not leg.is_filled
        )

        if not filled:
            return PairExecutionResult(
                status=ExecutionStatus.FAILED,
                long_leg=long_leg,
                short_leg=short_leg,
                error_message=errors,
                start_timestamp_ms=start_time,
                end_timestamp_ms=get_timestamp_ms(),
            )

        recovery = await self._recovery.unwind(
            filled[0], f"{spread.canonical} entry partner leg failed ({errors})"
        )
        self._log_recovery(recovery)

        return PairExecutionResult(
            status=ExecutionStatus.ROLLED_BACK if recovery.success else ExecutionStatus.PARTIAL,
            long_leg=long_leg,
            short_leg=short_leg,
            residuals=[recovery.residual] if recovery.residual else [],
            error_message=errors,
            start_timestamp_ms=start_time,
            end_timestamp_ms=get_timestamp_ms(),
        )

    async def close_pair(self, position: StrategyPosition) -> PairExecutionResult:
        """
        Close the legs of a position that are still open.

        Both closing orders go out concurrently; each failed leg is retried
        independently.

        Args:
            position: Position to close.

        Returns:
            PairExecutionResult; SUCCESS when every remaining leg closed.
        """
        start_time = get_timestamp_ms()
        self._total_closes += 1

        long_leg = None
        short_leg = None
        tasks = []

        if position.long_open:
            long_leg = LegResult(
                exchange=position.long_exchange,
                symbol=position.long_symbol,
                side=OrderSide.SELL,
                size_usd=position.long_size,
            )
            tasks.append(self._close_leg(long_leg, position.long_current_price))

        if position.short_open:
            short_leg = LegResult(
                exchange=position.short_exchange,
                symbol=position.short_symbol,
                side=OrderSide.BUY,
                size_usd=position.short_size,
            )
            tasks.append(self._close_leg(short_leg, position.short_current_price))

        await asyncio.gather(*tasks)

        attempted = [leg for leg in (long_leg, short_leg) if leg is not None]
        closed = [leg for leg in attempted if leg.is_filled]

        if len(closed) == len(attempted):
            status = ExecutionStatus.SUCCESS
        elif closed:
            status = ExecutionStatus.PARTIAL
        else:
            status = ExecutionStatus.FAILED

        error = "; ".join(
            f"{leg.describe()}: {leg.error_message}" for leg in attempted if not leg.is_filled
        )
        if error:
            self._failed_closes += 1
            logger.error(f"Close of {position.canonical} incomplete: {error}")

        return PairExecutionResult(
            status=status,
            long_leg=long_leg,
            short_leg=short_leg,
            error_message=error,
            start_timestamp_ms=start_time,
            end_timestamp_ms=get_timestamp_ms(),
        )

    async def _close_leg(self, leg: LegResult, price: float) -> None:
        """Place a closing order, retrying until filled or attempts run out."""
        attempts = 1 + max(0, self._close_retry_attempts)

        for attempt in range(1, attempts + 1):
            leg.attempts = attempt
            try:
                result: OrderResult | BaseException = await self._place_leg(
                    leg, price, reduce_only=True
                )
            except Exception as e:
                result = e
            self._apply_result(leg, result)

            if leg.is_filled:
                return

            if attempt < attempts:
                logger.warning(
                    f"Closing leg {leg.describe()} failed (attempt {attempt}/{attempts}): "
                    f"{leg.error_message}"
                )
                await asyncio.sleep(self._close_retry_delay_s)

    async def _place_leg(
        self,
        leg: LegResult,
        price: float,
        reduce_only: bool,
    ) -> OrderResult:
        """Place a single leg order."""
        client = self._clients[leg.exchange]

        with LatencyTimer() as timer:
            result = await client.place_order(
                symbol=leg.symbol,
                side=leg.side,
                size_usd=leg.size_usd,
                price=price if price > 0 else None,
                order_type=OrderType.MARKET,
                reduce_only=reduce_only,
            )

        if result.price is None and price > 0:
            result.price = price

        logger.debug(
            f"Leg {leg.describe()}: success={result.success}, filled={result.filled}, "
            f"latency={timer.latency_us}μs"
        )
        return result

    @staticmethod
    def _apply_result(leg: LegResult, result: OrderResult | BaseException) -> None:
        """Attach an order outcome to its leg."""
        if isinstance(result, OrderResult):
            leg.order = result
            if not result.is_filled:
                leg.error_message = result.error or "order not filled"
            else:
                leg.error_message = ""
        else:
            leg.order = None
            leg.error_message = str(result) or type(result).__name__
            logger.error(f"Order failed for {leg.describe()}: {leg.error_message}")

    def _log_recovery(self, recovery: RecoveryResult) -> None:
        """Log recovery result."""
        if recovery.success:
            logger.info(
                f"Recovery successful: unwound {recovery.leg.describe()} "
                f"in {recovery.attempts} attempt(s), latency {recovery.latency_us}μs"
            )
        else:
            logger.error(f"Recovery failed: {recovery.error_message}")

    @property
    def stats(self) -> dict[str, int]:
        """Get execution statistics."""
        return {
            "entries": self._total_entries,
            "successful_entries": self._successful_entries,
            "failed_entries": self._failed_entries,
            "closes": self._total_closes,
            "failed_closes": self._failed_closes,
        }

    @property
    def success_rate(self) -> float:
        """Entry success rate."""
        if self._total_entries == 0:
            return 0.0
        return self._successful_entries / self._total_entries
