"""
Funding arbitrage strategy service.

Single owner of the strategy configuration and the position book.
Coordinates market data, spread ranking, capital allocation, pair
execution and the periodic jobs, and exposes snapshot queries and
commands to the control API.
"""

import logging
from collections import deque
from collections.abc import AsyncIterator, Mapping, Sequence
from contextlib import asynccontextmanager
from typing import Any

from pydantic import ValidationError

from funding_arbitrage.config.constants import MAX_REBALANCE_HISTORY, RESIZE_TOLERANCE_PCT
from funding_arbitrage.config.settings import Settings
from funding_arbitrage.config.strategy import StrategyConfig
from funding_arbitrage.core.errors import ConfigurationError
from funding_arbitrage.core.event_bus import Event, EventBus, EventType
from funding_arbitrage.core.scheduler import RebalanceScheduler
from funding_arbitrage.core.types import (
    Allocation,
    ExchangeClient,
    ExchangeName,
    ExitReason,
    FundingFeed,
    FundingRate,
    FundingSpread,
    NotificationLevel,
    PositionStatus,
    RebalanceEvent,
    RebalanceResult,
    RebalanceTrigger,
    ResidualExposure,
    StateStore,
    StrategyPosition,
    StrategyStatus,
    spread_to_dict,
)
from funding_arbitrage.execution.executor import PairExecutor
from funding_arbitrage.execution.positions import PositionManager
from funding_arbitrage.execution.recovery import LegRecovery
from funding_arbitrage.execution.risk import PreTradeValidator
from funding_arbitrage.market.mappings import MappingRegistry
from funding_arbitrage.market.rates import FundingRateCache
from funding_arbitrage.storage.state_store import InMemoryStateStore
from funding_arbitrage.strategy.allocation import AllocationEngine
from funding_arbitrage.strategy.calculator import SpreadComputation, SpreadCalculator
from funding_arbitrage.strategy.selector import RankedSelector, SpreadHistory
from funding_arbitrage.telemetry.event_log import EventLog
from funding_arbitrage.telemetry.metrics import MetricsCollector
from funding_arbitrage.utils.math import format_usd
from funding_arbitrage.utils.time import LatencyTimer, get_timestamp_ms, get_timestamp_us


logger = logging.getLogger(__name__)


class FundingArbitrageEngine:
    """
    Strategy service orchestrator.

    Manages the complete lifecycle of:
    - Market data refresh and spread computation
    - Selection, allocation and rebalancing
    - Position monitoring and negative-spread exits
    - Persistence and resume after restart
    """

    def __init__(
        self,
        clients: Mapping[ExchangeName, ExchangeClient],
        feeds: Sequence[FundingFeed] = (),
        settings: Settings | None = None,
        state_store: StateStore | None = None,
        mappings: MappingRegistry | None = None,
        rate_cache: FundingRateCache | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            clients: Order routing per exchange.
            feeds: Funding feeds polled by the refresh job.
            settings: Application settings.
            state_store: Persistence backend, in-memory when omitted.
            mappings: Asset mapping registry.
            rate_cache: Latest funding snapshots.
            event_bus: Notification channel.
        """
        self._settings = settings or Settings()
        self._clients = clients
        self._feeds = list(feeds)
        self._store: StateStore = state_store or InMemoryStateStore()
        self._mappings = mappings or MappingRegistry()
        self._rates = rate_cache or FundingRateCache()
        self._event_bus = event_bus or EventBus()

        self._config = self._settings.strategy
        self._enabled = False
        self._stopping = False
        self._resume_pending = False
        self._rebalances: deque[RebalanceEvent] = deque(maxlen=MAX_REBALANCE_HISTORY)

        # Telemetry
        self._metrics = MetricsCollector()
        self._metrics.attach(self._event_bus)
        self._event_log = EventLog()
        self._event_log.attach(self._event_bus)

        # Strategy components
        self._calculator = SpreadCalculator(
            max_age_ms=int(self._settings.market_data_max_age_seconds * 1000),
        )
        self._selector = RankedSelector()
        self._history = SpreadHistory(self._config.average_apr_window)
        self._allocation = AllocationEngine()

        # Execution components
        self._recovery = LegRecovery(
            clients,
            attempts=self._settings.close_retry_attempts,
            retry_delay_s=self._settings.close_retry_delay_seconds,
        )
        self._executor = PairExecutor(
            clients,
            self._recovery,
            close_retry_attempts=self._settings.close_retry_attempts,
            close_retry_delay_s=self._settings.close_retry_delay_seconds,
        )
        self._positions = PositionManager(
            self._executor,
            event_bus=self._event_bus,
            exit_spread_window=self._config.exit_spread_window,
        )
        self._validator = PreTradeValidator(
            clients,
            require_wallets=not self._settings.paper_mode,
        )

        self._scheduler = RebalanceScheduler(
            rebalance=self._scheduled_rebalance,
            monitor=self.tick,
            refresh=self.refresh_market_data if self._feeds else None,
            rebalance_interval_s=self._config.rebalance_interval_seconds,
            monitor_interval_s=self._settings.monitor_interval_seconds,
            refresh_interval_s=self._settings.rate_refresh_interval_seconds,
            cooldown_s=self._config.manual_rebalance_cooldown_seconds,
        )

        self._mappings.set_manual(self._config.manual_mappings)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def setup(self) -> None:
        """Load persisted state, fetch market data and resume if needed."""
        logger.info("Initializing funding arbitrage engine...")

        self.restore()

        if self._feeds:
            await self.refresh_market_data()
            self._scheduler.start_refresh()

        if self._resume_pending:
            await self.resume()

        logger.info(
            f"Engine initialization complete: {len(self._mappings)} mappings, "
            f"{len(self._rates)} funding rates"
        )

    async def shutdown(self) -> None:
        """
        Stop background jobs and release resources.

        Open positions are left in place and persisted; they are resumed
        on the next start.
        """
        logger.info("Shutting down engine...")

        await self._scheduler.stop()
        await self._scheduler.stop_refresh()

        # Let an in-flight rebalance or close finish before saving
        async with self._scheduler.lock:
            self.persist()

        await self._event_bus.publish(
            Event(type=EventType.SHUTDOWN, payload=None, timestamp_us=get_timestamp_us())
        )

        for feed in self._feeds:
            await feed.close()
        for client in self._clients.values():
            await client.close()

        logger.info("Engine shutdown complete")

    # =========================================================================
    # Commands
    # =========================================================================

    async def start(self, config: StrategyConfig | None = None) -> RebalanceResult:
        """
        Start the strategy.

        Args:
            config: Configuration to run with, the current one when omitted.

        Returns:
            Result of the initial rebalance.

        Raises:
            ConfigurationError: If the configuration is invalid or the
                strategy is already running.
        """
        if self._enabled:
            raise ConfigurationError("strategy is already running")

        config = config or self._config
        self._allocation.validate(config)
        self._apply_config(config)

        self._enabled = True
        self._stopping = False
        self._resume_pending = False

        await self._event_bus.notify(
            EventType.STRATEGY_STARTED,
            NotificationLevel.SUCCESS,
            f"Strategy started: {format_usd(config.total_capital)} over "
            f"{config.number_of_pairs} pairs, rebalancing every "
            f"{config.rebalance_interval_minutes:g} min",
            data={"config": config.model_dump(mode="json")},
            source="engine",
        )

        result = await self.rebalance(RebalanceTrigger.START)
        if self._enabled:
            self._scheduler.start()
        self.persist()
        return result

    async def stop(self) -> dict[str, bool]:
        """
        Stop the strategy and close every position.

        Timers are cancelled first; an in-flight rebalance finishes
        without opening further entries before positions are closed.

        Returns:
            Close outcome per canonical asset.
        """
        if not self._enabled and not self._positions.canonicals:
            return {}

        self._stopping = True
        await self._scheduler.stop()

        async with self._scheduler.lock:
            outcomes = await self._positions.close_all(ExitReason.STOP)

        self._enabled = False
        self._stopping = False

        still_open = [c for c, ok in outcomes.items() if not ok]
        await self._event_bus.notify(
            EventType.STRATEGY_STOPPED,
            NotificationLevel.WARNING if still_open else NotificationLevel.INFO,
            f"Strategy stopped, closed {len(outcomes) - len(still_open)} of {len(outcomes)} positions"
            + (f" ({', '.join(still_open)} still closing)" if still_open else ""),
            data={"outcomes": outcomes},
            source="engine",
        )
        self.persist()
        return outcomes

    async def resume(self) -> bool:
        """
        Restart timers for a persisted strategy that was running.

        Restored positions are kept as they are; the next rebalance runs
        one interval after the persisted last rebalance.

        Returns:
            True if the strategy was resumed.
        """
        if self._enabled or not self._resume_pending:
            return False

        self._resume_pending = False
        self._enabled = True
        self._scheduler.start()

        await self._event_bus.notify(
            EventType.STRATEGY_STARTED,
            NotificationLevel.INFO,
            f"Strategy resumed with {len(self._positions.canonicals)} open positions",
            data={"positions": self._positions.canonicals},
            source="engine",
        )
        return True

    def update_config(self, config: StrategyConfig) -> None:
        """
        Replace the strategy configuration.

        Raises:
            ConfigurationError: If the strategy is running or the
                configuration is invalid.
        """
        if self._enabled:
            raise ConfigurationError("stop the strategy before changing its configuration")

        self._allocation.validate(config)
        self._apply_config(config)
        self.persist()
        logger.info("Strategy configuration updated")

    def _apply_config(self, config: StrategyConfig) -> None:
        self._config = config
        self._mappings.set_manual(config.manual_mappings)
        self._history.resize(config.average_apr_window)
        self._positions.set_exit_spread_window(config.exit_spread_window)
        self._scheduler.configure(
            rebalance_interval_s=config.rebalance_interval_seconds,
            cooldown_s=config.manual_rebalance_cooldown_seconds,
        )

    async def close_position(self, canonical: str) -> bool:
        """
        Manually close a held position.

        Waits for an in-flight rebalance to finish first.

        Returns:
            True if both legs closed.

        Raises:
            KeyError: If no position is held for the asset.
        """
        canonical = canonical.upper()
        if not self._positions.holds(canonical):
            raise KeyError(canonical)

        async with self._scheduler.lock:
            if self._positions.get(canonical) is None:
                raise KeyError(canonical)
            closed = await self._positions.close_position(canonical, ExitReason.MANUAL)

        self.persist()
        return closed

    def acknowledge_residual(self, exchange: ExchangeName, symbol: str) -> int:
        """Clear reconciled residual exposure for a symbol."""
        removed = self._recovery.acknowledge(exchange, symbol)
        if removed:
            self.persist()
        return removed

    # =========================================================================
    # Rebalance
    # =========================================================================

    async def _scheduled_rebalance(self) -> None:
        await self.rebalance(RebalanceTrigger.SCHEDULED)

    async def rebalance(
        self,
        trigger: RebalanceTrigger = RebalanceTrigger.MANUAL,
    ) -> RebalanceResult:
        """
        Run one rebalance.

        Skipped with a warning when the strategy is not running, while a
        manual trigger is inside the cooldown, or while another rebalance
        is in flight.

        Args:
            trigger: What requested the rebalance.

        Returns:
            RebalanceResult describing what changed.
        """
        if not self._enabled or self._stopping:
            return await self._skip(trigger, "strategy is not running")

        if trigger is RebalanceTrigger.MANUAL:
            remaining = self._scheduler.cooldown_remaining()
            if remaining > 0:
                return await self._skip(
                    trigger, f"manual rebalance cooldown, retry in {remaining:.0f}s"
                )

        lock = self._scheduler.lock
        if lock.locked():
            return await self._skip(trigger, "a rebalance is already in progress")

        async with lock:
            with LatencyTimer() as timer:
                result = await self._run_rebalance(trigger)
            self._metrics.record_latency("rebalance", timer.latency_us)

        self.persist()
        return result

    async def _skip(self, trigger: RebalanceTrigger, reason: str) -> RebalanceResult:
        await self._event_bus.notify(
            EventType.REBALANCE_SKIPPED,
            NotificationLevel.WARNING,
            f"Rebalance ({trigger.value}) skipped: {reason}",
            data={"trigger": trigger.value, "reason": reason},
            source="engine",
        )
        return RebalanceResult(trigger=trigger, executed=False, skipped_reason=reason)

    async def _run_rebalance(self, trigger: RebalanceTrigger) -> RebalanceResult:
        config = self._config
        result = RebalanceResult(trigger=trigger, executed=True)

        # Pre-trade readiness
        validation = await self._validator.validate(
            config, committed=self._positions.committed_capital
        )
        result.warnings.extend(validation.warnings)
        if not validation:
            result.executed = False
            result.skipped_reason = "pre-trade validation failed"
            result.errors.extend(validation.errors)
            await self._event_bus.notify(
                EventType.VALIDATION_FAILED,
                NotificationLevel.ERROR,
                f"Rebalance aborted, pre-trade validation failed: {'; '.join(validation.errors)}",
                data={
                    "errors": validation.errors,
                    "warnings": validation.warnings,
                    "balances": validation.balances,
                },
                source="engine",
            )
            return result

        # Ranking
        computation = self._compute_spreads()
        spreads = computation.by_canonical()
        selection = self._selector.select(
            computation.spreads,
            config,
            self._rates.market_stats(self._mappings.all()),
            self._history,
        )
        result.warnings.extend(selection.warnings)
        selected = {s.canonical: s for s in selection.selected}

        await self._exit_positions(spreads, selected, result)

        plan = self._allocation.plan(selection.selected, config)
        await self._release_oversized(plan, config, result)

        # Entries and rank updates
        entries = []
        for alloc in plan:
            if self._positions.holds(alloc.canonical):
                self._positions.update_rank(alloc.canonical, alloc.rank, alloc.allocation_pct)
            else:
                entries.append(alloc)

        capped, cap_warnings = self._allocation.cap_to_available(
            entries, self._positions.committed_capital, config
        )
        result.warnings.extend(cap_warnings)

        deployed = 0.0
        for alloc in capped:
            if self._stopping:
                result.warnings.append("strategy stopping, remaining entries skipped")
                break
            position = await self._positions.open_position(selected[alloc.canonical], alloc)
            if position is None:
                result.errors.append(f"entry for {alloc.canonical} failed")
                continue
            result.entered.append(alloc.canonical)
            deployed += position.notional

        now = get_timestamp_ms()
        event = RebalanceEvent(
            timestamp_ms=now,
            trigger=trigger,
            entered=list(result.entered),
            exited=list(result.exited),
            capital_deployed=deployed,
            spreads=[spread_to_dict(s) for s in selection.selected],
            warnings=list(result.warnings),
        )
        self._rebalances.appendleft(event)
        self._scheduler.mark_rebalanced(now)
        result.event = event

        summary = (
            f"Rebalance ({trigger.value}) complete: "
            f"entered {', '.join(result.entered) or 'none'}, "
            f"exited {', '.join(result.exited) or 'none'}, "
            f"{format_usd(deployed)} deployed"
        )
        await self._event_bus.notify(
            EventType.REBALANCE_COMPLETE,
            NotificationLevel.WARNING if result.errors else NotificationLevel.SUCCESS,
            summary if not result.errors else f"{summary}; {'; '.join(result.errors)}",
            data={**event.to_dict(), "errors": list(result.errors)},
            source="engine",
        )
        return result

    async def _exit_positions(
        self,
        spreads: Mapping[str, FundingSpread],
        selected: Mapping[str, FundingSpread],
        result: RebalanceResult,
    ) -> None:
        """Close held positions that flipped or left the selection."""
        for position in self._positions.open_positions():
            canonical = position.canonical

            if position.status is PositionStatus.CLOSING:
                reason = position.exit_reason or ExitReason.REBALANCE
            else:
                spread = spreads.get(canonical)
                if spread is None:
                    message = f"{canonical}: no current market data, position kept"
                    logger.warning(message)
                    result.warnings.append(message)
                    continue
                if position.smoothed_spread < 0 or spread.short_exchange is not position.short_exchange:
                    await self._notify_negative_spread(position)
                    reason = ExitReason.NEGATIVE_SPREAD
                elif canonical not in selected:
                    reason = ExitReason.REBALANCE
                else:
                    continue

            if await self._positions.close_position(canonical, reason):
                result.exited.append(canonical)
            else:
                result.errors.append(f"close of {canonical} incomplete")

    async def _release_oversized(
        self,
        plan: Sequence[Allocation],
        config: StrategyConfig,
        result: RebalanceResult,
    ) -> None:
        """
        Close held positions larger than their planned size.

        When more ranks qualify than before, the planned sizes of held
        positions shrink. Closing them frees the capital so the entry step
        re-opens them at the planned size next to the new ranks.
        """
        tolerance = config.total_capital * RESIZE_TOLERANCE_PCT / 100.0

        for alloc in plan:
            position = self._positions.get(alloc.canonical)
            if position is None or position.status is not PositionStatus.OPEN:
                continue
            if position.notional - alloc.size_usd <= tolerance:
                continue

            logger.info(
                f"{alloc.canonical}: held {format_usd(position.notional)} exceeds planned "
                f"{format_usd(alloc.size_usd)}, resizing"
            )
            if await self._positions.close_position(alloc.canonical, ExitReason.REBALANCE):
                result.exited.append(alloc.canonical)
            else:
                result.errors.append(f"close of {alloc.canonical} incomplete")

    # =========================================================================
    # Monitoring
    # =========================================================================

    async def tick(self, now_ms: int | None = None) -> list[str]:
        """
        Mark positions to market and close flipped spreads.

        Runs independently of the rebalance timer. Closes are deferred
        while a rebalance is in flight; the rebalance handles flips itself.

        Args:
            now_ms: Accrual time, defaults to now.

        Returns:
            Canonicals closed during this tick.
        """
        computation = self._compute_spreads()
        flipped = self._positions.update_tick(computation.by_canonical(), now_ms)

        lock = self._scheduler.lock
        stuck = self._positions.closing_positions
        if lock.locked() or not (flipped or stuck):
            return []

        closed: list[str] = []
        async with lock:
            for canonical in flipped:
                position = self._positions.get(canonical)
                if position is None or position.status is not PositionStatus.OPEN:
                    continue
                await self._notify_negative_spread(position)
                if await self._positions.close_position(canonical, ExitReason.NEGATIVE_SPREAD):
                    closed.append(canonical)

            for canonical in stuck:
                position = self._positions.get(canonical)
                if position is None:
                    continue
                logger.info(f"Retrying close of {canonical}")
                reason = position.exit_reason or ExitReason.REBALANCE
                if await self._positions.close_position(canonical, reason):
                    closed.append(canonical)

        self.persist()
        return closed

    async def _notify_negative_spread(self, position: StrategyPosition) -> None:
        await self._event_bus.notify(
            EventType.NEGATIVE_SPREAD,
            NotificationLevel.WARNING,
            f"{position.canonical} spread turned negative "
            f"({position.smoothed_spread * 100:.4f}%/h), closing",
            data={"canonical": position.canonical, "spread": position.smoothed_spread},
            source="engine",
        )

    async def refresh_market_data(self) -> list[str]:
        """
        Poll every feed once and record APR observations.

        Returns:
            Error messages of failed feeds.
        """
        with LatencyTimer() as timer:
            errors = await self._rates.refresh(self._feeds)
        self._metrics.record_latency("feed_refresh", timer.latency_us)

        for message in errors:
            await self._event_bus.notify(
                EventType.WARNING, NotificationLevel.WARNING, message, source="market"
            )

        computation = self._compute_spreads()
        self._history.record(computation.spreads)

        await self._event_bus.publish(
            Event(
                type=EventType.SPREADS_COMPUTED,
                payload=[spread_to_dict(s) for s in computation.spreads],
                timestamp_us=get_timestamp_us(),
                source="market",
            )
        )
        return errors

    def _compute_spreads(self) -> SpreadComputation:
        return self._calculator.compute(
            self._rates.snapshot(ExchangeName.ASTER),
            self._rates.snapshot(ExchangeName.HYPERLIQUID),
            self._mappings.all(),
        )

    # =========================================================================
    # Queries
    # =========================================================================

    def get_status(self) -> StrategyStatus:
        """Snapshot of the strategy."""
        allocated = self._positions.committed_capital
        return StrategyStatus(
            enabled=self._enabled,
            total_capital=self._config.total_capital,
            allocated_capital=allocated,
            available_capital=max(0.0, self._config.total_capital - allocated),
            open_positions=self._positions.open_positions(),
            total_pnl=self._positions.total_pnl,
            total_funding_earned=self._positions.total_funding,
            last_rebalance_ms=self._scheduler.last_rebalance_ms,
            next_rebalance_ms=self._scheduler.next_rebalance_ms if self._enabled else None,
            residual_exposures=self._recovery.residuals,
            rebalance_in_progress=self._scheduler.in_flight,
        )

    def spreads(self) -> list[FundingSpread]:
        """Current spreads for every mapped asset, widest first."""
        computed = self._compute_spreads().spreads
        return sorted(computed, key=lambda s: abs(s.annual_spread), reverse=True)

    def all_rates(self) -> list[FundingRate]:
        """Every observed funding rate, mapped or not."""
        return self._rates.all_rates()

    def open_positions(self) -> list[StrategyPosition]:
        return self._positions.open_positions()

    def closed_positions(self) -> list[StrategyPosition]:
        return self._positions.closed_positions()

    def rebalance_history(self) -> list[RebalanceEvent]:
        """Executed rebalances, newest first."""
        return list(self._rebalances)

    def events(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Recent notifications, newest first."""
        return self._event_log.entries(limit)

    @property
    def config(self) -> StrategyConfig:
        return self._config

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def is_running(self) -> bool:
        """Check if the strategy is enabled."""
        return self._enabled

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def rate_cache(self) -> FundingRateCache:
        return self._rates

    @property
    def mappings(self) -> MappingRegistry:
        return self._mappings

    @property
    def executor(self) -> PairExecutor:
        return self._executor

    # =========================================================================
    # Persistence
    # =========================================================================

    def snapshot(self) -> dict[str, Any]:
        """Serializable strategy state."""
        return {
            "enabled": self._enabled,
            "config": self._config.model_dump(mode="json"),
            "positions": [p.to_dict() for p in self._positions.open_positions()],
            "closed": [p.to_dict() for p in self._positions.closed_positions()],
            "history": [e.to_dict() for e in self._rebalances],
            "residuals": [r.to_dict() for r in self._recovery.residuals],
            "last_rebalance_ms": self._scheduler.last_rebalance_ms,
            "saved_at_ms": get_timestamp_ms(),
        }

    def persist(self) -> None:
        """Save the current state, logging instead of raising on failure."""
        try:
            self._store.save(self.snapshot())
        except OSError as e:
            logger.error(f"Failed to persist strategy state: {e}")

    def restore(self) -> bool:
        """
        Load persisted state.

        A strategy that was running when saved is marked for resume.

        Returns:
            True if state was restored.
        """
        state = self._store.load()
        if not state:
            return False

        try:
            config = StrategyConfig.model_validate(state["config"])
            positions = [StrategyPosition.from_dict(p) for p in state.get("positions", [])]
            closed = [StrategyPosition.from_dict(p) for p in state.get("closed", [])]
            history = [RebalanceEvent.from_dict(e) for e in state.get("history", [])]
            residuals = [ResidualExposure.from_dict(r) for r in state.get("residuals", [])]
        except (KeyError, TypeError, ValueError, ValidationError) as e:
            logger.error(f"Ignoring unreadable strategy state: {e}")
            return False

        self._apply_config(config)
        self._positions.restore(positions, closed)
        self._recovery.restore(residuals)
        self._rebalances.clear()
        self._rebalances.extend(history)
        self._scheduler.mark_rebalanced(int(state.get("last_rebalance_ms", 0)))
        self._resume_pending = bool(state.get("enabled", False))

        logger.info(
            f"Restored strategy state: {len(positions)} open, {len(closed)} closed positions, "
            f"{len(residuals)} residual exposures"
        )
        return True


@asynccontextmanager
async def create_engine(
    clients: Mapping[ExchangeName, ExchangeClient],
    feeds: Sequence[FundingFeed] = (),
    settings: Settings | None = None,
    state_store: StateStore | None = None,
    mappings: MappingRegistry | None = None,
    rate_cache: FundingRateCache | None = None,
) -> AsyncIterator[FundingArbitrageEngine]:
    """
    Create and manage engine lifecycle.

    Usage:
        async with create_engine(clients, feeds, settings) as engine:
            await engine.start()
    """
    engine = FundingArbitrageEngine(
        clients,
        feeds,
        settings=settings,
        state_store=state_store,
        mappings=mappings,
        rate_cache=rate_cache,
    )

    try:
        await engine.setup()
        yield engine
    finally:
        await engine.shutdown()
