"""Execution module for pair orders, recovery and pre-trade checks."""

from funding_arbitrage.execution.executor import PairExecutor
from funding_arbitrage.execution.positions import PositionManager
from funding_arbitrage.execution.recovery import LegRecovery, RecoveryAction, RecoveryResult
from funding_arbitrage.execution.risk import PreTradeValidator, ValidationResult


__all__ = [
    "LegRecovery",
    "PairExecutor",
    "PositionManager",
    "PreTradeValidator",
    "RecoveryAction",
    "RecoveryResult",
    "ValidationResult",
]
