"""Telemetry module for logging, metrics, and reporting."""

from funding_arbitrage.telemetry.event_log import EventLog
from funding_arbitrage.telemetry.logger import AsyncLogger, setup_logging
from funding_arbitrage.telemetry.metrics import MetricsCollector, StrategyStats
from funding_arbitrage.telemetry.reporter import CLIReporter


__all__ = [
    "AsyncLogger",
    "CLIReporter",
    "EventLog",
    "MetricsCollector",
    "StrategyStats",
    "setup_logging",
]
