"""Persistence module for strategy state."""

from funding_arbitrage.storage.state_store import InMemoryStateStore, JsonFileStateStore


__all__ = ["InMemoryStateStore", "JsonFileStateStore"]
