"""Simulation module for paper trading and demo mode."""

from funding_arbitrage.simulation.market import (
    FundingMarketSimulator,
    SimulatedAsset,
    SimulatedFundingFeed,
)
from funding_arbitrage.simulation.paper import PaperExchange, PaperFill


__all__ = [
    "FundingMarketSimulator",
    "PaperExchange",
    "PaperFill",
    "SimulatedAsset",
    "SimulatedFundingFeed",
]
