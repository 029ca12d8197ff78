"""
Cross-Exchange Funding Rate Arbitrage Engine.

An asynchronous strategy service that ranks funding-rate spreads between
AsterDEX and HyperLiquid perpetuals, holds delta-neutral long/short pairs
on the widest spreads and rebalances them on a schedule.
"""

__version__ = "1.0.0"
__author__ = "Tim"
