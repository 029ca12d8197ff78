"""Mock implementations for testing."""

from tests.mocks.exchange import MockExchangeClient
from tests.mocks.market import ScriptedFundingFeed


__all__ = [
    "MockExchangeClient",
    "ScriptedFundingFeed",
]
