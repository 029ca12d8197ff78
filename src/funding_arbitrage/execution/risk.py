"""
Pre-trade readiness validation.

Checks that each venue can fund its side of the capital that a rebalance
may deploy, and that wallets are configured for live trading. Runs before
any order is placed.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from funding_arbitrage.config.strategy import StrategyConfig
from funding_arbitrage.core.types import ExchangeClient, ExchangeName


logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    """Result of a pre-trade validation."""

    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    balances: dict[str, float] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.valid


class PreTradeValidator:
    """
    Validates balances and wallet configuration before deploying capital.

    Each exchange carries one leg of every pair, so it must hold half of
    the capital still to be deployed.
    """

    def __init__(
        self,
        clients: Mapping[ExchangeName, ExchangeClient],
        require_wallets: bool = False,
    ) -> None:
        """
        Initialize validator.

        Args:
            clients: Exchange clients keyed by venue.
            require_wallets: Treat missing wallet addresses as errors.
        """
        self._clients = clients
        self._require_wallets = require_wallets

    async def validate(
        self,
        config: StrategyConfig,
        committed: float = 0.0,
    ) -> ValidationResult:
        """
        Run all readiness checks.

        Args:
            config: Strategy configuration snapshot.
            committed: USD already held in open positions.

        Returns:
            ValidationResult with errors, warnings and fetched balances.
        """
        result = ValidationResult(valid=True)
        required = max(0.0, config.total_capital - committed) / 2

        self._check_wallets(config, result)

        exchanges = list(self._clients)
        balances = await asyncio.gather(
            *(self._clients[name].get_available_balance() for name in exchanges),
            return_exceptions=True,
        )

        for name, balance in zip(exchanges, balances, strict=True):
            if isinstance(balance, BaseException):
                result.errors.append(f"{name.value}: balance unavailable ({balance})")
                continue

            result.balances[name.value] = balance
            if balance < required:
                result.errors.append(
                    f"{name.value}: available ${balance:,.2f} below required ${required:,.2f}"
                )
            elif balance < required * 1.1:
                result.warnings.append(
                    f"{name.value}: available ${balance:,.2f} leaves little margin over ${required:,.2f}"
                )

        result.valid = not result.errors
        if not result.valid:
            logger.warning(f"Pre-trade validation failed: {'; '.join(result.errors)}")
        return result

    def _check_wallets(self, config: StrategyConfig, result: ValidationResult) -> None:
        """Check that a wallet address is configured per exchange."""
        for name in self._clients:
            if config.wallet_addresses.get(name.value):
                continue
            message = f"{name.value}: no wallet address configured"
            if self._require_wallets:
                result.errors.append(message)
            else:
                result.warnings.append(message)
