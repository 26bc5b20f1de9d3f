"""
Exception hierarchy for the AMM arbitrage bot.

Errors are grouped by how the caller should react:

- MarketError: deterministic pricing misuse or a drained pool, never retried
- FetchError: transient chain read failures, the current block is skipped
- ExecutionError: per-opportunity failures, the next opportunity is tried
"""

from typing import Any, Dict, Optional


class ArbitrageError(Exception):
    """Base exception for all arbitrage bot errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(ArbitrageError):
    """Raised when there are configuration-related issues."""

    pass


# Market errors


class MarketError(ArbitrageError):
    """Raised when a pool cannot quote the requested trade."""

    pass


class UnknownToken(MarketError):
    """Raised when a token is not one of the pool's two tokens."""

    def __init__(
        self,
        token: str,
        market: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(f"Market {market} does not operate on token {token}", details)
        self.token = token
        self.market = market


class InvalidReserves(MarketError):
    """Raised when reserves cannot satisfy the requested output amount."""

    def __init__(
        self,
        reserve_in: int,
        reserve_out: int,
        amount: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            f"Cannot take {amount} out of reserve {reserve_out} (reserve in: {reserve_in})",
            details,
        )
        self.reserve_in = reserve_in
        self.reserve_out = reserve_out
        self.amount = amount


class InvalidAmount(MarketError):
    """Raised when a trade amount is not strictly positive."""

    pass


# Fetch errors


class FetchError(ArbitrageError):
    """Raised when reading pool data from the chain fails."""

    pass


class RegistryFetchFailure(FetchError):
    """Raised when a pool registry page cannot be read."""

    def __init__(
        self,
        message: str,
        registry: Optional[str] = None,
        offset: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.registry = registry
        self.offset = offset


class ReserveFetchFailure(FetchError):
    """Raised when the batched reserve lookup fails or is inconsistent."""

    def __init__(
        self,
        message: str,
        pool_count: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.pool_count = pool_count


# Execution errors


class ExecutionError(ArbitrageError):
    """Raised when an arbitrage transaction cannot be executed."""

    pass


class GasEstimationFailure(ExecutionError):
    """Raised when the node refuses to estimate the arbitrage transaction."""

    pass


class GasTooLarge(ExecutionError):
    """Raised when a gas estimate exceeds the sanity ceiling."""

    def __init__(
        self,
        estimate: int,
        ceiling: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            f"EstimateGas succeeded, but suspiciously large: {estimate} > {ceiling}",
            details,
        )
        self.estimate = estimate
        self.ceiling = ceiling


class SubmissionFailure(ExecutionError):
    """Raised when a signed transaction is rejected by the node."""

    pass


class NoArbitrageSubmitted(ExecutionError):
    """Raised when every ranked opportunity failed before submission."""

    def __init__(
        self,
        attempts: int,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            f"No arbitrage submitted to relay ({attempts} opportunities tried)",
            details,
        )
        self.attempts = attempts
