"""
AMM Crossed-Market Arbitrage Bot.

Watches every Uniswap V2 style pool quoted against a base asset, detects pairs
of pools whose prices for the same token have crossed, sizes the round trip
and executes the best one atomically through an executor contract.
"""

PROJECT_NAME = "AMM-Crossed-Market-Arbitrage"
VERSION = "0.1.0"

from amm_arbitrage.exceptions import (
    ArbitrageError,
    ConfigurationError,
    ExecutionError,
    FetchError,
    MarketError,
)

__all__ = [
    "PROJECT_NAME",
    "VERSION",
    "ArbitrageError",
    "ConfigurationError",
    "ExecutionError",
    "FetchError",
    "MarketError",
]
