"""
On-chain side of the bot: market graph discovery, reserve refresh, crossed
market detection and sizing, and executor transaction assembly.
"""

from .detector import CrossedMarketDetector
from .dex_client import CallEncoder, DEXClient
from .executor import ArbitrageExecutor, ExecutionResult, ExecutionStatus
from .market import UniswapV2Market
from .market_graph import GroupedMarkets, MarketGraphBuilder
from .reserves import update_reserves
from .runner import ArbitrageRunner, create_runner
from .solver import ArbitrageSolver, CrossedMarketDetails

__all__ = [
    "ArbitrageExecutor",
    "ArbitrageRunner",
    "ArbitrageSolver",
    "CallEncoder",
    "CrossedMarketDetails",
    "CrossedMarketDetector",
    "DEXClient",
    "ExecutionResult",
    "ExecutionStatus",
    "GroupedMarkets",
    "MarketGraphBuilder",
    "UniswapV2Market",
    "create_runner",
    "update_reserves",
]
