"""
Trade-size search for crossed markets.

For a crossing (buy the token on one market, sell it on another) the profit of
a round trip is evaluated on an ascending ladder of base-asset volumes. The walk
stops at the first volume that does worse than the best so far and tries the
midpoint between the two once. This assumes the profit curve is unimodal and
finds a good volume, not a guaranteed optimum.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from ..utils import format_ether, get_logger
from .config_schema import SearchConfig
from .market import UniswapV2Market

logger = get_logger(__name__)

# (sell_to_market, buy_from_market)
Crossing = Tuple[UniswapV2Market, UniswapV2Market]


@dataclass
class CrossedMarketDetails:
    """A sized arbitrage between two markets quoting the same token."""

    profit: int  # base-asset units
    volume: int  # base-asset units sent to buy_from_market
    token_address: str
    buy_from_market: UniswapV2Market
    sell_to_market: UniswapV2Market


def format_crossed_market(crossed_market: CrossedMarketDetails) -> str:
    """Multi-line human-readable summary of a crossed market."""
    buy = crossed_market.buy_from_market
    sell = crossed_market.sell_to_market
    return (
        f"Profit: {format_ether(crossed_market.profit)} "
        f"Volume: {format_ether(crossed_market.volume)}\n"
        f"{buy.protocol} ({buy.address})\n"
        f"  {buy.token0} => {buy.token1}\n"
        f"{sell.protocol} ({sell.address})\n"
        f"  {sell.token0} => {sell.token1}\n"
    )


class ArbitrageSolver:
    """Finds the most profitable volume for crossed markets."""

    def __init__(self, base_asset: str, config: Optional[SearchConfig] = None):
        self.base_asset = base_asset
        self.config = config or SearchConfig()

    def calculate_profit(
        self,
        buy_from_market: UniswapV2Market,
        sell_to_market: UniswapV2Market,
        token_address: str,
        volume: int,
    ) -> int:
        """Base asset gained by buying with ``volume`` and selling everything back."""
        tokens_out = buy_from_market.get_tokens_out(self.base_asset, token_address, volume)
        proceeds = sell_to_market.get_tokens_out(token_address, self.base_asset, tokens_out)
        return proceeds - volume

    def find_best_volume(
        self,
        buy_from_market: UniswapV2Market,
        sell_to_market: UniswapV2Market,
        token_address: str,
        test_volumes: Optional[Sequence[int]] = None,
    ) -> Optional[CrossedMarketDetails]:
        """
        Walk the volume ladder for one crossing.

        Returns:
            The best sized opportunity, or None if no volume is profitable
        """
        volumes = self.config.test_volumes_wei if test_volumes is None else test_volumes
        best_volume: Optional[int] = None
        best_profit = 0

        for size in volumes:
            profit = self.calculate_profit(
                buy_from_market, sell_to_market, token_address, size
            )
            if best_volume is not None and profit < best_profit:
                # The next size up lost value, meet halfway once
                try_size = (size + best_volume) // 2
                try_profit = self.calculate_profit(
                    buy_from_market, sell_to_market, token_address, try_size
                )
                if try_profit > best_profit:
                    best_volume, best_profit = try_size, try_profit
                break
            best_volume, best_profit = size, profit

        if best_volume is None or best_profit <= 0:
            return None

        return CrossedMarketDetails(
            profit=best_profit,
            volume=best_volume,
            token_address=token_address,
            buy_from_market=buy_from_market,
            sell_to_market=sell_to_market,
        )

    def get_best_crossed_market(
        self, crossed_markets: Iterable[Crossing], token_address: str
    ) -> Optional[CrossedMarketDetails]:
        """Size every crossing of a token and keep the most profitable one."""
        best: Optional[CrossedMarketDetails] = None
        for sell_to_market, buy_from_market in crossed_markets:
            candidate = self.find_best_volume(
                buy_from_market, sell_to_market, token_address
            )
            if candidate is None:
                continue
            if best is None or candidate.profit > best.profit:
                best = candidate
        return best
