"""
Crossed-market detection across markets quoting the same token.

Each market is priced at a small probe volume: the tokens it hands out for the
probe amount of base asset, and the tokens it needs to pay the probe amount of
base asset back. A pair of markets is crossed when one hands out more tokens
than the other needs.
"""

from dataclasses import dataclass
from typing import List, Mapping, Optional, Sequence

from ..exceptions import InvalidReserves
from ..utils import format_ether, get_logger
from .config_schema import SearchConfig
from .market import UniswapV2Market
from .solver import ArbitrageSolver, CrossedMarketDetails, Crossing

logger = get_logger(__name__)


@dataclass
class PricedMarket:
    market: UniswapV2Market
    buy_token_price: int  # tokens needed to receive the probe volume of base asset
    sell_token_price: int  # tokens received for the probe volume of base asset


class CrossedMarketDetector:
    """Finds and ranks crossed markets for every token in the market graph."""

    def __init__(
        self,
        base_asset: str,
        config: Optional[SearchConfig] = None,
        solver: Optional[ArbitrageSolver] = None,
    ):
        self.base_asset = base_asset
        self.config = config or SearchConfig()
        self.solver = solver or ArbitrageSolver(base_asset, self.config)

    def price_markets(
        self, token_address: str, markets: Sequence[UniswapV2Market]
    ) -> List[PricedMarket]:
        """Probe-volume prices for each market; drained markets are skipped."""
        probe = self.config.probe_volume_wei
        priced = []
        for market in markets:
            try:
                priced.append(
                    PricedMarket(
                        market=market,
                        buy_token_price=market.get_tokens_in(
                            token_address, self.base_asset, probe
                        ),
                        sell_token_price=market.get_tokens_out(
                            self.base_asset, token_address, probe
                        ),
                    )
                )
            except InvalidReserves as e:
                logger.debug(f"Skipping {market.address} for {token_address}: {e}")
        return priced

    def find_crossed_markets(
        self, token_address: str, markets: Sequence[UniswapV2Market]
    ) -> List[Crossing]:
        """
        Every ordered (sell_to, buy_from) pair whose prices cross.

        All pairs are kept, not only the widest spread: a deeper market with a
        narrower spread can still produce the larger profit once sized.
        """
        priced = self.price_markets(token_address, markets)
        crossed: List[Crossing] = []
        for sell_to in priced:
            for buy_from in priced:
                if buy_from.market is sell_to.market:
                    continue
                if buy_from.sell_token_price > sell_to.buy_token_price:
                    crossed.append((sell_to.market, buy_from.market))
        return crossed

    def evaluate_markets(
        self, markets_by_token: Mapping[str, Sequence[UniswapV2Market]]
    ) -> List[CrossedMarketDetails]:
        """
        Best sized opportunity per token, above the profit floor, most profitable first.
        """
        best_crossed_markets: List[CrossedMarketDetails] = []

        for token_address, markets in markets_by_token.items():
            if len(markets) < 2:
                continue

            crossed_markets = self.find_crossed_markets(token_address, markets)
            if not crossed_markets:
                continue

            best = self.solver.get_best_crossed_market(crossed_markets, token_address)
            if best is not None and best.profit > self.config.min_profit_wei:
                best_crossed_markets.append(best)
            elif best is not None:
                logger.debug(
                    f"{token_address}: best profit {format_ether(best.profit)} "
                    f"below floor {format_ether(self.config.min_profit_wei)}"
                )

        best_crossed_markets.sort(key=lambda c: c.profit, reverse=True)
        return best_crossed_markets
