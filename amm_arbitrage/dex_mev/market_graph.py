"""
Market graph discovery.

Pages through every configured pool registry, keeps the pairs quoted against
the base asset, and groups them by the token they quote. Tokens with a single
market are dropped (nothing to arbitrage against), then markets without enough
base-asset depth are dropped after a first reserve refresh.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple

from ..utils import get_logger
from .config_schema import DiscoveryConfig, RegistryConfig
from .market import SwapCallEncoder, UniswapV2Market
from .reserves import ReserveSource, update_reserves

logger = get_logger(__name__)

MarketsByToken = Dict[str, List[UniswapV2Market]]


class RegistrySource(Protocol):
    def list_pairs(
        self, registry: str, offset: int, limit: int
    ) -> List[Tuple[str, str, str]]:
        ...


@dataclass
class GroupedMarkets:
    """The market graph plus the flat list used for batch reserve refresh."""

    markets_by_token: MarketsByToken = field(default_factory=dict)
    all_market_pairs: List[UniswapV2Market] = field(default_factory=list)


def quote_token_of(market: UniswapV2Market, base_asset: str) -> str:
    """The non-base token a base-quoted market trades."""
    return market.token1 if market.token0 == base_asset else market.token0


def group_by_token(
    markets: Sequence[UniswapV2Market], base_asset: str
) -> MarketsByToken:
    grouped: MarketsByToken = defaultdict(list)
    for market in markets:
        grouped[quote_token_of(market, base_asset)].append(market)
    return dict(grouped)


class MarketGraphBuilder:
    """
    Builds the market graph from one or more pool registries.

    Args:
        base_asset: Address every market must be quoted against
        registry_source: Pages through registries
        reserve_source: Batched reserve lookup used for the liquidity filter
        encoder: Swap-call encoder handed to every market
        config: Batch sizing, liquidity floor and token blacklist
    """

    def __init__(
        self,
        base_asset: str,
        registry_source: RegistrySource,
        reserve_source: ReserveSource,
        encoder: SwapCallEncoder,
        config: Optional[DiscoveryConfig] = None,
        market_factory: Callable[..., UniswapV2Market] = UniswapV2Market,
    ):
        self.base_asset = base_asset
        self.registry_source = registry_source
        self.reserve_source = reserve_source
        self.encoder = encoder
        self.config = config or DiscoveryConfig()
        self.market_factory = market_factory

    def fetch_markets(self, registry: RegistryConfig) -> List[UniswapV2Market]:
        """Page through one registry and build a market per base-quoted pair."""
        batch_size = self.config.batch_size
        markets: List[UniswapV2Market] = []
        skipped_blacklisted = 0

        for batch in range(self.config.batch_count_limit):
            offset = batch * batch_size
            pairs = self.registry_source.list_pairs(registry.factory, offset, batch_size)

            for token0, token1, pair_address in pairs:
                if token0 == self.base_asset and token1 != self.base_asset:
                    quote_token = token1
                elif token1 == self.base_asset and token0 != self.base_asset:
                    quote_token = token0
                else:
                    continue

                if quote_token in self.config.blacklisted_tokens:
                    skipped_blacklisted += 1
                    continue

                markets.append(
                    self.market_factory(
                        pair_address,
                        (token0, token1),
                        self.encoder,
                        protocol=registry.name,
                    )
                )

            if len(pairs) < batch_size:
                break
        else:
            logger.warning(
                f"{registry.name}: stopped after {self.config.batch_count_limit} batches "
                f"of {batch_size} pairs; raise discovery.batch_count_limit to scan the rest"
            )

        logger.info(
            f"{registry.name}: {len(markets)} markets quoted against base asset"
            + (f" ({skipped_blacklisted} blacklisted)" if skipped_blacklisted else "")
        )
        return markets

    async def fetch_all_markets(
        self, registries: Sequence[RegistryConfig]
    ) -> List[UniswapV2Market]:
        """Fetch every registry concurrently and join the results in order."""
        loop = asyncio.get_running_loop()
        tasks = [
            loop.run_in_executor(None, self.fetch_markets, registry)
            for registry in registries
        ]
        results = await asyncio.gather(*tasks)
        return [market for markets in results for market in markets]

    def group_markets(self, markets: Sequence[UniswapV2Market]) -> GroupedMarkets:
        """
        Group markets by quoted token and apply the admission filters.

        Runs one reserve refresh over the candidates, so it raises
        ReserveFetchFailure when that refresh fails.
        """
        candidates_by_token = {
            token: token_markets
            for token, token_markets in group_by_token(markets, self.base_asset).items()
            if len(token_markets) > 1
        }
        candidates = [m for token_markets in candidates_by_token.values() for m in token_markets]
        logger.info(
            f"{len(candidates)} markets across {len(candidates_by_token)} tokens "
            f"with more than one market"
        )

        update_reserves(self.reserve_source, candidates)

        liquid = [
            m
            for m in candidates
            if m.get_balance(self.base_asset) > self.config.min_liquidity_wei
        ]
        markets_by_token = {
            token: token_markets
            for token, token_markets in group_by_token(liquid, self.base_asset).items()
            if len(token_markets) > 1
        }
        all_market_pairs = [
            m for token_markets in markets_by_token.values() for m in token_markets
        ]

        logger.info(
            f"Market graph: {len(all_market_pairs)} markets across "
            f"{len(markets_by_token)} tokens "
            f"({len(candidates) - len(liquid)} below liquidity floor)"
        )
        return GroupedMarkets(
            markets_by_token=markets_by_token, all_market_pairs=all_market_pairs
        )

    async def build(self, registries: Sequence[RegistryConfig]) -> GroupedMarkets:
        """Discover, group and filter markets from every registry."""
        markets = await self.fetch_all_markets(registries)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.group_markets, markets)
