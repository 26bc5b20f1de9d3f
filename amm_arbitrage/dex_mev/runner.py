"""
Block-driven arbitrage loop.

On every new block: refresh all reserves in one call, find and size crossed
markets, and try to execute the best one. Cycles run one after another on a
single event loop, so reserve updates never overlap with a cycle reading them.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

import aiohttp

from ..exceptions import FetchError, NoArbitrageSubmitted, SubmissionFailure
from ..metrics import ArbitrageMetrics
from ..utils import format_duration, format_ether, get_logger
from .config_schema import ArbitrageConfig
from .detector import CrossedMarketDetector
from .dex_client import CallEncoder, DEXClient
from .executor import ArbitrageExecutor, ExecutionResult, ExecutionStatus
from .market_graph import GroupedMarkets, MarketGraphBuilder
from .reserves import ReserveSource, update_reserves
from .solver import CrossedMarketDetails, format_crossed_market

logger = get_logger(__name__)


class BlockSource(Protocol):
    def get_block_number(self) -> int:
        ...


@dataclass
class CycleOutcome:
    """
    Result of evaluating one block.

    ``status`` is None when the cycle was aborted before execution
    (reserve refresh or submission failure); ``error`` then says why.
    """

    block_number: int
    status: Optional[ExecutionStatus] = None
    crossed_markets: List[CrossedMarketDetails] = field(default_factory=list)
    execution: Optional[ExecutionResult] = None
    error: Optional[str] = None
    duration_seconds: float = 0.0


class ArbitrageRunner:
    """Runs the per-block evaluation cycle over a fixed market graph."""

    def __init__(
        self,
        markets: GroupedMarkets,
        reserve_source: ReserveSource,
        detector: CrossedMarketDetector,
        executor: ArbitrageExecutor,
        metrics: Optional[ArbitrageMetrics] = None,
        healthcheck_url: Optional[str] = None,
        healthcheck_timeout_sec: float = 10.0,
    ):
        self.markets = markets
        self.reserve_source = reserve_source
        self.detector = detector
        self.executor = executor
        self.metrics = metrics
        self.healthcheck_url = healthcheck_url
        self.healthcheck_timeout_sec = healthcheck_timeout_sec

        if metrics is not None:
            metrics.update_pools_tracked(len(markets.all_market_pairs))

    async def healthcheck(self) -> None:
        """Ping the healthcheck URL; failures are logged only."""
        if not self.healthcheck_url:
            return
        timeout = aiohttp.ClientTimeout(total=self.healthcheck_timeout_sec)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(self.healthcheck_url) as response:
                    if response.status >= 400:
                        logger.error(f"Healthcheck returned HTTP {response.status}")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Healthcheck ping failed: {e}")

    def _record_failure(self, stage: str) -> None:
        if self.metrics is not None:
            self.metrics.record_cycle_failure(stage)

    async def evaluate_block(self, block_number: int) -> CycleOutcome:
        """Run one full cycle for ``block_number``."""
        loop = asyncio.get_running_loop()
        start = time.perf_counter()
        outcome = CycleOutcome(block_number=block_number)

        try:
            await loop.run_in_executor(
                None, update_reserves, self.reserve_source, self.markets.all_market_pairs
            )
        except FetchError as e:
            logger.error(f"Block {block_number}: skipping, reserve refresh failed: {e}")
            self._record_failure("reserves")
            outcome.error = str(e)
            outcome.duration_seconds = time.perf_counter() - start
            return outcome

        crossed_markets = self.detector.evaluate_markets(self.markets.markets_by_token)
        outcome.crossed_markets = crossed_markets

        if not crossed_markets:
            logger.info(f"Block {block_number}: No crossed markets")
            outcome.status = ExecutionStatus.NO_OPPORTUNITY
        else:
            for crossed_market in crossed_markets:
                logger.info(format_crossed_market(crossed_market))
            await self._execute(outcome, crossed_markets)

        outcome.duration_seconds = time.perf_counter() - start
        if self.metrics is not None:
            self.metrics.record_cycle(
                block_number,
                len(crossed_markets),
                crossed_markets[0].profit if crossed_markets else 0,
                outcome.duration_seconds,
            )
        logger.debug(
            f"Block {block_number} evaluated in {format_duration(outcome.duration_seconds)}"
        )
        return outcome

    async def _execute(
        self, outcome: CycleOutcome, crossed_markets: List[CrossedMarketDetails]
    ) -> None:
        loop = asyncio.get_running_loop()
        try:
            result = await loop.run_in_executor(
                None, self.executor.take_crossed_markets, crossed_markets
            )
        except NoArbitrageSubmitted as e:
            logger.warning(f"Block {outcome.block_number}: {e}")
            outcome.status = ExecutionStatus.ALL_ATTEMPTS_FAILED
            outcome.error = str(e)
            return
        except SubmissionFailure as e:
            logger.error(f"Block {outcome.block_number}: {e}")
            self._record_failure("submission")
            outcome.error = str(e)
            return

        outcome.execution = result
        outcome.status = result.status
        if result.status is ExecutionStatus.SUBMITTED:
            if self.metrics is not None:
                self.metrics.record_submission(dry_run=self.executor.dry_run)
            logger.info(
                f"Block {outcome.block_number}: submitted "
                f"{result.tx_hash or '[dry run]'} for expected profit "
                f"{format_ether(result.crossed_market.profit)}"
            )
            if not self.executor.dry_run:
                await self.healthcheck()

    async def run(
        self, block_source: BlockSource, poll_sec: float = 2.0, once: bool = False
    ) -> None:
        """
        Evaluate every new block until cancelled.

        The block number is polled every ``poll_sec``; a cycle always finishes
        before the next poll, so blocks that arrive meanwhile are coalesced.
        """
        loop = asyncio.get_running_loop()
        last_block: Optional[int] = None

        while True:
            try:
                block_number = await loop.run_in_executor(
                    None, block_source.get_block_number
                )
            except Exception as e:
                logger.error(f"Failed to read block number: {e}")
                self._record_failure("block_number")
                if once:
                    raise
                await asyncio.sleep(poll_sec)
                continue

            if block_number != last_block:
                last_block = block_number
                await self.evaluate_block(block_number)
                if once:
                    return

            await asyncio.sleep(poll_sec)


async def create_runner(
    config: ArbitrageConfig,
    dex_client: DEXClient,
    dry_run: bool = False,
    metrics: Optional[ArbitrageMetrics] = None,
) -> ArbitrageRunner:
    """Discover the market graph and wire every component from ``config``."""
    encoder = CallEncoder()

    builder = MarketGraphBuilder(
        base_asset=config.base_asset,
        registry_source=dex_client,
        reserve_source=dex_client,
        encoder=encoder,
        config=config.discovery,
    )
    logger.info(f"Discovering markets from {len(config.registries)} registries...")
    markets = await builder.build(config.registries)

    detector = CrossedMarketDetector(config.base_asset, config.search)
    executor = ArbitrageExecutor(
        base_asset=config.base_asset,
        executor_address=config.executor_contract,
        transport=dex_client,
        encoder=encoder,
        settings=config.execution,
        dry_run=dry_run,
        metrics=metrics,
    )

    return ArbitrageRunner(
        markets=markets,
        reserve_source=dex_client,
        detector=detector,
        executor=executor,
        metrics=metrics,
        healthcheck_url=config.healthcheck_url,
    )
