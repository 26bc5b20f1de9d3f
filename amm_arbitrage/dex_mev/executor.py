"""
Execution of crossed markets through the bundle executor contract.

For each ranked opportunity the buy leg and sell leg are assembled into one
ordered call list, wrapped in a single executor transaction and gas-estimated.
Opportunities whose estimate fails or looks suspicious are skipped; the first
one that estimates cleanly is submitted and the cycle ends there.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from ..exceptions import GasEstimationFailure, GasTooLarge, NoArbitrageSubmitted
from ..utils import format_ether, get_logger
from .config_schema import ExecutionSettings
from .market import MultipleCallData
from .solver import CrossedMarketDetails

logger = get_logger(__name__)


class Transport(Protocol):
    def estimate_gas(self, tx: Dict[str, Any]) -> int:
        ...

    def submit(self, tx: Dict[str, Any], gas_limit: int) -> Tuple[str, Dict[str, Any]]:
        ...


class ExecutorCallEncoder(Protocol):
    def encode_executor_call(
        self, volume: int, targets: Sequence[str], payloads: Sequence[bytes]
    ) -> bytes:
        ...


class ExecutionStatus(str, Enum):
    """Terminal state of one block's execution attempt."""

    SUBMITTED = "submitted"
    NO_OPPORTUNITY = "no_opportunity"
    ALL_ATTEMPTS_FAILED = "all_attempts_failed"


@dataclass
class ExecutionResult:
    """
    Outcome of an execution attempt.

    Attributes:
        status: Terminal state reached
        crossed_market: Opportunity that was submitted (if any)
        tx_hash: Transaction hash (None in dry-run mode)
        gas_estimate: Node gas estimate for the submitted transaction
        gas_limit: Gas limit the transaction was sent with
        receipt: Transaction receipt
        attempts: Opportunities tried before reaching this state
    """

    status: ExecutionStatus
    crossed_market: Optional[CrossedMarketDetails] = None
    tx_hash: Optional[str] = None
    gas_estimate: Optional[int] = None
    gas_limit: Optional[int] = None
    receipt: Optional[Dict[str, Any]] = None
    attempts: int = 0
    failures: List[str] = field(default_factory=list)


class ArbitrageExecutor:
    """Assembles and submits executor transactions for crossed markets."""

    def __init__(
        self,
        base_asset: str,
        executor_address: str,
        transport: Transport,
        encoder: ExecutorCallEncoder,
        settings: Optional[ExecutionSettings] = None,
        dry_run: bool = False,
        metrics=None,
    ):
        self.base_asset = base_asset
        self.executor_address = executor_address
        self.transport = transport
        self.encoder = encoder
        self.settings = settings or ExecutionSettings()
        self.dry_run = dry_run
        self.metrics = metrics

    def build_calls(self, crossed_market: CrossedMarketDetails) -> MultipleCallData:
        """
        Ordered call list: every buy-leg call, then the sell-leg call.

        The buy leg sends the bought tokens to the sell market (or to the
        executor when the sell market cannot take them directly); the sell leg
        pays the base asset back to the executor.
        """
        buy_from = crossed_market.buy_from_market
        sell_to = crossed_market.sell_to_market

        calls = MultipleCallData()
        calls.extend(
            buy_from.sell_tokens_to_next_market(
                self.base_asset,
                crossed_market.volume,
                sell_to,
                self.executor_address,
            )
        )

        intermediate = buy_from.get_tokens_out(
            self.base_asset, crossed_market.token_address, crossed_market.volume
        )
        sell_call_data = sell_to.sell_tokens(
            crossed_market.token_address, intermediate, self.executor_address
        )
        calls.targets.append(sell_to.address)
        calls.data.append(sell_call_data)
        return calls

    def build_transaction(self, crossed_market: CrossedMarketDetails) -> Dict[str, Any]:
        """Executor transaction (without gas/nonce) for one opportunity."""
        calls = self.build_calls(crossed_market)
        logger.debug(f"Executor calls: targets={calls.targets}")
        return {
            "to": self.executor_address,
            "data": self.encoder.encode_executor_call(
                crossed_market.volume, calls.targets, calls.data
            ),
            "value": 0,
        }

    def estimate(self, tx: Dict[str, Any]) -> int:
        """
        Gas estimate for ``tx``, checked against the sanity ceiling.

        Raises:
            GasEstimationFailure: If the node cannot estimate (likely revert)
            GasTooLarge: If the estimate exceeds the ceiling
        """
        estimate = self.transport.estimate_gas(tx)
        if estimate > self.settings.gas_ceiling:
            raise GasTooLarge(estimate, self.settings.gas_ceiling)
        return estimate

    def _record_skip(self, reason: str) -> None:
        if self.metrics is not None:
            self.metrics.record_opportunity_skipped(reason)

    def take_crossed_markets(
        self, best_crossed_markets: Sequence[CrossedMarketDetails]
    ) -> ExecutionResult:
        """
        Submit the highest-ranked opportunity that passes gas estimation.

        Only one transaction is ever submitted per call.

        Returns:
            ExecutionResult with status SUBMITTED or NO_OPPORTUNITY

        Raises:
            NoArbitrageSubmitted: If every opportunity failed estimation
            SubmissionFailure: If the node rejected the signed transaction
        """
        if not best_crossed_markets:
            return ExecutionResult(status=ExecutionStatus.NO_OPPORTUNITY)

        failures: List[str] = []
        for attempt, crossed_market in enumerate(best_crossed_markets, 1):
            logger.info(
                f"Send {format_ether(crossed_market.volume)} base asset, "
                f"expect {format_ether(crossed_market.profit)} profit "
                f"({crossed_market.token_address})"
            )
            tx = self.build_transaction(crossed_market)

            try:
                gas_estimate = self.estimate(tx)
            except GasTooLarge as e:
                logger.warning(str(e))
                failures.append(f"{crossed_market.token_address}: gas_too_large")
                self._record_skip("gas_too_large")
                continue
            except GasEstimationFailure as e:
                logger.warning(
                    f"Estimate gas failure for {crossed_market.token_address} "
                    f"(buy {crossed_market.buy_from_market.address}, "
                    f"sell {crossed_market.sell_to_market.address}): {e}"
                )
                failures.append(f"{crossed_market.token_address}: estimate_failed")
                self._record_skip("estimate_failed")
                continue

            gas_limit = gas_estimate * self.settings.gas_limit_multiplier

            if self.dry_run:
                logger.info(
                    f"[DRY RUN] Would submit with gas limit {gas_limit} "
                    f"(estimate {gas_estimate})"
                )
                return ExecutionResult(
                    status=ExecutionStatus.SUBMITTED,
                    crossed_market=crossed_market,
                    gas_estimate=gas_estimate,
                    gas_limit=gas_limit,
                    attempts=attempt,
                    failures=failures,
                )

            tx_hash, receipt = self.transport.submit(tx, gas_limit)
            logger.info(f"tx receipt: status={receipt.get('status')} hash={tx_hash}")
            return ExecutionResult(
                status=ExecutionStatus.SUBMITTED,
                crossed_market=crossed_market,
                tx_hash=tx_hash,
                gas_estimate=gas_estimate,
                gas_limit=gas_limit,
                receipt=receipt,
                attempts=attempt,
                failures=failures,
            )

        raise NoArbitrageSubmitted(len(best_crossed_markets), {"failures": failures})
