"""
Chain access for the arbitrage bot using web3.

DEXClient is the only place that talks to the node. It provides:

- the pool registry listing (paged through the batch query contract)
- the batched reserve lookup (one eth_call for every tracked pool)
- gas estimation and signed submission of executor transactions

CallEncoder builds the raw calldata for pair swaps and the executor entry
point; it needs no connection.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import encode
from eth_account.signers.local import LocalAccount
from eth_utils import function_signature_to_4byte_selector
from web3 import Web3

from ..exceptions import (
    GasEstimationFailure,
    RegistryFetchFailure,
    ReserveFetchFailure,
    SubmissionFailure,
)
from ..utils import get_logger
from .abi import (
    DEX_QUERY_ABI,
    EXECUTOR_ARG_TYPES,
    EXECUTOR_SIGNATURE,
    PAIR_SWAP_ARG_TYPES,
    PAIR_SWAP_SIGNATURE,
)
from .config_schema import ExecutionSettings

logger = get_logger(__name__)

PairTriple = Tuple[str, str, str]


class CallEncoder:
    """Encodes pair swap calls and the executor's multi-call entry point."""

    SWAP_SELECTOR = function_signature_to_4byte_selector(PAIR_SWAP_SIGNATURE)
    EXECUTOR_SELECTOR = function_signature_to_4byte_selector(EXECUTOR_SIGNATURE)

    def encode_swap_call(self, amount0_out: int, amount1_out: int, recipient: str) -> bytes:
        """Calldata for swap(amount0Out, amount1Out, to, "")."""
        return self.SWAP_SELECTOR + encode(
            PAIR_SWAP_ARG_TYPES,
            [amount0_out, amount1_out, Web3.to_checksum_address(recipient), b""],
        )

    def encode_executor_call(
        self, volume: int, targets: Sequence[str], payloads: Sequence[bytes]
    ) -> bytes:
        """Calldata for uniswapWeth(volume, targets, payloads)."""
        if len(targets) != len(payloads):
            raise ValueError(
                f"targets/payloads length mismatch: {len(targets)} != {len(payloads)}"
            )
        return self.EXECUTOR_SELECTOR + encode(
            EXECUTOR_ARG_TYPES,
            [
                volume,
                [Web3.to_checksum_address(t) for t in targets],
                [bytes(p) for p in payloads],
            ],
        )


class DEXClient:
    """Client for reading pools and submitting executor transactions via web3."""

    def __init__(
        self,
        w3: Web3,
        query_contract: str,
        settings: Optional[ExecutionSettings] = None,
        account: Optional[LocalAccount] = None,
        chain_id: Optional[int] = None,
    ):
        self.w3 = w3
        self.settings = settings or ExecutionSettings()
        self.account = account
        self.chain_id = chain_id
        self.query = w3.eth.contract(
            address=Web3.to_checksum_address(query_contract), abi=DEX_QUERY_ABI
        )

        if account is None:
            logger.warning("No signing account loaded - transactions cannot be submitted")
        else:
            logger.info(f"Loaded account: {account.address}")

    @property
    def sender_address(self) -> Optional[str]:
        return self.account.address if self.account else None

    # Registry source

    def list_pairs(self, registry: str, offset: int, limit: int) -> List[PairTriple]:
        """
        Read one page of (token0, token1, pair) triples from a factory.

        A page shorter than ``limit`` marks the end of the registry.
        """
        try:
            pairs = self.query.functions.getPairsByIndexRange(
                Web3.to_checksum_address(registry), offset, offset + limit
            ).call()
        except Exception as e:
            raise RegistryFetchFailure(
                f"Failed to list pairs of {registry} at offset {offset}: {e}",
                registry=registry,
                offset=offset,
            ) from e

        return [
            (
                Web3.to_checksum_address(pair[0]),
                Web3.to_checksum_address(pair[1]),
                Web3.to_checksum_address(pair[2]),
            )
            for pair in pairs
        ]

    # Reserve source

    def get_reserves(self, pool_addresses: Sequence[str]) -> List[Tuple[int, int]]:
        """
        Fetch (reserve0, reserve1) for every pool in a single call.

        Results are positionally correlated with ``pool_addresses``.
        """
        try:
            reserves = self.query.functions.getReservesByPairs(
                [Web3.to_checksum_address(a) for a in pool_addresses]
            ).call()
        except Exception as e:
            raise ReserveFetchFailure(
                f"Failed to fetch reserves for {len(pool_addresses)} pools: {e}",
                pool_count=len(pool_addresses),
            ) from e

        if len(reserves) != len(pool_addresses):
            raise ReserveFetchFailure(
                f"Reserve lookup returned {len(reserves)} rows for "
                f"{len(pool_addresses)} pools",
                pool_count=len(pool_addresses),
            )
        return [(int(row[0]), int(row[1])) for row in reserves]

    # Transport

    def get_block_number(self) -> int:
        return self.w3.eth.block_number

    def estimate_gas(self, tx: Dict[str, Any]) -> int:
        """
        Estimate gas for ``tx`` from the signer address.

        Raises:
            GasEstimationFailure: If the node rejects the estimate (usually a revert)
        """
        params = dict(tx)
        if self.sender_address and "from" not in params:
            params["from"] = self.sender_address
        try:
            return int(self.w3.eth.estimate_gas(params))
        except Exception as e:
            raise GasEstimationFailure(f"Estimate gas failure: {e}") from e

    def _gas_price(self) -> int:
        """Current gas price, capped at the configured maximum."""
        current = self.w3.eth.gas_price
        ceiling = Web3.to_wei(self.settings.max_gas_price_gwei, "gwei")
        return min(current, ceiling)

    def submit(self, tx: Dict[str, Any], gas_limit: int) -> Tuple[str, Dict[str, Any]]:
        """
        Sign, send and wait for ``tx`` with an explicit gas limit.

        Returns:
            Tuple of (tx_hash_hex, receipt)

        Raises:
            SubmissionFailure: If no account is loaded or the node rejects the tx
        """
        if self.account is None:
            raise SubmissionFailure("No private key loaded, cannot sign transaction")

        try:
            params = dict(tx)
            params.update(
                {
                    "from": self.account.address,
                    "gas": gas_limit,
                    "gasPrice": self._gas_price(),
                    "nonce": self.w3.eth.get_transaction_count(
                        self.account.address, "pending"
                    ),
                    "chainId": self.chain_id or self.w3.eth.chain_id,
                }
            )
            signed_tx = self.account.sign_transaction(params)
            tx_hash = self.w3.eth.send_raw_transaction(signed_tx.raw_transaction)
        except Exception as e:
            raise SubmissionFailure(f"Failed to submit transaction: {e}") from e

        tx_hash_hex = self.w3.to_hex(tx_hash)
        logger.info(f"Transaction submitted: {tx_hash_hex}")

        try:
            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.settings.receipt_timeout_sec
            )
        except Exception as e:
            raise SubmissionFailure(
                f"Transaction {tx_hash_hex} sent but receipt unavailable: {e}",
                {"tx_hash": tx_hash_hex},
            ) from e

        return tx_hash_hex, dict(receipt)
