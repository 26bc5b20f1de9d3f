"""
Unit tests for the web3-backed chain client and call encoding.

The node is replaced by a Mock; signing uses a real throwaway key.
"""

import unittest
from unittest.mock import Mock

from eth_abi import decode
from eth_account import Account
from eth_utils import function_signature_to_4byte_selector
from web3 import Web3

from amm_arbitrage.dex_mev.config_schema import ExecutionSettings
from amm_arbitrage.dex_mev.dex_client import CallEncoder, DEXClient
from amm_arbitrage.exceptions import (
    GasEstimationFailure,
    RegistryFetchFailure,
    ReserveFetchFailure,
    SubmissionFailure,
)

QUERY = "0x5EF1009b9FCD4fec3094a5564047e190D72Bd511"
FACTORY = "0x5C69bEe701ef814a2B6a3EDD4B1652CB9cc5aA6f"
WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
PAIR = "0x1111111111111111111111111111111111111111"
EXECUTOR = "0x9999999999999999999999999999999999999999"
TEST_KEY = "0x" + "4c" * 32


class TestCallEncoder(unittest.TestCase):
    """Test swap and executor calldata."""

    def setUp(self):
        self.encoder = CallEncoder()

    def test_swap_selector(self):
        # Uniswap V2 pair swap(uint256,uint256,address,bytes)
        self.assertEqual(CallEncoder.SWAP_SELECTOR, bytes.fromhex("022c0d9f"))

    def test_encode_swap_call(self):
        data = self.encoder.encode_swap_call(0, 12345, EXECUTOR)

        self.assertEqual(data[:4], CallEncoder.SWAP_SELECTOR)
        amount0_out, amount1_out, recipient, payload = decode(
            ["uint256", "uint256", "address", "bytes"], data[4:]
        )
        self.assertEqual((amount0_out, amount1_out), (0, 12345))
        self.assertEqual(Web3.to_checksum_address(recipient), EXECUTOR)
        self.assertEqual(payload, b"")

    def test_encode_executor_call(self):
        data = self.encoder.encode_executor_call(
            10**18, [PAIR, EXECUTOR], [b"\x01\x02", b"\x03"]
        )

        self.assertEqual(
            data[:4], function_signature_to_4byte_selector("uniswapWeth(uint256,address[],bytes[])")
        )
        volume, targets, payloads = decode(["uint256", "address[]", "bytes[]"], data[4:])
        self.assertEqual(volume, 10**18)
        self.assertEqual([Web3.to_checksum_address(t) for t in targets], [PAIR, EXECUTOR])
        self.assertEqual(list(payloads), [b"\x01\x02", b"\x03"])

    def test_encode_executor_call_length_mismatch(self):
        with self.assertRaises(ValueError):
            self.encoder.encode_executor_call(1, [PAIR], [])


class TestDEXClientReads(unittest.TestCase):
    """Test registry and reserve reads."""

    def setUp(self):
        self.w3 = Mock()
        self.query = Mock()
        self.w3.eth.contract.return_value = self.query
        self.client = DEXClient(self.w3, QUERY.lower())

    def test_binds_query_contract(self):
        kwargs = self.w3.eth.contract.call_args.kwargs
        self.assertEqual(kwargs["address"], QUERY)

    def test_list_pairs(self):
        page = self.query.functions.getPairsByIndexRange.return_value
        page.call.return_value = [[WETH.lower(), DAI.lower(), PAIR]]

        pairs = self.client.list_pairs(FACTORY, 2000, 1000)

        self.query.functions.getPairsByIndexRange.assert_called_once_with(FACTORY, 2000, 3000)
        self.assertEqual(pairs, [(WETH, DAI, PAIR)])

    def test_list_pairs_failure(self):
        page = self.query.functions.getPairsByIndexRange.return_value
        page.call.side_effect = ConnectionError("connection refused")

        with self.assertRaises(RegistryFetchFailure) as ctx:
            self.client.list_pairs(FACTORY, 0, 1000)

        self.assertEqual(ctx.exception.offset, 0)
        self.assertEqual(ctx.exception.registry, FACTORY)

    def test_get_reserves(self):
        lookup = self.query.functions.getReservesByPairs.return_value
        lookup.call.return_value = [[1, 2, 1_700_000_000], [3, 4, 1_700_000_000]]

        reserves = self.client.get_reserves([PAIR, EXECUTOR])

        self.assertEqual(reserves, [(1, 2), (3, 4)])
        self.query.functions.getReservesByPairs.assert_called_once_with([PAIR, EXECUTOR])

    def test_get_reserves_failure(self):
        lookup = self.query.functions.getReservesByPairs.return_value
        lookup.call.side_effect = TimeoutError("timed out")

        with self.assertRaises(ReserveFetchFailure) as ctx:
            self.client.get_reserves([PAIR])
        self.assertEqual(ctx.exception.pool_count, 1)

    def test_get_reserves_length_mismatch(self):
        lookup = self.query.functions.getReservesByPairs.return_value
        lookup.call.return_value = [[1, 2, 0]]

        with self.assertRaises(ReserveFetchFailure):
            self.client.get_reserves([PAIR, EXECUTOR])

    def test_get_block_number(self):
        self.w3.eth.block_number = 18_000_000
        self.assertEqual(self.client.get_block_number(), 18_000_000)


class TestDEXClientTransport(unittest.TestCase):
    """Test gas estimation and submission."""

    def setUp(self):
        self.w3 = Mock()
        self.w3.to_hex = Web3.to_hex
        self.w3.eth.gas_price = Web3.to_wei(20, "gwei")
        self.w3.eth.get_transaction_count.return_value = 7
        self.w3.eth.send_raw_transaction.return_value = b"\xaa" * 32
        self.w3.eth.wait_for_transaction_receipt.return_value = {"status": 1, "gasUsed": 180_000}
        self.account = Account.from_key(TEST_KEY)
        self.settings = ExecutionSettings(max_gas_price_gwei=50, receipt_timeout_sec=30)
        self.client = DEXClient(
            self.w3, QUERY, settings=self.settings, account=self.account, chain_id=1
        )
        self.tx = {"to": EXECUTOR, "data": b"\x12\x34", "value": 0}

    def test_sender_address(self):
        self.assertEqual(self.client.sender_address, self.account.address)
        self.assertIsNone(DEXClient(self.w3, QUERY).sender_address)

    def test_estimate_gas_from_signer(self):
        self.w3.eth.estimate_gas.return_value = 250_000

        self.assertEqual(self.client.estimate_gas(self.tx), 250_000)
        params = self.w3.eth.estimate_gas.call_args.args[0]
        self.assertEqual(params["from"], self.account.address)
        self.assertNotIn("from", self.tx)

    def test_estimate_gas_failure(self):
        self.w3.eth.estimate_gas.side_effect = ValueError("execution reverted")

        with self.assertRaises(GasEstimationFailure) as ctx:
            self.client.estimate_gas(self.tx)
        self.assertIn("execution reverted", str(ctx.exception))

    def test_gas_price_capped(self):
        self.w3.eth.gas_price = Web3.to_wei(80, "gwei")
        self.assertEqual(self.client._gas_price(), Web3.to_wei(50, "gwei"))

    def test_submit(self):
        tx_hash, receipt = self.client.submit(self.tx, gas_limit=500_000)

        self.assertEqual(tx_hash, "0x" + "aa" * 32)
        self.assertEqual(receipt["status"], 1)
        self.w3.eth.get_transaction_count.assert_called_once_with(
            self.account.address, "pending"
        )
        raw = self.w3.eth.send_raw_transaction.call_args.args[0]
        self.assertIsInstance(raw, bytes)
        self.w3.eth.wait_for_transaction_receipt.assert_called_once_with(
            b"\xaa" * 32, timeout=30
        )

    def test_submit_without_account(self):
        client = DEXClient(self.w3, QUERY)
        with self.assertRaises(SubmissionFailure):
            client.submit(self.tx, gas_limit=500_000)
        self.w3.eth.send_raw_transaction.assert_not_called()

    def test_submit_rejected(self):
        self.w3.eth.send_raw_transaction.side_effect = ValueError("nonce too low")

        with self.assertRaises(SubmissionFailure) as ctx:
            self.client.submit(self.tx, gas_limit=500_000)
        self.assertIn("nonce too low", str(ctx.exception))

    def test_submit_receipt_timeout(self):
        self.w3.eth.wait_for_transaction_receipt.side_effect = TimeoutError("120s")

        with self.assertRaises(SubmissionFailure) as ctx:
            self.client.submit(self.tx, gas_limit=500_000)
        self.assertEqual(ctx.exception.details["tx_hash"], "0x" + "aa" * 32)


if __name__ == "__main__":
    unittest.main()
