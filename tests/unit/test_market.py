"""
Unit tests for the constant-product market model.

Tests cover:
- Exact-input / exact-output swap formulas
- Reserve replacement and validation
- Swap-call output slot selection
- Receive capability and buy-leg routing
- Property-based tests for the pricing formulas
"""

import unittest
from unittest.mock import Mock

from hypothesis import given
from hypothesis import strategies as st

from amm_arbitrage.dex_mev.market import (
    UniswapV2Market,
    get_amount_in,
    get_amount_out,
)
from amm_arbitrage.exceptions import InvalidAmount, InvalidReserves, UnknownToken
from amm_arbitrage.utils import ETHER

WETH = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
DAI = "0x6B175474E89094C44Da98b954EedeAC495271d0F"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
PAIR_A = "0x1111111111111111111111111111111111111111"
PAIR_B = "0x2222222222222222222222222222222222222222"
EXECUTOR = "0x9999999999999999999999999999999999999999"

reserves = st.integers(min_value=1, max_value=10**30)
amounts = st.integers(min_value=1, max_value=10**24)


class TestSwapFormulas(unittest.TestCase):
    """Test the Uniswap V2 pricing formulas."""

    def test_amount_out_small_numbers(self):
        # 10 * 997 * 100 // (100 * 1000 + 10 * 997) = 997000 // 109970
        self.assertEqual(get_amount_out(100, 100, 10), 9)

    def test_amount_in_rounds_up(self):
        # 100 * 9 * 1000 // (91 * 997) + 1 = 9 + 1
        self.assertEqual(get_amount_in(100, 100, 9), 10)

    def test_amount_out_zero_input(self):
        self.assertEqual(get_amount_out(1000, 1000, 0), 0)

    def test_amount_out_applies_fee(self):
        """Output is below the fee-free constant-product output."""
        out = get_amount_out(1000 * ETHER, 1000 * ETHER, ETHER)
        no_fee = ETHER * 1000 * ETHER // (1000 * ETHER + ETHER)
        self.assertLess(out, no_fee)
        self.assertGreater(out, no_fee * 996 // 1000)

    def test_amount_in_drains_pool(self):
        with self.assertRaises(InvalidReserves):
            get_amount_in(100, 100, 100)
        with self.assertRaises(InvalidReserves):
            get_amount_in(100, 100, 150)

    @given(reserve_in=reserves, reserve_out=reserves, amount_in=amounts)
    def test_inverse_never_underfunds(self, reserve_in, reserve_out, amount_in):
        """Buying back an output never costs more than one unit over the original input."""
        amount_out = get_amount_out(reserve_in, reserve_out, amount_in)
        required = get_amount_in(reserve_in, reserve_out, amount_out)

        self.assertLessEqual(required, amount_in + 1)
        self.assertGreaterEqual(get_amount_out(reserve_in, reserve_out, required), amount_out)

    @given(reserve_in=reserves, reserve_out=reserves, a=amounts, b=amounts)
    def test_amount_out_monotonic(self, reserve_in, reserve_out, a, b):
        low, high = min(a, b), max(a, b)
        self.assertLessEqual(
            get_amount_out(reserve_in, reserve_out, low),
            get_amount_out(reserve_in, reserve_out, high),
        )

    @given(reserve_in=reserves, reserve_out=reserves, amount_in=amounts)
    def test_amount_out_below_reserve(self, reserve_in, reserve_out, amount_in):
        self.assertLess(get_amount_out(reserve_in, reserve_out, amount_in), reserve_out)


class TestUniswapV2Market(unittest.TestCase):
    """Test market reserves and pricing."""

    def setUp(self):
        self.encoder = Mock()
        self.encoder.encode_swap_call.return_value = b"\x02\x2c\x0d\x9f"
        # WETH is token0 here, token1 in self.reversed
        self.market = UniswapV2Market(PAIR_A, (WETH, DAI), self.encoder)
        self.market.set_reserves((100 * ETHER, 200 * ETHER))
        self.reversed = UniswapV2Market(PAIR_B, (DAI, WETH), self.encoder, protocol="sushiswap")
        self.reversed.set_reserves((200 * ETHER, 100 * ETHER))

    def test_requires_two_tokens(self):
        with self.assertRaises(ValueError):
            UniswapV2Market(PAIR_A, (WETH,), self.encoder)

    def test_initial_reserves_zero(self):
        market = UniswapV2Market(PAIR_A, (WETH, DAI), self.encoder)
        self.assertEqual(market.get_balance(WETH), 0)
        self.assertEqual(market.get_balance(DAI), 0)

    def test_set_reserves_reports_change(self):
        self.assertFalse(self.market.set_reserves((100 * ETHER, 200 * ETHER)))
        self.assertTrue(self.market.set_reserves((101 * ETHER, 200 * ETHER)))
        self.assertEqual(self.market.get_balance(WETH), 101 * ETHER)
        self.assertEqual(self.market.get_balance(DAI), 200 * ETHER)

    def test_set_reserves_rejects_negative(self):
        with self.assertRaises(InvalidReserves):
            self.market.set_reserves((-1, 5))
        # previous reserves untouched
        self.assertEqual(self.market.get_balance(WETH), 100 * ETHER)

    def test_set_reserves_rejects_wrong_length(self):
        with self.assertRaises(ValueError):
            self.market.set_reserves((1, 2, 3))

    def test_tokens_out_matches_formula(self):
        self.assertEqual(
            self.market.get_tokens_out(WETH, DAI, ETHER),
            get_amount_out(100 * ETHER, 200 * ETHER, ETHER),
        )
        self.assertEqual(
            self.reversed.get_tokens_out(WETH, DAI, ETHER),
            get_amount_out(100 * ETHER, 200 * ETHER, ETHER),
        )

    def test_tokens_in_matches_formula(self):
        self.assertEqual(
            self.market.get_tokens_in(DAI, WETH, ETHER),
            get_amount_in(200 * ETHER, 100 * ETHER, ETHER),
        )

    def test_unknown_token(self):
        with self.assertRaises(UnknownToken) as ctx:
            self.market.get_tokens_out(USDC, DAI, ETHER)
        self.assertIn(USDC, str(ctx.exception))
        with self.assertRaises(UnknownToken):
            self.market.get_tokens_in(WETH, USDC, ETHER)
        with self.assertRaises(UnknownToken):
            self.market.get_balance(USDC)

    def test_other_token(self):
        self.assertEqual(self.market.other_token(WETH), DAI)
        self.assertEqual(self.market.other_token(DAI), WETH)
        with self.assertRaises(UnknownToken):
            self.market.other_token(USDC)

    def test_sell_token0_fills_amount1_out(self):
        expected = self.market.get_tokens_out(WETH, DAI, ETHER)
        payload = self.market.sell_tokens(WETH, ETHER, EXECUTOR)

        self.assertEqual(payload, b"\x02\x2c\x0d\x9f")
        self.encoder.encode_swap_call.assert_called_once_with(0, expected, EXECUTOR)

    def test_sell_token1_fills_amount0_out(self):
        expected = self.reversed.get_tokens_out(WETH, DAI, ETHER)
        self.reversed.sell_tokens(WETH, ETHER, EXECUTOR)

        self.encoder.encode_swap_call.assert_called_once_with(expected, 0, EXECUTOR)

    def test_sell_unknown_token(self):
        with self.assertRaises(UnknownToken):
            self.market.sell_tokens(USDC, ETHER, EXECUTOR)
        self.encoder.encode_swap_call.assert_not_called()

    def test_describe(self):
        text = self.reversed.describe()
        self.assertIn("sushiswap", text)
        self.assertIn(PAIR_B, text)
        self.assertIn("100.000000", text)


class TestReceiveAndRouting(unittest.TestCase):
    """Test receive capability and buy-leg call routing."""

    def setUp(self):
        self.encoder = Mock()
        self.encoder.encode_swap_call.side_effect = (
            lambda amount0_out, amount1_out, recipient: recipient.encode()
        )
        self.buy_from = UniswapV2Market(PAIR_A, (WETH, DAI), self.encoder)
        self.buy_from.set_reserves((100 * ETHER, 200 * ETHER))
        self.sell_to = UniswapV2Market(PAIR_B, (DAI, WETH), self.encoder)
        self.sell_to.set_reserves((190 * ETHER, 100 * ETHER))

    def test_receives_directly(self):
        self.assertTrue(self.sell_to.receives_directly(DAI))
        self.assertFalse(self.sell_to.receives_directly(USDC))

        no_direct = UniswapV2Market(
            PAIR_B, (DAI, WETH), self.encoder, can_receive_directly=False
        )
        self.assertFalse(no_direct.receives_directly(DAI))

    def test_prepare_receive(self):
        self.assertEqual(self.sell_to.prepare_receive(DAI, ETHER), [])

        with self.assertRaises(InvalidAmount):
            self.sell_to.prepare_receive(DAI, 0)
        with self.assertRaises(UnknownToken):
            self.sell_to.prepare_receive(USDC, ETHER)

    def test_routes_directly_to_next_market(self):
        calls = self.buy_from.sell_tokens_to_next_market(
            WETH, ETHER, self.sell_to, EXECUTOR
        )

        self.assertEqual(calls.targets, [PAIR_A])
        self.assertEqual(calls.data, [PAIR_B.encode()])

    def test_routes_through_executor(self):
        no_direct = UniswapV2Market(
            PAIR_B, (DAI, WETH), self.encoder, can_receive_directly=False
        )
        no_direct.set_reserves((190 * ETHER, 100 * ETHER))

        calls = self.buy_from.sell_tokens_to_next_market(WETH, ETHER, no_direct, EXECUTOR)

        self.assertEqual(calls.targets, [PAIR_A])
        self.assertEqual(calls.data, [EXECUTOR.encode()])


if __name__ == "__main__":
    unittest.main()
