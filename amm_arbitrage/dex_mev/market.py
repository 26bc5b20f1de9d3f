"""
Constant-product (Uniswap V2 style) market model.

A market holds the reserves of its two tokens and prices swaps with the 0.3%
fee formula using integer arithmetic, exactly as the pair contract does.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Protocol, Sequence, Tuple

from ..exceptions import InvalidAmount, InvalidReserves, UnknownToken
from ..utils import format_ether

FEE_NUMERATOR = 997
FEE_DENOMINATOR = 1000


class SwapCallEncoder(Protocol):
    """Encodes the pair's swap(amount0Out, amount1Out, to, data) call."""

    def encode_swap_call(self, amount0_out: int, amount1_out: int, recipient: str) -> bytes:
        ...


@dataclass
class CallDetails:
    """A single call the executor contract performs."""

    target: str
    data: bytes
    value: int = 0


@dataclass
class MultipleCallData:
    """Parallel lists of call targets and payloads, in execution order."""

    targets: List[str] = field(default_factory=list)
    data: List[bytes] = field(default_factory=list)

    def extend(self, other: "MultipleCallData") -> None:
        self.targets.extend(other.targets)
        self.data.extend(other.data)


def get_amount_out(reserve_in: int, reserve_out: int, amount_in: int) -> int:
    """Output for an exact input, truncating like the pair contract."""
    if amount_in <= 0:
        return 0
    amount_in_with_fee = amount_in * FEE_NUMERATOR
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * FEE_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


def get_amount_in(reserve_in: int, reserve_out: int, amount_out: int) -> int:
    """
    Input required for an exact output, rounded up.

    Raises:
        InvalidReserves: If the pool cannot pay out ``amount_out``
    """
    if reserve_out <= amount_out:
        raise InvalidReserves(reserve_in, reserve_out, amount_out)
    numerator = reserve_in * amount_out * FEE_DENOMINATOR
    denominator = (reserve_out - amount_out) * FEE_NUMERATOR
    return numerator // denominator + 1


class UniswapV2Market:
    """
    A two-token constant-product pool.

    Attributes:
        address: Pair contract address (identity of the market)
        tokens: (token0, token1) in the pair's own ordering
        protocol: Registry name the pair was discovered from
        can_receive_directly: Whether the pair can be sent tokens by a previous
            swap and settle them in its own swap (true for V2 pairs)
    """

    def __init__(
        self,
        address: str,
        tokens: Sequence[str],
        encoder: SwapCallEncoder,
        protocol: str = "uniswap_v2",
        can_receive_directly: bool = True,
    ):
        if len(tokens) != 2:
            raise ValueError(f"A market needs exactly two tokens, got {len(tokens)}")
        self.address = address
        self.tokens: Tuple[str, str] = (tokens[0], tokens[1])
        self.protocol = protocol
        self.can_receive_directly = can_receive_directly
        self._encoder = encoder
        self._token_balances: Dict[str, int] = {tokens[0]: 0, tokens[1]: 0}

    def __repr__(self) -> str:
        return f"UniswapV2Market({self.protocol}, {self.address})"

    @property
    def token0(self) -> str:
        return self.tokens[0]

    @property
    def token1(self) -> str:
        return self.tokens[1]

    def other_token(self, token: str) -> str:
        """The pool token that is not ``token``."""
        self._require_token(token)
        return self.token1 if token == self.token0 else self.token0

    def _require_token(self, token: str) -> None:
        if token not in self._token_balances:
            raise UnknownToken(token, self.address)

    # Reserves

    def get_balance(self, token: str) -> int:
        self._require_token(token)
        return self._token_balances[token]

    def set_reserves(self, balances: Sequence[int]) -> bool:
        """
        Replace both reserves from (reserve0, reserve1).

        The balance map is rebuilt and swapped in with a single assignment, so a
        reader sees either the old or the new pair, never a mix.

        Returns:
            True if the reserves changed
        """
        if len(balances) != 2:
            raise ValueError(f"Expected two reserve values, got {len(balances)}")
        reserve0, reserve1 = int(balances[0]), int(balances[1])
        if reserve0 < 0 or reserve1 < 0:
            raise InvalidReserves(reserve0, reserve1, 0)

        token_balances = {self.token0: reserve0, self.token1: reserve1}
        if token_balances == self._token_balances:
            return False
        self._token_balances = token_balances
        return True

    # Pricing

    def get_tokens_out(self, token_in: str, token_out: str, amount_in: int) -> int:
        """Amount of ``token_out`` received for selling ``amount_in`` of ``token_in``."""
        balances = self._token_balances
        self._require_token(token_in)
        self._require_token(token_out)
        return get_amount_out(balances[token_in], balances[token_out], amount_in)

    def get_tokens_in(self, token_in: str, token_out: str, amount_out: int) -> int:
        """Amount of ``token_in`` needed to receive ``amount_out`` of ``token_out``."""
        balances = self._token_balances
        self._require_token(token_in)
        self._require_token(token_out)
        return get_amount_in(balances[token_in], balances[token_out], amount_out)

    # Execution

    def receives_directly(self, token: str) -> bool:
        """Whether a previous swap may send ``token`` straight to this pair."""
        return self.can_receive_directly and token in self._token_balances

    def prepare_receive(self, token: str, amount_in: int) -> List[CallDetails]:
        """Calls needed before this pair can receive ``amount_in`` of ``token``."""
        self._require_token(token)
        if amount_in <= 0:
            raise InvalidAmount(f"Invalid amount: {amount_in}")
        return []

    def sell_tokens(self, token_in: str, amount_in: int, recipient: str) -> bytes:
        """
        Encode a swap selling ``amount_in`` of ``token_in``, paying ``recipient``.

        The computed output goes in the slot of the other token; the slot of
        ``token_in`` is zero.
        """
        amount0_out = 0
        amount1_out = 0
        if token_in == self.token0:
            amount1_out = self.get_tokens_out(token_in, self.token1, amount_in)
        elif token_in == self.token1:
            amount0_out = self.get_tokens_out(token_in, self.token0, amount_in)
        else:
            raise UnknownToken(token_in, self.address)
        return self._encoder.encode_swap_call(amount0_out, amount1_out, recipient)

    def sell_tokens_to_next_market(
        self,
        token_in: str,
        amount_in: int,
        next_market: "UniswapV2Market",
        executor_address: str,
    ) -> MultipleCallData:
        """
        Build the buy-leg calls that feed ``next_market``.

        Output is routed straight to ``next_market`` when it can receive the
        bought token directly, otherwise to the executor contract followed by
        whatever calls ``next_market`` needs to take delivery.
        """
        token_out = self.other_token(token_in)
        calls = MultipleCallData()

        if next_market.receives_directly(token_out):
            calls.targets.append(self.address)
            calls.data.append(self.sell_tokens(token_in, amount_in, next_market.address))
            return calls

        calls.targets.append(self.address)
        calls.data.append(self.sell_tokens(token_in, amount_in, executor_address))
        amount_out = self.get_tokens_out(token_in, token_out, amount_in)
        for call in next_market.prepare_receive(token_out, amount_out):
            calls.targets.append(call.target)
            calls.data.append(call.data)
        return calls

    def describe(self) -> str:
        """One-line summary of the pair and its reserves."""
        return (
            f"{self.protocol} ({self.address}) "
            f"{self.token0}={format_ether(self._token_balances[self.token0])} "
            f"{self.token1}={format_ether(self._token_balances[self.token1])}"
        )
