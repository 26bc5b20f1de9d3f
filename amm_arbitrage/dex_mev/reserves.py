"""
Batched reserve refresh for every tracked market.
"""

from typing import List, Protocol, Sequence, Tuple

from ..exceptions import FetchError, ReserveFetchFailure
from ..utils import get_logger, timing_decorator
from .market import UniswapV2Market

logger = get_logger(__name__)


class ReserveSource(Protocol):
    def get_reserves(self, pool_addresses: Sequence[str]) -> List[Tuple[int, int]]:
        ...


@timing_decorator
def update_reserves(
    reserve_source: ReserveSource, markets: Sequence[UniswapV2Market]
) -> int:
    """
    Refresh the reserves of ``markets`` with one round-trip.

    Every row is checked before any market is touched, so a failed or short
    response leaves all markets at their previous reserves and the caller
    must skip the block.

    Returns:
        Number of markets whose reserves changed

    Raises:
        ReserveFetchFailure: If the lookup fails or returns inconsistent rows
    """
    if not markets:
        return 0

    addresses = [market.address for market in markets]
    logger.debug(f"Updating markets, count: {len(addresses)}")

    try:
        reserves = list(reserve_source.get_reserves(addresses))
    except FetchError:
        raise
    except Exception as e:
        raise ReserveFetchFailure(
            f"Reserve lookup failed for {len(addresses)} pools: {e}",
            pool_count=len(addresses),
        ) from e

    if len(reserves) != len(markets):
        raise ReserveFetchFailure(
            f"Reserve lookup returned {len(reserves)} rows for {len(markets)} pools",
            pool_count=len(markets),
        )

    for i, row in enumerate(reserves):
        if len(row) < 2 or row[0] is None or row[1] is None or row[0] < 0 or row[1] < 0:
            raise ReserveFetchFailure(
                f"Invalid reserves {row!r} for pool {addresses[i]}",
                pool_count=len(markets),
                details={"index": i, "pool": addresses[i]},
            )

    changed = 0
    for market, row in zip(markets, reserves):
        if market.set_reserves((row[0], row[1])):
            changed += 1

    logger.debug(f"Reserves changed for {changed}/{len(markets)} markets")
    return changed
