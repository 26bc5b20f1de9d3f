"""
Configuration schema for AMM crossed-market arbitrage.

Search, discovery and execution parameters are explicit objects handed to the
components that use them; defaults match the values the bot has always run with.
"""

from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Tuple

from ..utils import ETHER

DEFAULT_TEST_VOLUMES: Tuple[int, ...] = (
    ETHER // 100,
    ETHER // 10,
    ETHER // 6,
    ETHER // 4,
    ETHER // 2,
    ETHER,
    ETHER * 2,
    ETHER * 5,
    ETHER * 10,
)


@dataclass(frozen=True)
class RegistryConfig:
    """A pool registry (factory) to discover pairs from."""

    name: str
    factory: str


@dataclass(frozen=True)
class DiscoveryConfig:
    """Market graph discovery parameters."""

    batch_size: int = 1000
    batch_count_limit: int = 100
    min_liquidity_wei: int = ETHER
    blacklisted_tokens: FrozenSet[str] = frozenset()


@dataclass(frozen=True)
class SearchConfig:
    """Crossed-market detection and trade-size search parameters."""

    probe_volume_wei: int = ETHER // 100
    test_volumes_wei: Tuple[int, ...] = DEFAULT_TEST_VOLUMES
    min_profit_wei: int = ETHER // 1000


@dataclass(frozen=True)
class ExecutionSettings:
    """Gas and submission parameters for the execution assembler."""

    gas_ceiling: int = 1_400_000
    gas_limit_multiplier: int = 2
    max_gas_price_gwei: int = 100
    receipt_timeout_sec: int = 120


@dataclass
class ArbitrageConfig:
    """Main configuration for the crossed-market arbitrage bot."""

    # Network configuration
    chain_id: int
    rpc_url: str
    private_key_env: str

    # Contracts
    base_asset: str
    query_contract: str
    executor_contract: str
    registries: List[RegistryConfig]

    # Component parameters
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    execution: ExecutionSettings = field(default_factory=ExecutionSettings)

    # Loop settings
    poll_sec: float = 2.0
    once: bool = False

    # Optional outer services
    healthcheck_url: Optional[str] = None
    metrics_port: Optional[int] = None
