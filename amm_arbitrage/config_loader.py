"""
Configuration loading and validation for the AMM arbitrage bot.

Structure comes from a YAML file; endpoints and secrets come from the
environment so they never have to be committed alongside the config.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml
from web3 import Web3

from .dex_mev.config_schema import (
    DEFAULT_TEST_VOLUMES,
    ArbitrageConfig,
    DiscoveryConfig,
    ExecutionSettings,
    RegistryConfig,
    SearchConfig,
)
from .exceptions import ConfigurationError


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Load and parse YAML configuration file."""
    config_path = Path(config_path)

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if config_dict is None:
        raise ConfigurationError(f"Empty configuration file: {config_path}")
    if not isinstance(config_dict, dict):
        raise ConfigurationError(
            f"Configuration file must contain a YAML mapping: {config_path}"
        )

    return config_dict


def _get_required(d: Mapping[str, Any], key: str, expected_type: type) -> Any:
    """Get required config field with type validation."""
    if key not in d or d[key] is None:
        raise ConfigurationError(f"Missing required config field: {key}")
    val = d[key]
    if not isinstance(val, expected_type):
        raise ConfigurationError(
            f"Config field '{key}' must be {expected_type.__name__}, got {type(val).__name__}",
            {"field": key},
        )
    return val


def _checksum(value: Any, field_name: str) -> str:
    """Validate an address field and return its checksummed form."""
    if not isinstance(value, str) or not Web3.is_address(value):
        raise ConfigurationError(
            f"Config field '{field_name}' is not a valid address: {value!r}",
            {"field": field_name},
        )
    return Web3.to_checksum_address(value)


def _positive_int(value: Any, field_name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"Config field '{field_name}' must be an integer, got {value!r}",
            {"field": field_name},
        ) from e
    if number <= 0:
        raise ConfigurationError(
            f"Config field '{field_name}' must be positive, got {number}",
            {"field": field_name},
        )
    return number


def _parse_registries(registries_raw: Any) -> List[RegistryConfig]:
    """Parse and validate the pool registry list."""
    if not isinstance(registries_raw, list) or not registries_raw:
        raise ConfigurationError("At least one pool registry must be configured")

    registries = []
    for i, registry in enumerate(registries_raw):
        if not isinstance(registry, dict):
            raise ConfigurationError(f"Registry config {i} must be a dict")

        name = registry.get("name")
        if not name:
            raise ConfigurationError(f"Registry config {i} missing 'name'")

        registries.append(
            RegistryConfig(
                name=str(name),
                factory=_checksum(registry.get("factory"), f"registries[{i}].factory"),
            )
        )
    return registries


def _parse_discovery(raw: Dict[str, Any]) -> DiscoveryConfig:
    defaults = DiscoveryConfig()
    blacklist = raw.get("blacklisted_tokens", [])
    if not isinstance(blacklist, list):
        raise ConfigurationError("discovery.blacklisted_tokens must be a list")

    return DiscoveryConfig(
        batch_size=_positive_int(
            raw.get("batch_size", defaults.batch_size), "discovery.batch_size"
        ),
        batch_count_limit=_positive_int(
            raw.get("batch_count_limit", defaults.batch_count_limit),
            "discovery.batch_count_limit",
        ),
        min_liquidity_wei=int(raw.get("min_liquidity_wei", defaults.min_liquidity_wei)),
        blacklisted_tokens=frozenset(
            _checksum(token, "discovery.blacklisted_tokens") for token in blacklist
        ),
    )


def _parse_search(raw: Dict[str, Any]) -> SearchConfig:
    defaults = SearchConfig()

    volumes_raw = raw.get("test_volumes_wei", list(DEFAULT_TEST_VOLUMES))
    if not isinstance(volumes_raw, list) or not volumes_raw:
        raise ConfigurationError("search.test_volumes_wei must be a non-empty list")
    volumes = tuple(_positive_int(v, "search.test_volumes_wei") for v in volumes_raw)
    if any(later <= earlier for earlier, later in zip(volumes, volumes[1:])):
        raise ConfigurationError("search.test_volumes_wei must be strictly ascending")

    return SearchConfig(
        probe_volume_wei=_positive_int(
            raw.get("probe_volume_wei", defaults.probe_volume_wei),
            "search.probe_volume_wei",
        ),
        test_volumes_wei=volumes,
        min_profit_wei=int(raw.get("min_profit_wei", defaults.min_profit_wei)),
    )


def _parse_execution(raw: Dict[str, Any]) -> ExecutionSettings:
    defaults = ExecutionSettings()
    return ExecutionSettings(
        gas_ceiling=_positive_int(
            raw.get("gas_ceiling", defaults.gas_ceiling), "execution.gas_ceiling"
        ),
        gas_limit_multiplier=_positive_int(
            raw.get("gas_limit_multiplier", defaults.gas_limit_multiplier),
            "execution.gas_limit_multiplier",
        ),
        max_gas_price_gwei=_positive_int(
            raw.get("max_gas_price_gwei", defaults.max_gas_price_gwei),
            "execution.max_gas_price_gwei",
        ),
        receipt_timeout_sec=_positive_int(
            raw.get("receipt_timeout_sec", defaults.receipt_timeout_sec),
            "execution.receipt_timeout_sec",
        ),
    )


def _section(config_dict: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = config_dict.get(key) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Config section '{key}' must be a mapping")
    return section


def build_config(
    config_dict: Dict[str, Any], environ: Optional[Mapping[str, str]] = None
) -> ArbitrageConfig:
    """
    Build a validated ArbitrageConfig from a parsed config mapping.

    Args:
        config_dict: Loaded YAML config
        environ: Environment to resolve *_env fields from (default: os.environ)

    Returns:
        Validated ArbitrageConfig

    Raises:
        ConfigurationError: If required fields are missing or invalid
    """
    env = os.environ if environ is None else environ

    rpc_url = config_dict.get("rpc_url") or env.get(
        config_dict.get("rpc_url_env", "RPC_URL"), ""
    )
    if not rpc_url:
        raise ConfigurationError(
            f"Must provide rpc_url or the {config_dict.get('rpc_url_env', 'RPC_URL')} "
            "environment variable"
        )

    healthcheck_url = config_dict.get("healthcheck_url") or env.get(
        config_dict.get("healthcheck_url_env", "HEALTHCHECK_URL")
    )

    metrics_port = config_dict.get("metrics_port")
    if metrics_port is not None:
        metrics_port = _positive_int(metrics_port, "metrics_port")

    return ArbitrageConfig(
        chain_id=_positive_int(_get_required(config_dict, "chain_id", int), "chain_id"),
        rpc_url=rpc_url,
        private_key_env=config_dict.get("private_key_env", "PRIVATE_KEY"),
        base_asset=_checksum(_get_required(config_dict, "base_asset", str), "base_asset"),
        query_contract=_checksum(
            _get_required(config_dict, "query_contract", str), "query_contract"
        ),
        executor_contract=_checksum(
            _get_required(config_dict, "executor_contract", str), "executor_contract"
        ),
        registries=_parse_registries(config_dict.get("registries")),
        discovery=_parse_discovery(_section(config_dict, "discovery")),
        search=_parse_search(_section(config_dict, "search")),
        execution=_parse_execution(_section(config_dict, "execution")),
        poll_sec=float(config_dict.get("poll_sec", 2.0)),
        once=bool(config_dict.get("once", False)),
        healthcheck_url=healthcheck_url or None,
        metrics_port=metrics_port,
    )


def load_config(
    config_path: Union[str, Path], environ: Optional[Mapping[str, str]] = None
) -> ArbitrageConfig:
    """Load, validate and normalise a config file."""
    return build_config(load_yaml_config(config_path), environ)
