#!/usr/bin/env python3
"""
Run the AMM crossed-market arbitrage bot.

Discovers every pool quoted against the base asset, then on each new block
refreshes reserves, looks for crossed markets and submits the most profitable
one through the executor contract.

MODES:
  1. Live (default): Submit transactions (REQUIRES PRIVATE KEY)
  2. Dry Run: Estimate gas and log what would be submitted

Usage:
  # Dry run, single block
  python run_arbitrage.py --config configs/arbitrage.example.yaml --dry-run --once

  # Live
  export PRIVATE_KEY="0x..."
  python run_arbitrage.py --config configs/arbitrage.example.yaml

Environment Variables:
  RPC_URL: Node endpoint (when rpc_url is not set in the config)
  PRIVATE_KEY: Key for signing executor transactions
  HEALTHCHECK_URL: Pinged after every successful submission (optional)
"""

import argparse
import asyncio
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

import logging_config
from amm_arbitrage.config_loader import load_config
from amm_arbitrage.dex_mev.config_schema import ArbitrageConfig
from amm_arbitrage.dex_mev.dex_client import DEXClient
from amm_arbitrage.dex_mev.runner import create_runner
from amm_arbitrage.exceptions import ConfigurationError
from amm_arbitrage.metrics import get_metrics
from amm_arbitrage.utils import get_logger

logger = get_logger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="AMM Crossed-Market Arbitrage Bot",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to config YAML file",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Evaluate a single block and exit",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Estimate gas but never submit transactions",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    return parser.parse_args(argv)


def load_account(config: ArbitrageConfig, dry_run: bool) -> Optional[LocalAccount]:
    """
    Load the signing account from the configured environment variable.

    Raises:
        ConfigurationError: If the key is missing outside dry-run mode
    """
    private_key = os.getenv(config.private_key_env)
    if not private_key:
        if dry_run:
            logger.warning(
                f"{config.private_key_env} not set - estimating gas without a sender"
            )
            return None
        raise ConfigurationError(
            f"Live mode requires the {config.private_key_env} environment variable"
        )
    try:
        return Account.from_key(private_key)
    except ValueError as e:
        raise ConfigurationError(f"Invalid private key in {config.private_key_env}: {e}")


async def run(config: ArbitrageConfig, dry_run: bool) -> None:
    account = load_account(config, dry_run)

    logger.info("Connecting to RPC...")
    w3 = Web3(Web3.HTTPProvider(config.rpc_url))
    dex_client = DEXClient(
        w3,
        config.query_contract,
        settings=config.execution,
        account=account,
        chain_id=config.chain_id,
    )

    metrics = get_metrics()
    if config.metrics_port:
        await metrics.start_server(port=config.metrics_port)

    try:
        runner = await create_runner(config, dex_client, dry_run=dry_run, metrics=metrics)
        logger.info(
            f"Watching {len(runner.markets.markets_by_token)} tokens across "
            f"{len(runner.markets.all_market_pairs)} markets"
        )
        await runner.run(dex_client, poll_sec=config.poll_sec, once=config.once)
    finally:
        await metrics.stop_server()


def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    load_dotenv()
    logging_config.setup(getattr(logging, args.log_level))

    try:
        logger.info(f"Loading config from {args.config}...")
        config = load_config(args.config)
        if args.once:
            config.once = True

        logger.info(f"Execution Mode: {'DRY RUN' if args.dry_run else 'LIVE'}")
        asyncio.run(run(config, args.dry_run))

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    except KeyboardInterrupt:
        logger.info("Shutdown requested by user")

    return 0


if __name__ == "__main__":
    sys.exit(main())
