"""
Logging configuration for cleaner output.

Usage:
    import logging_config
    logging_config.setup(logging.DEBUG)
"""

import logging
import sys


def setup(level=logging.INFO):
    """
    Configure logging for cleaner, more readable output.

    - Suppresses per-request logs from web3, urllib3 and the metrics server
    - Uses shorter timestamp format (HH:MM:SS instead of full datetime)
    """

    root = logging.getLogger()
    root.setLevel(level)

    # Clear existing handlers
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)

    # Minimal format: time + level + message
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S"
    )
    console.setFormatter(formatter)
    root.addHandler(console)

    # Suppress noisy loggers
    logging.getLogger("web3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    # Package loggers from get_logger() carry their own handler; send them
    # through the root handler only
    for name in list(logging.root.manager.loggerDict):
        if name in ("__main__", "run_arbitrage") or name.startswith("amm_arbitrage"):
            package_logger = logging.getLogger(name)
            package_logger.handlers.clear()
            package_logger.setLevel(level)
