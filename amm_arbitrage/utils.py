"""
Common helpers for the AMM arbitrage bot.

Logging setup, base-unit conversions and small timing utilities shared by the
discovery, search and execution modules.
"""

import logging
import time
from decimal import Decimal
from functools import wraps
from typing import Any, Dict, Optional, Union

# One whole base-asset unit in its 18-decimal fixed-point representation
ETHER = 10**18


# Logging utilities
def get_logger(
    name: str,
    level: Union[str, int] = logging.INFO,
    extra: Optional[Dict[str, Any]] = None,
    minimal: bool = False,
) -> logging.Logger:
    """
    Get a structured logger with consistent formatting and extra context.

    Args:
        name: Logger name (typically __name__)
        level: Logging level
        extra: Additional context fields to include in all log messages
        minimal: If True, use simplified format (time + message only)

    Returns:
        Configured logger with structured output
    """
    logger = logging.getLogger(name)

    if logger.level == logging.NOTSET:
        logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler()

        if minimal:
            format_str = "%(asctime)s | %(message)s"
        else:
            format_str = (
                "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | " "%(message)s"
            )

        if extra:
            extra_fields = " | ".join([f"{k}=%(extra_{k})s" for k in extra.keys()])
            format_str = format_str.replace(
                " | %(message)s", f" | {extra_fields} | %(message)s"
            )

        formatter = logging.Formatter(format_str, datefmt="%H:%M:%S")
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        if extra:
            logger = logging.LoggerAdapter(
                logger, {"extra_" + k: v for k, v in extra.items()}
            )

    return logger


# Amount utilities
def wei_to_ether(amount_wei: int) -> Decimal:
    """Convert an integer base-unit amount to whole units."""
    return Decimal(amount_wei) / Decimal(ETHER)


def ether_to_wei(amount: Union[str, int, float, Decimal]) -> int:
    """Convert a whole-unit amount to integer base units (truncating)."""
    return int(Decimal(str(amount)) * Decimal(ETHER))


def format_ether(amount_wei: int, places: int = 6) -> str:
    """
    Format a base-unit amount as a fixed-point decimal string.

    Examples:
        >>> format_ether(1500000000000000000)
        '1.500000'
        >>> format_ether(-10**15, places=3)
        '-0.001'
    """
    return f"{wei_to_ether(amount_wei):.{places}f}"


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    else:
        return f"{seconds / 60:.1f}m"


# Performance utilities
def timing_decorator(func):
    """Decorator to measure function execution time."""

    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        result = func(*args, **kwargs)
        end_time = time.perf_counter()

        logger = logging.getLogger(func.__module__)
        logger.debug(f"{func.__name__} executed in {end_time - start_time:.4f}s")
        return result

    return wrapper
