"""
Prometheus metrics for the AMM arbitrage bot.

Tracks per-block evaluation cycles, discovered crossed markets, skipped
opportunities and submissions, and optionally serves them over HTTP.
"""

import logging
import threading
import time
from typing import Any, Dict, Optional

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)


class ArbitrageMetrics:
    """
    Prometheus-compatible metrics for the block evaluation loop.

    Provides:
    - Cycle counts, durations and failures by stage
    - Crossed markets found and best profit per block
    - Skipped opportunities by reason and submissions
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with custom registry or default"""
        self.registry = registry or REGISTRY
        self._initialize_metrics()

        self._app = None
        self._runner = None
        self._site = None

        self._lock = threading.RLock()
        self._started_at = time.time()

    def _initialize_metrics(self):
        """Initialize all Prometheus metrics"""

        # === CYCLE METRICS ===
        self.blocks_evaluated_total = Counter(
            "amm_arbitrage_blocks_evaluated_total",
            "Total number of block evaluation cycles run",
            registry=self.registry,
        )

        self.cycle_failures_total = Counter(
            "amm_arbitrage_cycle_failures_total",
            "Evaluation cycles aborted, by failing stage",
            ["stage"],
            registry=self.registry,
        )

        self.cycle_duration_seconds = Histogram(
            "amm_arbitrage_cycle_duration_seconds",
            "Duration of a block evaluation cycle",
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 15.0, 60.0],
            registry=self.registry,
        )

        # === OPPORTUNITY METRICS ===
        self.crossed_markets = Gauge(
            "amm_arbitrage_crossed_markets",
            "Profitable crossed markets found in the last block",
            registry=self.registry,
        )

        self.best_profit_wei = Gauge(
            "amm_arbitrage_best_profit_wei",
            "Expected profit of the best opportunity in the last block",
            registry=self.registry,
        )

        self.opportunities_skipped_total = Counter(
            "amm_arbitrage_opportunities_skipped_total",
            "Opportunities dropped before submission, by reason",
            ["reason"],
            registry=self.registry,
        )

        # === EXECUTION METRICS ===
        self.submissions_total = Counter(
            "amm_arbitrage_submissions_total",
            "Executor transactions submitted",
            ["mode"],
            registry=self.registry,
        )

        # === SYSTEM METRICS ===
        self.pools_tracked = Gauge(
            "amm_arbitrage_pools_tracked",
            "Markets in the market graph",
            registry=self.registry,
        )

        self.last_block_number = Gauge(
            "amm_arbitrage_last_block_number",
            "Last block number evaluated",
            registry=self.registry,
        )

    # === METRIC RECORDING METHODS ===

    def record_cycle(
        self, block_number: int, crossed_markets: int, best_profit_wei: int, duration_seconds: float
    ):
        """Record a completed evaluation cycle"""
        with self._lock:
            self.blocks_evaluated_total.inc()
            self.last_block_number.set(block_number)
            self.crossed_markets.set(crossed_markets)
            self.best_profit_wei.set(best_profit_wei)
            self.cycle_duration_seconds.observe(duration_seconds)

    def record_cycle_failure(self, stage: str):
        """Record an aborted cycle"""
        self.cycle_failures_total.labels(stage=stage).inc()

    def record_opportunity_skipped(self, reason: str):
        """Record an opportunity dropped before submission"""
        self.opportunities_skipped_total.labels(reason=reason).inc()

    def record_submission(self, dry_run: bool = False):
        """Record a submitted (or dry-run) executor transaction"""
        self.submissions_total.labels(mode="dry_run" if dry_run else "live").inc()

    def update_pools_tracked(self, count: int):
        self.pools_tracked.set(count)

    # === SERVER MANAGEMENT ===

    async def start_server(
        self, port: int = 8000, host: str = "0.0.0.0", path: str = "/metrics"
    ) -> bool:
        """Start Prometheus metrics HTTP server"""
        try:
            self._app = web.Application()
            self._app.router.add_get(path, self._metrics_handler)
            self._app.router.add_get("/health", self._health_handler)

            self._runner = web.AppRunner(self._app)
            await self._runner.setup()

            self._site = web.TCPSite(self._runner, host, port)
            await self._site.start()

            logger.info(f"Prometheus metrics server started on http://{host}:{port}{path}")
            return True

        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False

    async def stop_server(self):
        """Stop the metrics server"""
        if self._runner is None:
            return
        if self._site:
            await self._site.stop()
        await self._runner.cleanup()
        self._runner = None
        self._site = None
        logger.info("Metrics server stopped")

    async def _metrics_handler(self, request):
        """Handle metrics endpoint requests"""
        metrics_output = generate_latest(self.registry)
        # aiohttp rejects a content_type that carries a charset
        content_type = CONTENT_TYPE_LATEST.split(";")[0]
        return web.Response(text=metrics_output.decode("utf-8"), content_type=content_type)

    async def _health_handler(self, request):
        """Handle health check endpoint"""
        return web.json_response(self.get_metrics_summary())

    def _sample(self, name: str) -> float:
        return self.registry.get_sample_value(name) or 0.0

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Current metrics summary"""
        return {
            "status": "healthy",
            "service": "amm_arbitrage",
            "uptime_seconds": round(time.time() - self._started_at, 1),
            "blocks_evaluated": self._sample("amm_arbitrage_blocks_evaluated_total"),
            "pools_tracked": self._sample("amm_arbitrage_pools_tracked"),
        }


# Global metrics instance (singleton pattern)
_global_metrics: Optional[ArbitrageMetrics] = None


def get_metrics() -> ArbitrageMetrics:
    """Get or create global metrics instance"""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = ArbitrageMetrics()
    return _global_metrics


def initialize_metrics(registry: Optional[CollectorRegistry] = None) -> ArbitrageMetrics:
    """Initialize global metrics with custom registry"""
    global _global_metrics
    _global_metrics = ArbitrageMetrics(registry)
    return _global_metrics
