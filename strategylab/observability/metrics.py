"""
Prometheus metrics collection for strategylab.

Provides:
- Backtest metrics (runs, duration, simulated trades)
- Optimization metrics (combinations evaluated, rejected grids)
- Risk metrics (sizing requests, sizing warnings)
- Text exposition for Prometheus scraping
"""

from prometheus_client import (
    Counter, Histogram, Gauge,
    generate_latest, REGISTRY, CONTENT_TYPE_LATEST
)


# ============================================================================
# Metrics Definitions
# ============================================================================

# Backtest Metrics
backtests_running = Gauge(
    'strategylab_backtests_running',
    'Number of backtests currently running'
)

backtests_completed_total = Counter(
    'strategylab_backtests_completed_total',
    'Total backtests completed',
    ['status']
)

backtest_duration_seconds = Histogram(
    'strategylab_backtest_duration_seconds',
    'Backtest wall-clock duration in seconds',
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)
)

simulated_trades_total = Counter(
    'strategylab_simulated_trades_total',
    'Total simulated trades closed',
    ['reason']
)

# Optimization Metrics
optimization_combinations_total = Counter(
    'strategylab_optimization_combinations_total',
    'Total parameter combinations evaluated',
    ['objective']
)

optimizations_rejected_total = Counter(
    'strategylab_optimizations_rejected_total',
    'Optimization requests rejected before running',
    ['reason']
)

# Risk Metrics
sizing_requests_total = Counter(
    'strategylab_sizing_requests_total',
    'Total position sizing requests',
    ['risk_tolerance']
)

sizing_warnings_total = Counter(
    'strategylab_sizing_warnings_total',
    'Position sizing requests that produced warnings',
    ['risk_tolerance']
)


# ============================================================================
# Helper Functions
# ============================================================================

def record_backtest(status: str, duration: float) -> None:
    """Record a finished (or failed) backtest run."""
    backtests_completed_total.labels(status=status).inc()
    backtest_duration_seconds.observe(duration)


def record_simulated_trade(reason: str) -> None:
    """Record a simulated trade closed by the given exit reason."""
    simulated_trades_total.labels(reason=reason).inc()


def record_optimization_combination(objective: str) -> None:
    optimization_combinations_total.labels(objective=objective).inc()


def record_optimization_rejection(reason: str) -> None:
    optimizations_rejected_total.labels(reason=reason).inc()


def record_sizing(risk_tolerance: str, has_warnings: bool) -> None:
    """Record a position sizing request."""
    sizing_requests_total.labels(risk_tolerance=risk_tolerance).inc()
    if has_warnings:
        sizing_warnings_total.labels(risk_tolerance=risk_tolerance).inc()


def export_metrics() -> tuple[bytes, str]:
    """Render all registered metrics.

    Returns:
        Tuple of (payload, content type) for a scrape response
    """
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
