"""Observability module for strategylab - logging and metrics."""

from strategylab.observability.logging_config import setup_logging, get_logger, RunContextFilter
from strategylab.observability.metrics import (
    export_metrics,
    record_backtest,
    record_simulated_trade,
    record_optimization_combination,
    record_optimization_rejection,
    record_sizing,
    backtests_running,
    backtests_completed_total,
    simulated_trades_total,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "RunContextFilter",
    "export_metrics",
    "record_backtest",
    "record_simulated_trade",
    "record_optimization_combination",
    "record_optimization_rejection",
    "record_sizing",
    "backtests_running",
    "backtests_completed_total",
    "simulated_trades_total",
]
