"""
Backtest module for simulating trading strategies.
"""

from strategylab.backtest.portfolio import (
    Portfolio,
    ClosedTrade,
    SimulatedPosition,
    EquityPoint,
    ExitReason,
    TradeSide,
)
from strategylab.backtest.performance import MetricsReport, MonthlyReturn, PerformanceStats
from strategylab.backtest.engine import (
    BacktestConfig,
    BacktestEngine,
    BacktestResult,
    load_price_bars,
    run_backtest,
)

__all__ = [
    "Portfolio",
    "ClosedTrade",
    "SimulatedPosition",
    "EquityPoint",
    "ExitReason",
    "TradeSide",
    "MetricsReport",
    "MonthlyReturn",
    "PerformanceStats",
    "BacktestConfig",
    "BacktestEngine",
    "BacktestResult",
    "load_price_bars",
    "run_backtest",
]
