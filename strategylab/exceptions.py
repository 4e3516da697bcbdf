"""
Exception hierarchy for the backtesting and risk engine.

Configuration mistakes are rejected before any simulation work starts.
Degenerate statistics are never errors; they fall back to zero values
inside the metrics code instead of raising.
"""


class StrategyLabError(Exception):
    """Base exception for all engine errors."""
    pass


class BacktestConfigError(StrategyLabError, ValueError):
    """Raised when a backtest or optimization request is invalid."""
    pass


class OptimizationLimitError(BacktestConfigError):
    """Raised when a parameter grid exceeds the combination cap."""

    def __init__(self, combinations: int, limit: int):
        self.combinations = combinations
        self.limit = limit
        super().__init__(
            f"Too many parameter combinations: {combinations} "
            f"(maximum {limit} combinations allowed)"
        )


class PriceDataError(StrategyLabError):
    """Raised when the price-bar provider breaks its ordering contract."""
    pass


class BacktestCancelledError(StrategyLabError):
    """Raised when a running backtest observes a cancelled token."""
    pass
