"""Strategy backtesting, parameter optimization and risk sizing engine."""

__version__ = "0.1.0"
