from strategylab.strategies.base_strategy import BaseStrategy
from strategylab.strategies.ma_crossover import MovingAverageCrossoverStrategy, MIN_HISTORY_BARS
from strategylab.strategies.signals import Signal, SignalType
from strategylab.strategies.indicators import sma, rsi

__all__ = [
    "BaseStrategy",
    "MovingAverageCrossoverStrategy",
    "MIN_HISTORY_BARS",
    "Signal",
    "SignalType",
    "sma",
    "rsi",
]
