from typing import Any, Dict, Sequence
import logging

from strategylab.exceptions import BacktestConfigError
from strategylab.models.market_data import PriceBar
from strategylab.models.strategy import DEFAULT_STRATEGY_PARAMETERS
from strategylab.strategies.base_strategy import BaseStrategy
from strategylab.strategies.indicators import sma, rsi
from strategylab.strategies.signals import Signal, SignalType

logger = logging.getLogger(__name__)

MIN_HISTORY_BARS = 20


class MovingAverageCrossoverStrategy(BaseStrategy):
    """
    Moving-average crossover with RSI confirmation.

    Logic:
    - Short SMA crossing above the long SMA on this bar is a BUY, unless
      RSI is overbought
    - Short SMA crossing below the long SMA is a SELL, unless RSI is
      oversold
    - Anything else is HOLD
    - Fewer than max(20, long_period) bars is HOLD with zero strength
    """

    def get_name(self) -> str:
        return "MA_CROSSOVER"

    def get_default_config(self) -> Dict[str, Any]:
        return dict(DEFAULT_STRATEGY_PARAMETERS)

    def validate_config(self) -> None:
        super().validate_config()
        for key in ("short_period", "long_period", "rsi_period"):
            value = self.config[key]
            if int(value) != value or value < 1:
                raise BacktestConfigError(f"{key} must be a positive integer, got {value}")
        if self.config["short_period"] >= self.config["long_period"]:
            raise BacktestConfigError(
                f"short_period ({self.config['short_period']}) must be below "
                f"long_period ({self.config['long_period']})"
            )
        if not 0 <= self.config["rsi_oversold"] <= self.config["rsi_overbought"] <= 100:
            raise BacktestConfigError("RSI thresholds must satisfy 0 <= oversold <= overbought <= 100")

    @property
    def min_history(self) -> int:
        return max(MIN_HISTORY_BARS, int(self.config["long_period"]))

    def generate_signal(self, history: Sequence[PriceBar]) -> Signal:
        current = history[-1]

        if len(history) < self.min_history:
            return Signal.hold(current.close, current.timestamp, "Insufficient historical data")

        short_period = int(self.config["short_period"])
        long_period = int(self.config["long_period"])
        overbought = self.config["rsi_overbought"]
        oversold = self.config["rsi_oversold"]

        closes = [bar.close for bar in history]
        previous = closes[:-1]

        short_ma = sma(closes, short_period)
        long_ma = sma(closes, long_period)
        prev_short_ma = sma(previous, short_period)
        prev_long_ma = sma(previous, long_period)
        current_rsi = rsi(closes, int(self.config["rsi_period"]))

        indicators = {
            "short_ma": short_ma,
            "long_ma": long_ma,
            "prev_short_ma": prev_short_ma,
            "prev_long_ma": prev_long_ma,
            "rsi": current_rsi,
        }

        crossed_up = short_ma > long_ma and prev_short_ma <= prev_long_ma
        crossed_down = short_ma < long_ma and prev_short_ma >= prev_long_ma

        if crossed_up and current_rsi < overbought:
            strength = self._strength(short_ma, long_ma, overbought - current_rsi)
            return Signal(
                type=SignalType.BUY,
                strength=strength,
                price=current.close,
                timestamp=current.timestamp,
                reasoning=f"MA crossover bullish, RSI: {current_rsi:.1f}",
                indicators=indicators,
            )

        if crossed_down and current_rsi > oversold:
            strength = self._strength(short_ma, long_ma, current_rsi - oversold)
            return Signal(
                type=SignalType.SELL,
                strength=strength,
                price=current.close,
                timestamp=current.timestamp,
                reasoning=f"MA crossover bearish, RSI: {current_rsi:.1f}",
                indicators=indicators,
            )

        return Signal.hold(current.close, current.timestamp, "No clear signal", **indicators)

    @staticmethod
    def _strength(short_ma: float, long_ma: float, rsi_distance: float) -> float:
        if long_ma <= 0:
            return 0.0
        raw = abs(short_ma - long_ma) / long_ma + rsi_distance / 100.0
        return max(0.0, min(1.0, raw))
