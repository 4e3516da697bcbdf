"""
Technical indicators over trailing close prices.

All functions take a plain sequence of closes ordered oldest to newest
and only look at the tail they need.
"""

from typing import Sequence


def sma(closes: Sequence[float], period: int) -> float:
    """
    Simple moving average of the last `period` closes.

    When fewer closes are available the mean of what exists is returned,
    which is how the previous-bar average is formed on the first bar that
    has a full window.
    """
    if period <= 0:
        raise ValueError("SMA period must be positive")
    window = closes[-period:]
    if not window:
        return 0.0
    return sum(window) / len(window)


def rsi(closes: Sequence[float], period: int = 14) -> float:
    """
    Relative Strength Index.

    RS = average gain / average loss over the last `period` close-to-close
    changes; RSI = 100 - 100 / (1 + RS).

    Returns:
        50.0 when there are fewer than period + 1 closes,
        100.0 when the average loss is zero
    """
    if period <= 0:
        raise ValueError("RSI period must be positive")
    if len(closes) < period + 1:
        return 50.0

    tail = closes[-(period + 1):]
    gains = 0.0
    losses = 0.0
    for prev, curr in zip(tail, tail[1:]):
        change = curr - prev
        if change > 0:
            gains += change
        else:
            losses -= change

    avg_gain = gains / period
    avg_loss = losses / period

    if avg_loss == 0:
        return 100.0

    rs = avg_gain / avg_loss
    return 100.0 - (100.0 / (1.0 + rs))
