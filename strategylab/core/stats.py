"""
Statistical helpers shared by the metrics engine, the optimizer and the
risk module.

Both the simulator and the live risk calculations annualize with a
365-day year and derive the daily risk-free rate as annual / 365, so the
two sides report comparable volatility and Sharpe figures.
"""

from typing import Sequence
import math

DAYS_PER_YEAR = 365


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def sample_stdev(values: Sequence[float]) -> float:
    """
    Sample standard deviation (n - 1 denominator).

    Returns 0.0 when fewer than two observations are available.
    """
    if len(values) < 2:
        return 0.0

    avg = mean(values)
    variance = sum((v - avg) ** 2 for v in values) / (len(values) - 1)

    return math.sqrt(variance)


def daily_returns(equity_values: Sequence[float]) -> list[float]:
    """Period-over-period returns, skipping non-positive bases."""
    returns = []
    for i in range(1, len(equity_values)):
        prev = equity_values[i - 1]
        if prev > 0:
            returns.append((equity_values[i] - prev) / prev)
    return returns


def annualized_volatility(returns: Sequence[float]) -> float:
    """Annualized volatility as a decimal (stdev * sqrt(365))."""
    return sample_stdev(returns) * math.sqrt(DAYS_PER_YEAR)


def sharpe_ratio(returns: Sequence[float], risk_free_rate: float) -> float:
    """
    Annualized Sharpe ratio.

    Sharpe = (mean_return - risk_free_rate / 365) / stdev * sqrt(365)

    Args:
        returns: Daily returns
        risk_free_rate: Annual risk-free rate as a decimal

    Returns:
        Sharpe ratio, or 0.0 when volatility is zero
    """
    std_dev = sample_stdev(returns)
    if std_dev == 0:
        return 0.0

    excess = mean(returns) - risk_free_rate / DAYS_PER_YEAR
    return excess / std_dev * math.sqrt(DAYS_PER_YEAR)


def sortino_ratio(returns: Sequence[float], risk_free_rate: float) -> float:
    """
    Annualized Sortino ratio.

    Same numerator as Sharpe; the denominator is the sample stdev of the
    negative returns only. Returns 0.0 when there is no downside deviation.
    """
    downside = [r for r in returns if r < 0]
    downside_dev = sample_stdev(downside)
    if downside_dev == 0:
        return 0.0

    excess = mean(returns) - risk_free_rate / DAYS_PER_YEAR
    return excess / downside_dev * math.sqrt(DAYS_PER_YEAR)


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """
    Pearson correlation coefficient of two equally sized samples.

    Returns 0.0 for fewer than two points or when either side has no
    variance. The result is clamped to [-1, 1] to absorb rounding.
    """
    n = len(x)
    if n < 2 or n != len(y):
        return 0.0

    sum_x = sum(x)
    sum_y = sum(y)
    sum_xy = sum(xi * yi for xi, yi in zip(x, y))
    sum_x2 = sum(xi * xi for xi in x)
    sum_y2 = sum(yi * yi for yi in y)

    numerator = n * sum_xy - sum_x * sum_y
    denominator_sq = (n * sum_x2 - sum_x * sum_x) * (n * sum_y2 - sum_y * sum_y)

    if denominator_sq <= 0:
        return 0.0

    r = numerator / math.sqrt(denominator_sq)
    return max(-1.0, min(1.0, r))
