from strategylab.core.cancellation import CancellationToken
from strategylab.core.stats import (
    DAYS_PER_YEAR,
    mean,
    sample_stdev,
    daily_returns,
    annualized_volatility,
    sharpe_ratio,
    sortino_ratio,
    pearson_correlation,
)

__all__ = [
    "CancellationToken",
    "DAYS_PER_YEAR",
    "mean",
    "sample_stdev",
    "daily_returns",
    "annualized_volatility",
    "sharpe_ratio",
    "sortino_ratio",
    "pearson_correlation",
]
