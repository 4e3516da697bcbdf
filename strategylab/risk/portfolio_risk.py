"""
Portfolio-level risk metrics from live holdings and realized trades.

Uses the same 365-day annualization and daily risk-free convention as the
backtest metrics so both sides report comparable figures.
"""

from dataclasses import dataclass, asdict
from typing import Sequence
import math

from strategylab.core import stats
from strategylab.models.position import Holding, RealizedTrade

VAR_CONFIDENCE = 0.95
DEFAULT_BETA = 1.0


@dataclass(frozen=True)
class RiskMetrics:
    """
    Portfolio risk summary.

    value_at_risk and expected_shortfall are currency amounts (positive
    numbers mean potential loss); percentages are 0-100.
    """
    portfolio_risk: float = 0.0
    sharpe_ratio: float = 0.0
    volatility: float = 0.0
    beta: float = DEFAULT_BETA
    max_drawdown: float = 0.0
    value_at_risk: float = 0.0
    expected_shortfall: float = 0.0
    concentration_risk: float = 0.0
    correlation_risk: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)


def daily_pnl(trades: Sequence[RealizedTrade]) -> list[float]:
    """Realized profit summed per calendar day, in date order."""
    by_day: dict = {}
    for trade in trades:
        day = trade.executed_at.date()
        by_day[day] = by_day.get(day, 0.0) + trade.profit
    return [by_day[day] for day in sorted(by_day)]


def value_at_risk(returns: Sequence[float], confidence: float = VAR_CONFIDENCE) -> float:
    """Historical VaR: the return at index floor(n * (1 - confidence)) of the sorted series."""
    if not returns:
        return 0.0
    ordered = sorted(returns)
    index = math.floor(len(ordered) * (1 - confidence))
    return ordered[min(index, len(ordered) - 1)]


def expected_shortfall(returns: Sequence[float], confidence: float = VAR_CONFIDENCE) -> float:
    """Mean of the returns strictly below VaR; VaR itself when that tail is empty."""
    var = value_at_risk(returns, confidence)
    tail = [r for r in returns if r < var]
    if not tail:
        return var
    return sum(tail) / len(tail)


def concentration_risk(holdings: Sequence[Holding]) -> float:
    """Largest holding's share of total market value, in percent."""
    values = [max(0.0, h.market_value) for h in holdings]
    total = sum(values)
    if total <= 0:
        return 0.0
    return max(values) / total * 100.0


def correlation_risk(holdings: Sequence[Holding]) -> float:
    """
    Sector-diversity heuristic: 100 - distinct_sectors / holdings * 100.

    Holdings without a sector all count as one unknown sector.
    """
    if not holdings:
        return 0.0
    sectors = {h.sector or "UNKNOWN" for h in holdings}
    return max(0.0, 100.0 - len(sectors) / len(holdings) * 100.0)


def max_drawdown_percent(trades: Sequence[RealizedTrade]) -> float:
    """Largest drop of cumulative realized P&L from its running peak, in percent."""
    peak = 0.0
    running = 0.0
    worst = 0.0

    for trade in sorted(trades, key=lambda t: t.executed_at):
        running += trade.profit
        peak = max(peak, running)
        if peak > 0:
            worst = max(worst, (peak - running) / peak * 100.0)

    return worst


def calculate_portfolio_risk(
    holdings: Sequence[Holding],
    trades: Sequence[RealizedTrade],
    portfolio_value: float,
    risk_free_rate: float = 0.02,
) -> RiskMetrics:
    """
    Calculate comprehensive portfolio risk metrics.

    Daily realized P&L divided by the portfolio value gives the return
    series for volatility, Sharpe and VaR.

    Args:
        holdings: Open holdings
        trades: Realized trades
        portfolio_value: Current portfolio value
        risk_free_rate: Annual risk-free rate

    Returns:
        RiskMetrics; all-zero statistics when there is no usable history
    """
    pnl = daily_pnl(trades)
    returns = [p / portfolio_value for p in pnl] if portfolio_value > 0 else []

    daily_vol = stats.sample_stdev(returns)
    var = value_at_risk(returns)
    es = expected_shortfall(returns)

    return RiskMetrics(
        portfolio_risk=daily_vol * 100.0,
        sharpe_ratio=stats.sharpe_ratio(returns, risk_free_rate),
        volatility=stats.annualized_volatility(returns) * 100.0,
        beta=DEFAULT_BETA,
        max_drawdown=max_drawdown_percent(trades),
        value_at_risk=abs(var) * portfolio_value if var < 0 else 0.0,
        expected_shortfall=abs(es) * portfolio_value if es < 0 else 0.0,
        concentration_risk=concentration_risk(holdings),
        correlation_risk=correlation_risk(holdings),
    )
