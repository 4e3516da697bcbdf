"""
Performance metrics calculator for backtesting.

Reduces the closed-trade list and the equity curve of a run into a fixed
report of return, risk and trade-quality statistics, plus monthly-return
buckets and streak statistics.

All ratios are annualized with a 365-day year (see strategylab.core.stats).
"""

from dataclasses import dataclass, asdict, fields
from typing import Optional, Sequence
import math

from strategylab.backtest.portfolio import ClosedTrade, EquityPoint
from strategylab.core import stats


@dataclass(frozen=True)
class MonthlyReturn:
    """Equity change within one calendar month."""
    month: str  # YYYY-MM
    return_amount: float
    return_percent: float

    def to_dict(self) -> dict:
        return {
            "month": self.month,
            "return": self.return_amount,
            "return_percent": self.return_percent,
        }


@dataclass(frozen=True)
class PerformanceStats:
    """Consistency statistics derived from monthly returns and trade order."""
    best_month_percent: float = 0.0
    worst_month_percent: float = 0.0
    positive_months: int = 0
    negative_months: int = 0
    max_consecutive_wins: int = 0
    max_consecutive_losses: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class MetricsReport:
    """
    Complete set of derived backtest statistics.

    Metrics include:
    - Total, percent and annualized return
    - Volatility and risk-adjusted returns (Sharpe, Sortino, Calmar)
    - Drawdown maxima
    - Trade statistics (win rate, profit factor, averages, extremes)

    A report is a pure derived value: build it with `from_backtest` and
    never mutate it.
    """
    # Return metrics
    total_return: float = 0.0
    total_return_percent: float = 0.0
    annualized_return_percent: float = 0.0

    # Risk metrics
    volatility_percent: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_percent: float = 0.0
    calmar_ratio: float = 0.0

    # Trade statistics
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0
    average_win: float = 0.0
    average_loss: float = 0.0
    profit_factor: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    average_holding_period: float = 0.0
    total_commissions: float = 0.0

    @classmethod
    def empty(cls) -> "MetricsReport":
        """All-zero report for runs without trades or equity points."""
        return cls()

    @classmethod
    def from_backtest(
        cls,
        trades: Sequence[ClosedTrade],
        equity_curve: Sequence[EquityPoint],
        initial_capital: Optional[float] = None,
        risk_free_rate: float = 0.02,
    ) -> "MetricsReport":
        """
        Calculate all performance metrics for a finished run.

        Args:
            trades: Closed trades in close order
            equity_curve: One point per simulated day
            initial_capital: Starting capital; defaults to the first
                point's equity
            risk_free_rate: Annual risk-free rate (default 2%)

        Returns:
            MetricsReport with all calculated values
        """
        if not trades or not equity_curve:
            return cls.empty()

        if initial_capital is None:
            initial_capital = equity_curve[0].equity

        final_equity = equity_curve[-1].equity
        total_return = final_equity - initial_capital
        total_return_percent = total_return / initial_capital * 100.0 if initial_capital > 0 else 0.0

        annualized = cls._calculate_annualized_return(final_equity, initial_capital, len(equity_curve))

        returns = stats.daily_returns([ep.equity for ep in equity_curve])
        volatility_percent = stats.annualized_volatility(returns) * 100.0

        max_drawdown = max(ep.drawdown for ep in equity_curve)
        max_drawdown_percent = max(ep.drawdown_percent for ep in equity_curve)
        calmar = annualized / max_drawdown_percent if max_drawdown_percent > 0 else 0.0

        winners = [t.profit for t in trades if t.profit > 0]
        losers = [t.profit for t in trades if t.profit < 0]
        avg_win, avg_loss = cls._calculate_avg_win_loss(winners, losers)
        largest_win, largest_loss = cls._calculate_largest_win_loss(trades)

        return cls(
            total_return=total_return,
            total_return_percent=total_return_percent,
            annualized_return_percent=annualized,
            volatility_percent=volatility_percent,
            sharpe_ratio=stats.sharpe_ratio(returns, risk_free_rate),
            sortino_ratio=stats.sortino_ratio(returns, risk_free_rate),
            max_drawdown=max_drawdown,
            max_drawdown_percent=max_drawdown_percent,
            calmar_ratio=calmar,
            total_trades=len(trades),
            winning_trades=len(winners),
            losing_trades=len(losers),
            win_rate=len(winners) / len(trades) * 100.0,
            average_win=avg_win,
            average_loss=avg_loss,
            profit_factor=avg_win / avg_loss if avg_loss > 0 else 0.0,
            largest_win=largest_win,
            largest_loss=largest_loss,
            average_holding_period=sum(t.holding_period for t in trades) / len(trades),
            total_commissions=sum(t.commission for t in trades),
        )

    @staticmethod
    def _calculate_annualized_return(final_equity: float, initial_capital: float, days: int) -> float:
        """
        Annualized return percent.

        Annualized = ((final / initial) ^ (365 / days) - 1) * 100
        """
        if initial_capital <= 0 or days <= 0 or final_equity <= 0:
            return 0.0
        try:
            growth = math.pow(final_equity / initial_capital, stats.DAYS_PER_YEAR / days)
        except OverflowError:
            return 0.0
        return (growth - 1) * 100.0

    @staticmethod
    def _calculate_avg_win_loss(winners: list[float], losers: list[float]) -> tuple[float, float]:
        """
        Calculate average winning and losing trade P&L.

        Returns:
            Tuple of (avg_win, avg_loss) with avg_loss as a positive number
        """
        avg_win = sum(winners) / len(winners) if winners else 0.0
        avg_loss = abs(sum(losers) / len(losers)) if losers else 0.0

        return avg_win, avg_loss

    @staticmethod
    def _calculate_largest_win_loss(trades: Sequence[ClosedTrade]) -> tuple[float, float]:
        """Largest win (>= 0) and largest loss (<= 0)."""
        profits = [t.profit for t in trades]
        return max(0.0, max(profits)), min(0.0, min(profits))

    def objective(self, name: str) -> float:
        """Look up a metric by name, as used for optimizer ranking."""
        if name not in {f.name for f in fields(self)}:
            raise KeyError(f"Unknown metric: {name}")
        return getattr(self, name)

    def to_dict(self) -> dict:
        """Convert metrics to dictionary for JSON serialization."""
        return asdict(self)

    def summary(self) -> str:
        """Generate a human-readable summary of performance."""
        lines = [
            "=" * 50,
            "BACKTEST PERFORMANCE SUMMARY",
            "=" * 50,
            f"Total Return: ${self.total_return:,.2f} ({self.total_return_percent:.2f}%)",
            f"Annualized Return: {self.annualized_return_percent:.2f}%",
            "",
            "Risk Metrics:",
            f"  Volatility: {self.volatility_percent:.2f}%",
            f"  Sharpe Ratio: {self.sharpe_ratio:.2f}",
            f"  Sortino Ratio: {self.sortino_ratio:.2f}",
            f"  Calmar Ratio: {self.calmar_ratio:.2f}",
            f"  Max Drawdown: ${self.max_drawdown:,.2f} ({self.max_drawdown_percent:.2f}%)",
            "",
            "Trade Statistics:",
            f"  Total Trades: {self.total_trades}",
            f"  Winners: {self.winning_trades} | Losers: {self.losing_trades}",
            f"  Win Rate: {self.win_rate:.2f}%",
            f"  Profit Factor: {self.profit_factor:.2f}",
            "",
            "Trade Details:",
            f"  Avg Win: ${self.average_win:.2f}",
            f"  Avg Loss: ${self.average_loss:.2f}",
            f"  Largest Win: ${self.largest_win:.2f}",
            f"  Largest Loss: ${self.largest_loss:.2f}",
            f"  Avg Holding Period: {self.average_holding_period:.1f} days",
            f"  Commissions: ${self.total_commissions:.2f}",
            "=" * 50,
        ]
        return "\n".join(lines)


def calculate_monthly_returns(equity_curve: Sequence[EquityPoint]) -> list[MonthlyReturn]:
    """
    Bucket equity points by calendar month.

    Each bucket's return is the last equity of the month minus the first;
    the percent is relative to the first.
    """
    buckets: dict[str, list[float]] = {}
    for point in equity_curve:
        buckets.setdefault(point.date.strftime("%Y-%m"), []).append(point.equity)

    monthly = []
    for month in sorted(buckets):
        values = buckets[month]
        first, last = values[0], values[-1]
        amount = last - first
        monthly.append(MonthlyReturn(
            month=month,
            return_amount=amount,
            return_percent=amount / first * 100.0 if first > 0 else 0.0,
        ))
    return monthly


def calculate_streaks(trades: Sequence[ClosedTrade]) -> tuple[int, int]:
    """
    Longest runs of winning and of losing trades, in trade order.

    Break-even trades leave both running streaks untouched.
    """
    max_wins = max_losses = 0
    wins = losses = 0

    for trade in trades:
        if trade.profit > 0:
            wins += 1
            losses = 0
        elif trade.profit < 0:
            losses += 1
            wins = 0
        max_wins = max(max_wins, wins)
        max_losses = max(max_losses, losses)

    return max_wins, max_losses


def calculate_performance_stats(
    monthly_returns: Sequence[MonthlyReturn],
    trades: Sequence[ClosedTrade],
) -> PerformanceStats:
    max_wins, max_losses = calculate_streaks(trades)
    percents = [m.return_percent for m in monthly_returns]

    return PerformanceStats(
        best_month_percent=max(percents) if percents else 0.0,
        worst_month_percent=min(percents) if percents else 0.0,
        positive_months=sum(1 for p in percents if p > 0),
        negative_months=sum(1 for p in percents if p < 0),
        max_consecutive_wins=max_wins,
        max_consecutive_losses=max_losses,
    )
