"""
Backtest engine for running strategy simulations.

Replays a strategy bar-by-bar over provider-supplied price series, drives
the portfolio for every entry and exit, records one equity point per
simulated day and derives the metrics report at the end.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Mapping, Optional, Sequence, Type
import logging
import time

from strategylab.backtest.portfolio import Portfolio, ClosedTrade, EquityPoint, ExitReason
from strategylab.backtest.performance import (
    MetricsReport,
    MonthlyReturn,
    PerformanceStats,
    calculate_monthly_returns,
    calculate_performance_stats,
)
from strategylab.config import get_settings
from strategylab.core.cancellation import CancellationToken
from strategylab.data.base_provider import PriceDataProvider
from strategylab.exceptions import BacktestConfigError, PriceDataError
from strategylab.models.market_data import PriceBar
from strategylab.models.strategy import StrategyDefinition
from strategylab.observability import metrics as prom
from strategylab.strategies.base_strategy import BaseStrategy
from strategylab.strategies.ma_crossover import MovingAverageCrossoverStrategy
from strategylab.strategies.signals import SignalType

logger = logging.getLogger(__name__)


@dataclass
class BacktestConfig:
    """Configuration for a backtest run."""
    start_date: datetime
    end_date: datetime
    symbols: list[str]
    initial_capital: float = 100000.0
    commission: float = 0.0  # flat amount per entry and per exit
    slippage: float = 0.0  # fraction, 0.001 = 0.1%
    max_positions: int = 5
    risk_free_rate: float = 0.02  # 2% annual
    position_size_fraction: float = 0.10
    max_position_fraction: float = 0.20
    min_position_value: float = 1000.0
    min_days: int = 30
    max_days: int = 1095

    def __post_init__(self):
        """Validate configuration."""
        self.symbols = list(self.symbols)

        if self.start_date >= self.end_date:
            raise BacktestConfigError("Start date must be before end date")
        if self.initial_capital <= 0:
            raise BacktestConfigError("Initial capital must be positive")
        if not self.symbols:
            raise BacktestConfigError("At least one symbol is required")
        if len(set(self.symbols)) != len(self.symbols):
            raise BacktestConfigError("Symbols must be unique")
        if self.commission < 0:
            raise BacktestConfigError("Commission cannot be negative")
        if not 0 <= self.slippage < 1:
            raise BacktestConfigError("Slippage must be a fraction in [0, 1)")
        if self.max_positions < 1:
            raise BacktestConfigError("max_positions must be at least 1")
        if not 0 < self.position_size_fraction <= 1 or not 0 < self.max_position_fraction <= 1:
            raise BacktestConfigError("Position size fractions must be between 0 and 1")
        if self.min_position_value < 0:
            raise BacktestConfigError("min_position_value cannot be negative")

        days = self.days_in_range
        if days < self.min_days or days > self.max_days:
            raise BacktestConfigError(
                f"Date range of {days} days is outside the allowed "
                f"{self.min_days}-{self.max_days} days"
            )

    @property
    def days_in_range(self) -> int:
        return (self.end_date - self.start_date).days

    def to_dict(self) -> dict:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "symbols": list(self.symbols),
            "initial_capital": self.initial_capital,
            "commission": self.commission,
            "slippage": self.slippage,
            "max_positions": self.max_positions,
            "risk_free_rate": self.risk_free_rate,
            "position_size_fraction": self.position_size_fraction,
            "max_position_fraction": self.max_position_fraction,
            "min_position_value": self.min_position_value,
        }


@dataclass
class BacktestResult:
    """Container for backtest results."""
    strategy: StrategyDefinition
    config: BacktestConfig
    metrics: MetricsReport
    trades: list[ClosedTrade]
    equity_curve: list[EquityPoint]
    monthly_returns: list[MonthlyReturn] = field(default_factory=list)
    performance_stats: PerformanceStats = field(default_factory=PerformanceStats)
    final_cash: float = 0.0

    def to_dict(self) -> dict:
        """Convert result to a plain dictionary; nothing is truncated."""
        return {
            "strategy": self.strategy.to_dict(),
            "config": self.config.to_dict(),
            "metrics": self.metrics.to_dict(),
            "trades": [t.to_dict() for t in self.trades],
            "equity_curve": [ep.to_dict() for ep in self.equity_curve],
            "monthly_returns": [m.to_dict() for m in self.monthly_returns],
            "performance_stats": self.performance_stats.to_dict(),
            "final_cash": self.final_cash,
        }


def load_price_bars(
    provider: PriceDataProvider, config: BacktestConfig
) -> dict[str, tuple[PriceBar, ...]]:
    """
    Fetch each symbol's bars and enforce the provider contract.

    Raises:
        PriceDataError: On out-of-order or duplicated timestamps, or
            when no symbol has any bars in range
    """
    bars_by_symbol = {}

    for symbol in config.symbols:
        bars = tuple(provider.get_bars(symbol, config.start_date, config.end_date))

        for prev, curr in zip(bars, bars[1:]):
            if curr.timestamp == prev.timestamp:
                raise PriceDataError(f"Duplicate bar for {symbol} at {curr.timestamp.isoformat()}")
            if curr.timestamp < prev.timestamp:
                raise PriceDataError(
                    f"Bars for {symbol} out of order: {curr.timestamp.isoformat()} "
                    f"after {prev.timestamp.isoformat()}"
                )
        for bar in bars:
            if bar.symbol != symbol:
                raise PriceDataError(f"Provider returned a {bar.symbol} bar for {symbol}")

        if not bars:
            logger.warning(f"No price data for {symbol} in range")
        bars_by_symbol[symbol] = bars

    if not any(bars_by_symbol.values()):
        raise PriceDataError("No price data available for any symbol in the date range")

    return bars_by_symbol


class BacktestEngine:
    """
    Engine for running backtests on provider-supplied daily bars.

    The engine:
    1. Loads and validates each symbol's bars for the configured range
    2. Walks the union of trading days in ascending order
    3. Per symbol (in config order): checks exits, then acts on the signal
    4. Records one equity point per day
    5. Force-closes open positions and derives the metrics report

    Every run builds a fresh Portfolio, so a single engine can be reused
    and several engines can run concurrently.

    Example:
        engine = BacktestEngine(config, StrategyDefinition("ma"))
        result = engine.run(provider)
        print(result.metrics.summary())
    """

    def __init__(
        self,
        config: BacktestConfig,
        strategy: StrategyDefinition,
        strategy_class: Type[BaseStrategy] = MovingAverageCrossoverStrategy,
    ):
        """
        Initialize the backtest engine.

        Args:
            config: Validated BacktestConfig
            strategy: Strategy definition (name + parameters)
            strategy_class: Signal generator implementation

        Raises:
            BacktestConfigError: If the strategy parameters are invalid
        """
        self.config = config
        self.definition = strategy
        self.strategy_class = strategy_class
        # Built eagerly so bad parameters fail before any data is loaded
        self.strategy = strategy_class(strategy)

    def run(
        self,
        provider: PriceDataProvider,
        cancellation_token: Optional[CancellationToken] = None,
    ) -> BacktestResult:
        """
        Run the backtest.

        Args:
            provider: Source of daily bars per symbol
            cancellation_token: Checked once per simulated day

        Returns:
            BacktestResult with metrics, trades and equity curve

        Raises:
            PriceDataError: If bars are unordered, duplicated or missing
            BacktestCancelledError: If the token is cancelled mid-run
        """
        return self._instrumented(
            lambda: self._simulate(load_price_bars(provider, self.config), cancellation_token)
        )

    def run_on_bars(
        self,
        bars_by_symbol: Mapping[str, Sequence[PriceBar]],
        cancellation_token: Optional[CancellationToken] = None,
    ) -> BacktestResult:
        """
        Run the backtest on bars already returned by load_price_bars.

        The bars are only read, so one loaded mapping can back many runs
        at once.

        Args:
            bars_by_symbol: Validated bars per configured symbol
            cancellation_token: Checked once per simulated day

        Returns:
            BacktestResult with metrics, trades and equity curve
        """
        return self._instrumented(lambda: self._simulate(bars_by_symbol, cancellation_token))

    @staticmethod
    def _instrumented(simulate: Callable[[], BacktestResult]) -> BacktestResult:
        started = time.perf_counter()
        prom.backtests_running.inc()
        try:
            result = simulate()
        except Exception as e:
            prom.record_backtest(type(e).__name__, time.perf_counter() - started)
            raise
        finally:
            prom.backtests_running.dec()

        prom.record_backtest("completed", time.perf_counter() - started)
        return result

    def _simulate(
        self,
        bars_by_symbol: Mapping[str, Sequence[PriceBar]],
        cancellation_token: Optional[CancellationToken],
    ) -> BacktestResult:
        config = self.config

        logger.info(
            f"Starting backtest: {self.definition.name} on {', '.join(config.symbols)} "
            f"from {config.start_date:%Y-%m-%d} to {config.end_date:%Y-%m-%d}"
        )

        portfolio = Portfolio(
            initial_capital=config.initial_capital,
            commission=config.commission,
            slippage=config.slippage,
            position_size_fraction=config.position_size_fraction,
            max_position_fraction=config.max_position_fraction,
            min_position_value=config.min_position_value,
        )

        # Index of each symbol's bar per timestamp, for history slicing
        index_by_day: dict[str, dict[datetime, int]] = {
            symbol: {bar.timestamp: i for i, bar in enumerate(bars)}
            for symbol, bars in bars_by_symbol.items()
        }
        trading_days = sorted({bar.timestamp for bars in bars_by_symbol.values() for bar in bars})
        last_close: dict[str, float] = {}

        logger.info(f"Processing {len(trading_days)} trading days")

        for day in trading_days:
            if cancellation_token is not None:
                cancellation_token.raise_if_cancelled()

            for symbol in config.symbols:
                idx = index_by_day.get(symbol, {}).get(day)
                if idx is None:
                    continue

                bars = bars_by_symbol[symbol]
                bar = bars[idx]
                last_close[symbol] = bar.close

                for trade in portfolio.check_exits(bar):
                    prom.record_simulated_trade(trade.reason.value)

                self._process_signal(portfolio, bars[:idx + 1])

            portfolio.update_equity(last_close, day)

        self._close_remaining_positions(portfolio, bars_by_symbol)

        metrics = MetricsReport.from_backtest(
            portfolio.trades,
            portfolio.equity_curve,
            initial_capital=config.initial_capital,
            risk_free_rate=config.risk_free_rate,
        )
        monthly_returns = calculate_monthly_returns(portfolio.equity_curve)
        performance_stats = calculate_performance_stats(monthly_returns, portfolio.trades)

        logger.info(
            f"Backtest completed: {metrics.total_trades} trades, "
            f"total return {metrics.total_return_percent:.2f}%"
        )

        return BacktestResult(
            strategy=self.definition,
            config=config,
            metrics=metrics,
            trades=list(portfolio.trades),
            equity_curve=list(portfolio.equity_curve),
            monthly_returns=monthly_returns,
            performance_stats=performance_stats,
            final_cash=portfolio.cash,
        )

    def _process_signal(self, portfolio: Portfolio, history: Sequence[PriceBar]) -> None:
        """
        Evaluate the strategy for one symbol and act on the signal.

        Args:
            portfolio: Run-local portfolio
            history: The symbol's bars up to and including today
        """
        bar = history[-1]
        signal = self.strategy.generate_signal(history)

        if signal.type == SignalType.BUY:
            self._handle_buy_signal(portfolio, bar)
        elif signal.type == SignalType.SELL:
            self._handle_sell_signal(portfolio, bar)

    def _handle_buy_signal(self, portfolio: Portfolio, bar: PriceBar) -> None:
        # One position per symbol
        if portfolio.has_open_position(bar.symbol):
            logger.debug(f"Already have position in {bar.symbol}, skipping BUY")
            return

        if len(portfolio.positions) >= self.config.max_positions:
            logger.debug(f"Max positions ({self.config.max_positions}) reached, skipping BUY for {bar.symbol}")
            return

        portfolio.open_position(
            symbol=bar.symbol,
            market_price=bar.close,
            entry_date=bar.timestamp,
            stop_loss_percent=self.strategy.config["stop_loss_percent"],
            take_profit_percent=self.strategy.config["take_profit_percent"],
        )

    def _handle_sell_signal(self, portfolio: Portfolio, bar: PriceBar) -> None:
        """SELL closes an open long at the close; there is no short selling."""
        if not self.strategy.exit_on_sell_signal:
            return

        position = portfolio.get_position(bar.symbol)
        if position is None:
            return

        trade = portfolio.close_position(position, bar.close, bar.timestamp, ExitReason.SIGNAL_EXIT)
        prom.record_simulated_trade(trade.reason.value)

    def _close_remaining_positions(
        self,
        portfolio: Portfolio,
        bars_by_symbol: dict[str, list[PriceBar]],
    ) -> None:
        """
        Close any remaining open positions at each symbol's final close.

        Args:
            portfolio: Run-local portfolio
            bars_by_symbol: Loaded bars per symbol
        """
        for position in list(portfolio.positions):
            final_bar = bars_by_symbol[position.symbol][-1]
            trade = portfolio.close_position(
                position,
                exit_price=final_bar.close,
                exit_date=final_bar.timestamp,
                reason=ExitReason.END_OF_PERIOD,
            )
            prom.record_simulated_trade(trade.reason.value)
            logger.info(f"Closed remaining position in {position.symbol} at end of backtest")


def run_backtest(
    strategy: StrategyDefinition,
    provider: PriceDataProvider,
    symbols: list[str],
    start_date: datetime,
    end_date: datetime,
    initial_capital: float = 100000.0,
    commission: float = 0.0,
    slippage: float = 0.0,
    max_positions: int = 5,
    strategy_class: Type[BaseStrategy] = MovingAverageCrossoverStrategy,
    cancellation_token: Optional[CancellationToken] = None,
) -> BacktestResult:
    """
    Convenience function to run a backtest with settings-supplied defaults.

    Args:
        strategy: Strategy definition to simulate
        provider: Source of daily bars
        symbols: Symbols to trade, in processing order
        start_date: Backtest start date
        end_date: Backtest end date
        initial_capital: Starting capital
        commission: Flat commission per entry and per exit
        slippage: Slippage fraction
        max_positions: Maximum concurrent positions
        strategy_class: Signal generator implementation
        cancellation_token: Optional cooperative cancellation

    Returns:
        BacktestResult with metrics, trades and equity curve
    """
    settings = get_settings()

    config = BacktestConfig(
        start_date=start_date,
        end_date=end_date,
        symbols=symbols,
        initial_capital=initial_capital,
        commission=commission,
        slippage=slippage,
        max_positions=max_positions,
        risk_free_rate=settings.risk_free_rate,
        min_position_value=settings.min_position_value,
        min_days=settings.backtest_min_days,
        max_days=settings.backtest_max_days,
    )

    engine = BacktestEngine(config, strategy, strategy_class)
    return engine.run(provider, cancellation_token)
