"""
Unit tests for the backtest engine, portfolio simulator and metrics.
"""

import pytest
from datetime import datetime, timedelta

from strategylab.backtest.engine import BacktestConfig, BacktestEngine, load_price_bars, run_backtest
from strategylab.backtest.performance import (
    MetricsReport,
    calculate_monthly_returns,
    calculate_performance_stats,
    calculate_streaks,
)
from strategylab.backtest.portfolio import ExitReason, Portfolio, TradeSide
from strategylab.core.cancellation import CancellationToken
from strategylab.data.memory_provider import InMemoryPriceProvider
from strategylab.exceptions import BacktestCancelledError, BacktestConfigError, PriceDataError
from strategylab.models.strategy import StrategyDefinition


# ============================================================================
# Portfolio Tests
# ============================================================================

class TestPortfolio:
    """Tests for the Portfolio class."""

    def test_portfolio_initialization(self):
        """Test portfolio initializes correctly."""
        portfolio = Portfolio(initial_capital=100000.0)

        assert portfolio.cash == 100000.0
        assert len(portfolio.positions) == 0
        assert len(portfolio.trades) == 0
        assert len(portfolio.equity_curve) == 0

    def test_open_position_sizing(self):
        """Test entry commits 10% of cash rounded down to whole shares."""
        portfolio = Portfolio(initial_capital=100000.0)
        entry_date = datetime(2024, 1, 1)

        position = portfolio.open_position("AAPL", 138.1, entry_date, 5.0, 15.0)

        assert position is not None
        assert position.side == TradeSide.LONG
        assert position.quantity == 72
        assert position.value == pytest.approx(72 * 138.1)
        assert position.stop_loss == pytest.approx(138.1 * 0.95)
        assert position.take_profit == pytest.approx(138.1 * 1.15)
        assert portfolio.cash == pytest.approx(100000.0 - 72 * 138.1)

    def test_entry_budget_capped_by_initial_capital(self):
        """Test 10% of cash never exceeds 20% of initial capital."""
        portfolio = Portfolio(initial_capital=100000.0)
        portfolio.cash = 500000.0

        assert portfolio.entry_budget() == pytest.approx(20000.0)

    def test_open_position_applies_slippage_and_commission(self):
        """Test entry price worsens by slippage and commission is charged."""
        portfolio = Portfolio(initial_capital=100000.0, commission=5.0, slippage=0.01)

        position = portfolio.open_position("AAPL", 100.0, datetime(2024, 1, 1))

        assert position.entry_price == pytest.approx(101.0)
        assert position.quantity == 99
        assert position.value == pytest.approx(99 * 101.0 + 5.0)
        assert portfolio.cash == pytest.approx(100000.0 - 99 * 101.0 - 5.0)

    def test_open_position_below_minimum_value_rejected(self):
        """Test entries smaller than the minimum viable size are skipped."""
        portfolio = Portfolio(initial_capital=5000.0)

        position = portfolio.open_position("AAPL", 100.0, datetime(2024, 1, 1))

        assert position is None
        assert portfolio.cash == 5000.0

    def test_open_position_price_above_budget_rejected(self):
        """Test zero-share entries are skipped."""
        portfolio = Portfolio(initial_capital=100000.0)

        assert portfolio.open_position("BRK", 20000.0, datetime(2024, 1, 1)) is None

    def test_close_position_profit(self):
        """Test closing a long with commission and slippage on exit."""
        portfolio = Portfolio(initial_capital=100000.0, commission=5.0, slippage=0.01)
        entry_date = datetime(2024, 1, 1)
        position = portfolio.open_position("AAPL", 100.0, entry_date)
        cash_after_entry = portfolio.cash

        trade = portfolio.close_position(position, 120.0, entry_date + timedelta(days=3), ExitReason.SIGNAL_EXIT)

        assert trade.exit_price == pytest.approx(118.8)
        assert trade.commission == pytest.approx(10.0)
        assert trade.profit == pytest.approx((118.8 - 101.0) * 99 - 10.0)
        assert trade.profit_percent == pytest.approx(trade.profit / (101.0 * 99) * 100.0)
        assert trade.holding_period == 3
        assert trade.reason == ExitReason.SIGNAL_EXIT
        assert portfolio.cash == pytest.approx(cash_after_entry + 118.8 * 99 - 5.0)
        assert portfolio.cash == pytest.approx(100000.0 + trade.profit)
        assert len(portfolio.positions) == 0

    def test_close_unknown_position_raises(self):
        portfolio = Portfolio(initial_capital=100000.0)
        other = Portfolio(initial_capital=100000.0)
        position = other.open_position("AAPL", 100.0, datetime(2024, 1, 1))

        with pytest.raises(ValueError):
            portfolio.close_position(position, 100.0, datetime(2024, 1, 2), ExitReason.SIGNAL_EXIT)

    def test_stop_loss_trigger(self, bar_factory):
        """Test the day's low reaching the stop closes at the stop."""
        portfolio = Portfolio(initial_capital=100000.0)
        portfolio.open_position("AAPL", 100.0, datetime(2024, 1, 1), 5.0, 15.0)

        closed = portfolio.check_exits(bar_factory("AAPL", datetime(2024, 1, 2), 96.0, low=94.0))

        assert len(closed) == 1
        assert closed[0].reason == ExitReason.STOP_LOSS
        assert closed[0].exit_price == pytest.approx(95.0)

    def test_take_profit_trigger(self, bar_factory):
        """Test the day's high reaching the target closes at the target."""
        portfolio = Portfolio(initial_capital=100000.0)
        portfolio.open_position("AAPL", 100.0, datetime(2024, 1, 1), 5.0, 15.0)

        closed = portfolio.check_exits(bar_factory("AAPL", datetime(2024, 1, 2), 114.0, high=116.0))

        assert len(closed) == 1
        assert closed[0].reason == ExitReason.TAKE_PROFIT
        assert closed[0].exit_price == pytest.approx(115.0)

    def test_stop_loss_checked_before_take_profit(self, bar_factory):
        """Test a bar spanning both levels is a stop-out."""
        portfolio = Portfolio(initial_capital=100000.0)
        portfolio.open_position("AAPL", 100.0, datetime(2024, 1, 1), 5.0, 15.0)

        closed = portfolio.check_exits(bar_factory("AAPL", datetime(2024, 1, 2), 100.0, high=120.0, low=90.0))

        assert closed[0].reason == ExitReason.STOP_LOSS

    def test_exit_check_ignores_other_symbols(self, bar_factory):
        portfolio = Portfolio(initial_capital=100000.0)
        portfolio.open_position("AAPL", 100.0, datetime(2024, 1, 1), 5.0, 15.0)

        closed = portfolio.check_exits(bar_factory("MSFT", datetime(2024, 1, 2), 50.0, low=10.0))

        assert closed == []
        assert portfolio.has_open_position("AAPL")

    def test_equity_curve_update(self):
        """Test equity is cash plus marked positions and drawdown tracks the peak."""
        portfolio = Portfolio(initial_capital=100000.0)
        portfolio.open_position("AAPL", 100.0, datetime(2024, 1, 1))

        first = portfolio.update_equity({"AAPL": 110.0}, datetime(2024, 1, 1))
        second = portfolio.update_equity({"AAPL": 90.0}, datetime(2024, 1, 2))
        third = portfolio.update_equity({"AAPL": 120.0}, datetime(2024, 1, 3))

        assert first.equity == pytest.approx(100000.0 + 100 * 10.0)
        assert first.equity == pytest.approx(first.cash + first.position_value)
        assert first.drawdown == 0.0
        assert second.drawdown == pytest.approx(2000.0)
        assert second.drawdown_percent == pytest.approx(2000.0 / 101000.0 * 100.0)
        assert third.drawdown == 0.0
        assert third.drawdown_percent == 0.0

    def test_equity_uses_entry_price_when_unpriced(self):
        portfolio = Portfolio(initial_capital=100000.0)
        portfolio.open_position("AAPL", 100.0, datetime(2024, 1, 1))

        point = portfolio.update_equity({}, datetime(2024, 1, 1))

        assert point.equity == pytest.approx(100000.0)


# ============================================================================
# Performance Metrics Tests
# ============================================================================

class TestMetricsReport:
    """Tests for MetricsReport and its helpers."""

    def test_empty_inputs_give_zero_report(self, equity_curve_factory, trade_factory):
        """Test an empty trade list or curve yields an all-zero report."""
        curve = equity_curve_factory([100000.0, 101000.0])

        assert MetricsReport.from_backtest([], curve) == MetricsReport.empty()
        assert MetricsReport.from_backtest([trade_factory(100.0)], []) == MetricsReport.empty()
        assert all(v == 0 for v in MetricsReport.empty().to_dict().values())

    def test_trade_statistics(self, equity_curve_factory, trade_factory):
        """Test win/loss counts, averages and extremes."""
        trades = [trade_factory(p, commission=2.0) for p in (300.0, -100.0, 0.0, 200.0, 250.0, -50.0)]
        curve = equity_curve_factory([100000.0, 100300.0, 100600.0])

        report = MetricsReport.from_backtest(trades, curve, initial_capital=100000.0)

        assert report.total_trades == 6
        assert report.winning_trades == 3
        assert report.losing_trades == 2
        assert report.win_rate == pytest.approx(50.0)
        assert report.average_win == pytest.approx(250.0)
        assert report.average_loss == pytest.approx(75.0)
        assert report.profit_factor == pytest.approx(250.0 / 75.0)
        assert report.largest_win == pytest.approx(300.0)
        assert report.largest_loss == pytest.approx(-100.0)
        assert report.total_commissions == pytest.approx(12.0)

    def test_profit_factor_zero_without_losers(self, equity_curve_factory, trade_factory):
        report = MetricsReport.from_backtest(
            [trade_factory(100.0), trade_factory(50.0)],
            equity_curve_factory([100000.0, 100150.0]),
        )

        assert report.profit_factor == 0.0
        assert report.largest_loss == 0.0

    def test_return_and_drawdown(self, equity_curve_factory, trade_factory):
        """Test return, annualized return, drawdown maxima and Calmar."""
        curve = equity_curve_factory([100000.0, 102000.0, 99960.0, 103000.0])

        report = MetricsReport.from_backtest([trade_factory(3000.0)], curve, initial_capital=100000.0)

        assert report.total_return == pytest.approx(3000.0)
        assert report.total_return_percent == pytest.approx(3.0)
        assert report.annualized_return_percent == pytest.approx((1.03 ** (365 / 4) - 1) * 100.0)
        assert report.max_drawdown == pytest.approx(2040.0)
        assert report.max_drawdown_percent == pytest.approx(2.0)
        assert report.calmar_ratio == pytest.approx(report.annualized_return_percent / 2.0)
        assert report.volatility_percent > 0

    def test_initial_capital_defaults_to_first_point(self, equity_curve_factory, trade_factory):
        curve = equity_curve_factory([50000.0, 51000.0])

        report = MetricsReport.from_backtest([trade_factory(1000.0)], curve)

        assert report.total_return == pytest.approx(1000.0)
        assert report.total_return_percent == pytest.approx(2.0)

    def test_flat_equity_has_zero_ratios(self, equity_curve_factory, trade_factory):
        """Test zero volatility gives zero Sharpe, Sortino and Calmar."""
        curve = equity_curve_factory([100000.0] * 10)

        report = MetricsReport.from_backtest([trade_factory(0.0)], curve)

        assert report.sharpe_ratio == 0.0
        assert report.sortino_ratio == 0.0
        assert report.calmar_ratio == 0.0
        assert report.volatility_percent == 0.0

    def test_sortino_zero_without_negative_returns(self, equity_curve_factory, trade_factory):
        curve = equity_curve_factory([100000.0, 101000.0, 103000.0, 104000.0])

        report = MetricsReport.from_backtest([trade_factory(4000.0)], curve)

        assert report.sortino_ratio == 0.0
        assert report.sharpe_ratio > 0

    def test_objective_lookup(self, equity_curve_factory, trade_factory):
        report = MetricsReport.from_backtest([trade_factory(100.0)], equity_curve_factory([100.0, 200.0]))

        assert report.objective("total_return") == report.total_return
        with pytest.raises(KeyError):
            report.objective("not_a_metric")

    def test_monthly_returns(self, equity_curve_factory):
        """Test equity is bucketed by calendar month."""
        curve = equity_curve_factory(
            [100000.0, 101000.0, 100500.0, 102000.0],
            start=datetime(2024, 1, 30),
        )

        monthly = calculate_monthly_returns(curve)

        assert [m.month for m in monthly] == ["2024-01", "2024-02"]
        assert monthly[0].return_amount == pytest.approx(1000.0)
        assert monthly[0].return_percent == pytest.approx(1.0)
        assert monthly[1].return_amount == pytest.approx(1500.0)
        assert monthly[1].return_percent == pytest.approx(1500.0 / 100500.0 * 100.0)

    def test_streaks(self, trade_factory):
        """Test longest winning and losing runs in trade order."""
        trades = [trade_factory(p) for p in (300.0, -100.0, -20.0, 200.0, 250.0, 10.0, -50.0)]

        assert calculate_streaks(trades) == (3, 2)

    def test_break_even_trades_do_not_break_streaks(self, trade_factory):
        trades = [trade_factory(p) for p in (100.0, 0.0, 100.0)]

        assert calculate_streaks(trades) == (2, 0)

    def test_performance_stats(self, equity_curve_factory, trade_factory):
        curve = equity_curve_factory(
            [100000.0, 101000.0, 100500.0, 99000.0],
            start=datetime(2024, 1, 30),
        )
        stats = calculate_performance_stats(calculate_monthly_returns(curve), [trade_factory(10.0)])

        assert stats.positive_months == 1
        assert stats.negative_months == 1
        assert stats.best_month_percent == pytest.approx(1.0)
        assert stats.worst_month_percent == pytest.approx(-1500.0 / 100500.0 * 100.0)
        assert stats.max_consecutive_wins == 1
        assert stats.max_consecutive_losses == 0


# ============================================================================
# Backtest Config Tests
# ============================================================================

class TestBacktestConfig:
    """Tests for configuration validation."""

    START = datetime(2024, 1, 1)

    def test_valid_config(self):
        config = BacktestConfig(self.START, self.START + timedelta(days=90), ["AAPL"])

        assert config.days_in_range == 90

    @pytest.mark.parametrize("overrides", [
        {"end_date": datetime(2024, 1, 1)},
        {"initial_capital": 0},
        {"symbols": []},
        {"symbols": ["AAPL", "AAPL"]},
        {"commission": -1.0},
        {"slippage": 1.0},
        {"slippage": -0.01},
        {"max_positions": 0},
        {"end_date": datetime(2024, 1, 11)},
        {"end_date": datetime(2027, 6, 1)},
    ])
    def test_invalid_config_rejected(self, overrides):
        """Test invalid configs raise instead of being clamped."""
        kwargs = {
            "start_date": self.START,
            "end_date": self.START + timedelta(days=90),
            "symbols": ["AAPL"],
        }
        kwargs.update(overrides)

        with pytest.raises(BacktestConfigError):
            BacktestConfig(**kwargs)

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            BacktestConfig(self.START, self.START, ["AAPL"])


# ============================================================================
# Backtest Engine Tests
# ============================================================================

class TestBacktestEngine:
    """Tests for full simulation runs."""

    def test_scenario_single_take_profit(self, scenario_config, scenario_provider, default_strategy, scenario_bars):
        """Test the dip-and-recovery scenario yields one BUY closed by take-profit."""
        result = BacktestEngine(scenario_config, default_strategy).run(scenario_provider)

        assert len(result.trades) == 1
        trade = result.trades[0]
        assert trade.reason == ExitReason.TAKE_PROFIT
        assert trade.entry_date == scenario_bars[53].timestamp
        assert trade.exit_date == scenario_bars[73].timestamp
        assert trade.exit_date < scenario_bars[-1].timestamp
        assert trade.entry_price == pytest.approx(138.1)
        assert trade.exit_price == pytest.approx(138.1 * 1.15)
        assert trade.quantity == 72
        assert trade.holding_period == 20
        assert trade.profit == pytest.approx((138.1 * 1.15 - 138.1) * 72)

    def test_scenario_metrics(self, scenario_config, scenario_provider, default_strategy):
        result = BacktestEngine(scenario_config, default_strategy).run(scenario_provider)
        metrics = result.metrics

        assert metrics.total_trades == 1
        assert metrics.winning_trades == 1
        assert metrics.win_rate == pytest.approx(100.0)
        assert metrics.total_return == pytest.approx(result.trades[0].profit)
        assert metrics.max_drawdown == pytest.approx(0.0, abs=1e-6)
        assert result.performance_stats.max_consecutive_wins == 1
        assert [m.month for m in result.monthly_returns] == ["2024-01", "2024-02", "2024-03"]

    def test_one_equity_point_per_day(self, scenario_config, scenario_provider, default_strategy, scenario_bars):
        """Test the curve is gap-free with drawdown never negative."""
        result = BacktestEngine(scenario_config, default_strategy).run(scenario_provider)

        assert len(result.equity_curve) == len(scenario_bars)
        assert [p.date for p in result.equity_curve] == [b.timestamp for b in scenario_bars]
        assert all(p.drawdown >= 0 for p in result.equity_curve)

    def test_capital_conservation_with_costs(self, scenario_provider, default_strategy):
        """Test cash + positions always equals equity and cash ends at capital + profits."""
        config = BacktestConfig(
            start_date=datetime(2024, 1, 1),
            end_date=datetime(2024, 3, 30),
            symbols=["AAPL"],
            initial_capital=100000.0,
            commission=5.0,
            slippage=0.001,
        )

        result = BacktestEngine(config, default_strategy).run(scenario_provider)

        assert len(result.trades) >= 1
        for point in result.equity_curve:
            assert point.equity == pytest.approx(point.cash + point.position_value)
        assert result.final_cash == pytest.approx(100000.0 + sum(t.profit for t in result.trades))
        assert result.metrics.total_commissions == pytest.approx(10.0 * len(result.trades))

    def test_end_of_period_close(self, scenario_provider, default_strategy, scenario_bars):
        """Test open positions are closed at each symbol's final bar."""
        config = BacktestConfig(
            start_date=scenario_bars[0].timestamp,
            end_date=scenario_bars[64].timestamp,
            symbols=["AAPL"],
        )

        result = BacktestEngine(config, default_strategy).run(scenario_provider)

        assert len(result.trades) == 1
        trade = result.trades[0]
        assert trade.reason == ExitReason.END_OF_PERIOD
        assert trade.exit_date == scenario_bars[64].timestamp
        assert trade.exit_price == pytest.approx(149.1)
        assert trade.profit == pytest.approx(792.0)
        assert result.final_cash == pytest.approx(100792.0)
        assert len(result.equity_curve) == 65

    def test_max_positions_respected(self, bars_factory, scenario_bars, default_strategy, scenario_config):
        """Test symbols are processed in config order and the cap blocks later entries."""
        closes = [bar.close for bar in scenario_bars]
        provider = InMemoryPriceProvider({
            "AAPL": scenario_bars,
            "MSFT": bars_factory("MSFT", closes),
        })
        config = BacktestConfig(
            start_date=scenario_config.start_date,
            end_date=scenario_config.end_date,
            symbols=["AAPL", "MSFT"],
            max_positions=1,
        )

        result = BacktestEngine(config, default_strategy).run(provider)

        assert [t.symbol for t in result.trades] == ["AAPL"]

    def test_two_symbols_both_trade_without_cap(self, bars_factory, scenario_bars, default_strategy, scenario_config):
        closes = [bar.close for bar in scenario_bars]
        provider = InMemoryPriceProvider({
            "AAPL": scenario_bars,
            "MSFT": bars_factory("MSFT", closes),
        })
        config = BacktestConfig(
            start_date=scenario_config.start_date,
            end_date=scenario_config.end_date,
            symbols=["AAPL", "MSFT"],
        )

        result = BacktestEngine(config, default_strategy).run(provider)

        assert sorted(t.symbol for t in result.trades) == ["AAPL", "MSFT"]
        assert len(result.equity_curve) == len(scenario_bars)

    def test_duplicate_bars_rejected(self, scenario_bars, scenario_config, default_strategy):
        provider = InMemoryPriceProvider({"AAPL": scenario_bars[:10] + scenario_bars[9:]})

        with pytest.raises(PriceDataError):
            BacktestEngine(scenario_config, default_strategy).run(provider)

    def test_out_of_order_bars_rejected(self, scenario_bars, scenario_config, default_strategy):
        provider = InMemoryPriceProvider({"AAPL": list(reversed(scenario_bars))})

        with pytest.raises(PriceDataError):
            BacktestEngine(scenario_config, default_strategy).run(provider)

    def test_wrong_symbol_rejected(self, bars_factory, scenario_config, default_strategy):
        provider = InMemoryPriceProvider({"AAPL": bars_factory("MSFT", [100.0] * 30)})

        with pytest.raises(PriceDataError):
            BacktestEngine(scenario_config, default_strategy).run(provider)

    def test_no_data_rejected(self, scenario_config, default_strategy):
        """Test a run with no bars for any symbol fails instead of reporting zeros."""
        with pytest.raises(PriceDataError):
            BacktestEngine(scenario_config, default_strategy).run(InMemoryPriceProvider({}))

    def test_invalid_strategy_parameters_fail_fast(self, scenario_config):
        with pytest.raises(BacktestConfigError):
            BacktestEngine(scenario_config, StrategyDefinition("ma", {"rsi_period": 0}))

    def test_cancelled_token_stops_run(self, scenario_config, scenario_provider, default_strategy):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(BacktestCancelledError):
            BacktestEngine(scenario_config, default_strategy).run(scenario_provider, token)

    def test_deterministic_results(self, scenario_config, synthetic_provider, default_strategy):
        """Test identical inputs produce identical results."""
        engine = BacktestEngine(scenario_config, default_strategy)

        first = engine.run(synthetic_provider).to_dict()
        second = engine.run(synthetic_provider).to_dict()

        assert first == second

    def test_preloaded_bars_match_provider_run(self, scenario_config, scenario_provider, default_strategy):
        """Test a run on loaded bars equals a run that fetches them itself."""
        engine = BacktestEngine(scenario_config, default_strategy)
        bars = load_price_bars(scenario_provider, scenario_config)

        from_bars = engine.run_on_bars(bars)
        from_provider = engine.run(scenario_provider)

        assert isinstance(bars["AAPL"], tuple)
        assert from_bars.to_dict() == from_provider.to_dict()
        assert len(from_bars.trades) == 1

    def test_result_serialization(self, scenario_config, scenario_provider, default_strategy):
        data = BacktestEngine(scenario_config, default_strategy).run(scenario_provider).to_dict()

        assert data["strategy"]["name"] == "ma_crossover"
        assert data["config"]["symbols"] == ["AAPL"]
        assert data["trades"][0]["reason"] == "TAKE_PROFIT"
        assert len(data["equity_curve"]) == 90
        assert set(data["metrics"]) >= {"sharpe_ratio", "profit_factor", "max_drawdown_percent"}

    def test_run_backtest_convenience(self, scenario_provider, default_strategy):
        result = run_backtest(
            default_strategy,
            scenario_provider,
            symbols=["AAPL"],
            start_date=datetime(2024, 1, 1),
            end_date=datetime(2024, 3, 30),
        )

        assert result.metrics.total_trades == 1
        assert result.config.risk_free_rate == pytest.approx(0.02)
