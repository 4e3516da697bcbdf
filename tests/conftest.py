"""
Global pytest configuration and fixtures for strategylab testing.

Shared fixtures:
- bar factories for hand-built price series
- the uptrend-with-dip scenario (one BUY, closed by take-profit)
- a seeded synthetic provider
- trade and equity point factories for metrics tests
"""
import pytest
from datetime import datetime, timedelta

from strategylab.backtest.engine import BacktestConfig
from strategylab.backtest.portfolio import ClosedTrade, EquityPoint, ExitReason, TradeSide
from strategylab.config import get_settings
from strategylab.data.memory_provider import InMemoryPriceProvider
from strategylab.data.synthetic_provider import SyntheticPriceProvider
from strategylab.models.market_data import PriceBar
from strategylab.models.strategy import StrategyDefinition


SCENARIO_START = datetime(2024, 1, 1)
SCENARIO_DAYS = 90


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test (fast, no dependencies)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow (> 1 second)"
    )


# ============================================================================
# Settings
# ============================================================================

@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Make every test see settings built from its own environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================================
# Price Bars
# ============================================================================

def make_bar(symbol, timestamp, close, high=None, low=None, open_=None, volume=1000000):
    """Build a bar around a close; high/low default to +/-0.5%."""
    return PriceBar(
        symbol=symbol,
        timestamp=timestamp,
        open=open_ if open_ is not None else close,
        high=high if high is not None else close * 1.005,
        low=low if low is not None else close * 0.995,
        close=close,
        volume=volume,
    )


def make_bars(symbol, closes, start=SCENARIO_START):
    """One daily bar per close, starting at `start`."""
    return [make_bar(symbol, start + timedelta(days=i), c) for i, c in enumerate(closes)]


def scenario_closes(days=SCENARIO_DAYS):
    """
    Steady uptrend, a 10% one-day dip at day 40, then a steady recovery.

    close = 100 + t before the dip; 125.1 + (t - 40) from day 40 on.
    The short SMA falls under the long SMA at day 46 and crosses back
    above it at day 53 (close 138.1, RSI about 48).
    """
    closes = []
    for t in range(days):
        if t < 40:
            closes.append(100.0 + t)
        else:
            closes.append(125.1 + (t - 40))
    return closes


@pytest.fixture
def bar_factory():
    return make_bar


@pytest.fixture
def bars_factory():
    return make_bars


@pytest.fixture
def scenario_bars():
    return make_bars("AAPL", scenario_closes())


@pytest.fixture
def scenario_provider(scenario_bars):
    return InMemoryPriceProvider({"AAPL": scenario_bars})


@pytest.fixture
def scenario_config():
    """Zero-cost config spanning the 90 scenario bars."""
    return BacktestConfig(
        start_date=SCENARIO_START,
        end_date=SCENARIO_START + timedelta(days=SCENARIO_DAYS - 1),
        symbols=["AAPL"],
        initial_capital=100000.0,
        commission=0.0,
        slippage=0.0,
        max_positions=5,
    )


@pytest.fixture
def default_strategy():
    return StrategyDefinition(name="ma_crossover")


@pytest.fixture
def synthetic_provider():
    return SyntheticPriceProvider(seed=42)


# ============================================================================
# Trades and Equity
# ============================================================================

def make_trade(profit, exit_date=None, holding_period=1, commission=0.0, symbol="AAPL"):
    """Closed trade with the given profit; prices are nominal."""
    exit_date = exit_date or SCENARIO_START + timedelta(days=holding_period)
    entry_price = 100.0
    quantity = 10
    return ClosedTrade(
        symbol=symbol,
        side=TradeSide.LONG,
        entry_price=entry_price,
        exit_price=entry_price + (profit + commission) / quantity,
        entry_date=exit_date - timedelta(days=holding_period),
        exit_date=exit_date,
        quantity=quantity,
        profit=profit,
        profit_percent=profit / (entry_price * quantity) * 100.0,
        commission=commission,
        holding_period=holding_period,
        reason=ExitReason.TAKE_PROFIT if profit > 0 else ExitReason.STOP_LOSS,
    )


def make_equity_curve(values, start=SCENARIO_START):
    """Equity points with drawdown measured from the curve's running peak."""
    curve = []
    peak = None
    for i, equity in enumerate(values):
        peak = equity if peak is None else max(peak, equity)
        drawdown = peak - equity
        curve.append(EquityPoint(
            date=start + timedelta(days=i),
            equity=equity,
            drawdown=drawdown,
            drawdown_percent=drawdown / peak * 100.0 if peak > 0 else 0.0,
            cash=equity,
            position_value=0.0,
        ))
    return curve


@pytest.fixture
def trade_factory():
    return make_trade


@pytest.fixture
def equity_curve_factory():
    return make_equity_curve
