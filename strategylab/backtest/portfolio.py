"""
Portfolio simulator for backtesting.

Owns the cash ledger and the open positions of a single run, opens and
closes simulated positions, and records the daily equity curve.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional
import math
import logging

from strategylab.models.market_data import PriceBar

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class TradeSide(str, Enum):
    """Trade direction; the simulator only opens longs."""
    LONG = "LONG"


class ExitReason(str, Enum):
    """Why a simulated position was closed."""
    STOP_LOSS = "STOP_LOSS"
    TAKE_PROFIT = "TAKE_PROFIT"
    SIGNAL_EXIT = "SIGNAL_EXIT"
    END_OF_PERIOD = "END_OF_PERIOD"


@dataclass(frozen=True)
class ClosedTrade:
    """
    Represents a completed (closed) trade.

    Prices already include slippage; commission covers both entry and exit.
    """
    symbol: str
    side: TradeSide
    entry_price: float
    exit_price: float
    entry_date: datetime
    exit_date: datetime
    quantity: int
    profit: float
    profit_percent: float
    commission: float
    holding_period: int
    reason: ExitReason

    def to_dict(self) -> dict:
        """Convert trade to dictionary for JSON serialization."""
        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "entry_price": self.entry_price,
            "exit_price": self.exit_price,
            "entry_date": self.entry_date.isoformat(),
            "exit_date": self.exit_date.isoformat(),
            "quantity": self.quantity,
            "profit": self.profit,
            "profit_percent": self.profit_percent,
            "commission": self.commission,
            "holding_period": self.holding_period,
            "reason": self.reason.value,
        }


@dataclass
class SimulatedPosition:
    """
    Represents an open (active) position.

    `value` is the cash committed at entry: quantity * entry price plus the
    entry commission.
    """
    symbol: str
    side: TradeSide
    entry_price: float
    entry_date: datetime
    quantity: int
    value: float
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None

    def market_value(self, current_price: float) -> float:
        return self.quantity * current_price


@dataclass(frozen=True)
class EquityPoint:
    """
    A single point on the equity curve.

    equity == cash + position_value at the moment the point was recorded.
    """
    date: datetime
    equity: float
    drawdown: float
    drawdown_percent: float
    cash: float
    position_value: float

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "date": self.date.isoformat(),
            "equity": self.equity,
            "drawdown": self.drawdown,
            "drawdown_percent": self.drawdown_percent,
            "cash": self.cash,
            "position_value": self.position_value,
        }


@dataclass
class Portfolio:
    """
    Simulates a trading portfolio during backtesting.

    Handles:
    - Entry sizing from available cash
    - Position opening/closing with slippage and per-trade commission
    - Stop-loss and take-profit checking against daily high/low
    - Trade logging
    - Equity curve recording

    Attributes:
        initial_capital: Starting capital
        commission: Flat commission charged on every entry and every exit
        slippage: Unfavorable price adjustment as a fraction (0.001 = 0.1%)
        position_size_fraction: Share of available cash committed per entry
        max_position_fraction: Cap per entry as a share of initial capital
        min_position_value: Smallest committed value accepted for an entry
        cash: Current cash balance (excluding open positions)
        positions: Currently open positions
        trades: Completed trades, in close order
        equity_curve: One point per simulated day
    """
    initial_capital: float
    commission: float = 0.0
    slippage: float = 0.0
    position_size_fraction: float = 0.10
    max_position_fraction: float = 0.20
    min_position_value: float = 1000.0
    cash: float = field(init=False)
    positions: list[SimulatedPosition] = field(default_factory=list)
    trades: list[ClosedTrade] = field(default_factory=list)
    equity_curve: list[EquityPoint] = field(default_factory=list)

    # Track peak equity for drawdown calculation
    _peak_equity: Optional[float] = field(init=False, repr=False, default=None)

    def __post_init__(self):
        """Initialize cash from initial_capital."""
        self.cash = self.initial_capital

    def entry_budget(self) -> float:
        """Cash available for the next entry before rounding to whole shares."""
        return min(
            self.cash * self.position_size_fraction,
            self.initial_capital * self.max_position_fraction,
        )

    def open_position(
        self,
        symbol: str,
        market_price: float,
        entry_date: datetime,
        stop_loss_percent: Optional[float] = None,
        take_profit_percent: Optional[float] = None,
    ) -> Optional[SimulatedPosition]:
        """
        Open a new long position sized from available cash.

        Args:
            symbol: Trading symbol
            market_price: Reference price before slippage (the day's close)
            entry_date: Timestamp of entry
            stop_loss_percent: Stop distance below entry, in percent
            take_profit_percent: Target distance above entry, in percent

        Returns:
            The opened position, or None if the entry is not viable
        """
        if market_price <= 0:
            return None

        entry_price = market_price * (1 + self.slippage)
        budget = self.entry_budget()
        quantity = math.floor(budget / entry_price)

        if quantity <= 0:
            logger.debug(f"Entry budget {budget:.2f} too small for {symbol} @ {entry_price:.4f}")
            return None

        committed = quantity * entry_price + self.commission

        if committed < self.min_position_value:
            logger.debug(
                f"Skipping {symbol} entry: committed value {committed:.2f} "
                f"below minimum {self.min_position_value:.2f}"
            )
            return None

        if committed > self.cash:
            logger.warning(
                f"Insufficient cash to open position. "
                f"Required: {committed:.2f}, Available: {self.cash:.2f}"
            )
            return None

        stop_loss = None
        if stop_loss_percent is not None:
            stop_loss = entry_price * (1 - stop_loss_percent / 100.0)
        take_profit = None
        if take_profit_percent is not None:
            take_profit = entry_price * (1 + take_profit_percent / 100.0)

        self.cash -= committed

        position = SimulatedPosition(
            symbol=symbol,
            side=TradeSide.LONG,
            entry_price=entry_price,
            entry_date=entry_date,
            quantity=quantity,
            value=committed,
            stop_loss=stop_loss,
            take_profit=take_profit,
        )
        self.positions.append(position)

        logger.debug(
            f"Opened LONG position: {symbol} @ {entry_price:.4f}, "
            f"qty={quantity}, SL={stop_loss}, TP={take_profit}"
        )

        return position

    def close_position(
        self,
        position: SimulatedPosition,
        exit_price: float,
        exit_date: datetime,
        reason: ExitReason,
    ) -> ClosedTrade:
        """
        Close an existing position.

        Args:
            position: The position to close
            exit_price: Trigger price before slippage
            exit_date: Timestamp of exit
            reason: Why the position is closed

        Returns:
            The completed trade record
        """
        if position not in self.positions:
            raise ValueError("Position not found in portfolio")

        adjusted_exit = exit_price * (1 - self.slippage)
        total_commission = self.commission * 2
        gross = self._calculate_pnl(position, adjusted_exit)
        profit = gross - total_commission

        entry_notional = position.entry_price * position.quantity
        profit_percent = profit / entry_notional * 100.0 if entry_notional > 0 else 0.0

        holding_seconds = (exit_date - position.entry_date).total_seconds()
        holding_period = max(0, math.ceil(holding_seconds / SECONDS_PER_DAY))

        trade = ClosedTrade(
            symbol=position.symbol,
            side=position.side,
            entry_price=position.entry_price,
            exit_price=adjusted_exit,
            entry_date=position.entry_date,
            exit_date=exit_date,
            quantity=position.quantity,
            profit=profit,
            profit_percent=profit_percent,
            commission=total_commission,
            holding_period=holding_period,
            reason=reason,
        )

        # Sale proceeds net of the exit commission
        self.cash += adjusted_exit * position.quantity - self.commission

        self.positions.remove(position)
        self.trades.append(trade)

        logger.debug(
            f"Closed {trade.side.value} position: {trade.symbol} @ {adjusted_exit:.4f}, "
            f"P&L={profit:.2f} ({profit_percent:.2f}%), reason={reason.value}"
        )

        return trade

    @staticmethod
    def _calculate_pnl(position: SimulatedPosition, exit_price: float) -> float:
        """Raw P&L of a long position before commission."""
        return (exit_price - position.entry_price) * position.quantity

    def check_exits(self, bar: PriceBar) -> list[ClosedTrade]:
        """
        Check open positions in the bar's symbol for stop-loss or take-profit.

        The stop is checked first: a bar whose range spans both levels is
        treated as a stop-out.

        Args:
            bar: Today's bar for one symbol

        Returns:
            Trades closed by this bar
        """
        closed_trades = []

        for position in [p for p in self.positions if p.symbol == bar.symbol]:
            if position.stop_loss is not None and bar.low <= position.stop_loss:
                logger.debug(f"Stop-loss triggered for {position.symbol}")
                closed_trades.append(
                    self.close_position(position, position.stop_loss, bar.timestamp, ExitReason.STOP_LOSS)
                )
            elif position.take_profit is not None and bar.high >= position.take_profit:
                logger.debug(f"Take-profit triggered for {position.symbol}")
                closed_trades.append(
                    self.close_position(position, position.take_profit, bar.timestamp, ExitReason.TAKE_PROFIT)
                )

        return closed_trades

    def position_value(self, current_prices: dict[str, float]) -> float:
        """Mark-to-market value of open positions; entry price when unpriced."""
        return sum(
            p.market_value(current_prices.get(p.symbol, p.entry_price))
            for p in self.positions
        )

    def update_equity(self, current_prices: dict[str, float], timestamp: datetime) -> EquityPoint:
        """
        Record today's equity point.

        Args:
            current_prices: Latest known close per symbol
            timestamp: Date of the simulated day

        Returns:
            The appended equity point
        """
        position_value = self.position_value(current_prices)
        equity = self.cash + position_value

        if self._peak_equity is None or equity > self._peak_equity:
            self._peak_equity = equity

        drawdown = max(0.0, self._peak_equity - equity)
        drawdown_percent = drawdown / self._peak_equity * 100.0 if self._peak_equity > 0 else 0.0

        point = EquityPoint(
            date=timestamp,
            equity=equity,
            drawdown=drawdown,
            drawdown_percent=drawdown_percent,
            cash=self.cash,
            position_value=position_value,
        )
        self.equity_curve.append(point)

        return point

    def has_open_position(self, symbol: str) -> bool:
        """Check if there's an open position for a symbol."""
        return any(p.symbol == symbol for p in self.positions)

    def get_position(self, symbol: str) -> Optional[SimulatedPosition]:
        """Get open position for a symbol, if any."""
        for position in self.positions:
            if position.symbol == symbol:
                return position
        return None

