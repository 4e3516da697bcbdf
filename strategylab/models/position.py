"""
Live portfolio records consumed by the risk module.

These mirror what the storage collaborator hands over for a user's open
holdings and realized trades; the risk functions never persist them.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional
import enum


class PositionStatus(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class PositionSide(str, enum.Enum):
    LONG = "LONG"
    SHORT = "SHORT"


@dataclass(frozen=True)
class Holding:
    """An existing live position."""
    symbol: str
    quantity: float
    avg_cost: float
    current_price: Optional[float] = None
    side: PositionSide = PositionSide.LONG
    status: PositionStatus = PositionStatus.OPEN
    sector: Optional[str] = None

    @property
    def market_value(self) -> float:
        price = self.current_price if self.current_price is not None else self.avg_cost
        return self.quantity * price

    @property
    def unrealized_pnl_percent(self) -> float:
        if self.avg_cost <= 0 or self.current_price is None:
            return 0.0
        return (self.current_price - self.avg_cost) / self.avg_cost * 100.0

    def __repr__(self) -> str:
        return f"<Holding {self.symbol} {self.side.value} qty={self.quantity} cost={self.avg_cost}>"


@dataclass(frozen=True)
class RealizedTrade:
    """A closed live trade with its realized profit."""
    symbol: str
    executed_at: datetime
    profit: float
