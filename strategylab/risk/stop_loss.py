"""
Stop-loss recommendations for open long positions.

The recommended stop depends on which unrealized P&L regime the position
is in; the result is always at least 1% below the current price.
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from strategylab.models.position import Holding, PositionStatus
from strategylab.risk.constants import DEFAULT_VOLATILITY, Urgency

# Maximum stop level relative to the current price
MAX_STOP_RATIO = 0.99


@dataclass(frozen=True)
class StopLossRecommendation:
    symbol: str
    current_price: float
    suggested_stop_loss: float
    stop_loss_percent: float
    risk_amount: float
    reason: str
    urgency: Urgency

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "current_price": self.current_price,
            "suggested_stop_loss": self.suggested_stop_loss,
            "stop_loss_percent": self.stop_loss_percent,
            "risk_amount": self.risk_amount,
            "reason": self.reason,
            "urgency": self.urgency.value,
        }


def stop_loss_recommendation(
    position: Holding,
    current_price: Optional[float] = None,
    volatility: float = DEFAULT_VOLATILITY,
) -> StopLossRecommendation:
    """
    Recommend a stop-loss for one open long position.

    Regimes by unrealized P&L percent:
    - above 20: trailing stop max(5%, volatility/2) below current, LOW
    - above 0: breakeven stop 1% above cost, MEDIUM
    - above -5: tight stop min(8%, volatility) below cost, MEDIUM
    - above -15: 3% below current, consider exit, HIGH
    - otherwise: 1% below current, urgent exit, CRITICAL

    Args:
        position: The holding
        current_price: Latest price; falls back to the holding's own
            price, then to its average cost
        volatility: Annualized volatility as a decimal

    Returns:
        StopLossRecommendation
    """
    if current_price is None or current_price <= 0:
        current_price = position.current_price or position.avg_cost
    if volatility is None or volatility <= 0:
        volatility = DEFAULT_VOLATILITY

    cost = position.avg_cost
    pnl_percent = (current_price - cost) / cost * 100.0 if cost > 0 else 0.0

    if pnl_percent > 20:
        stop = current_price * (1 - max(0.05, volatility * 0.5))
        reason = "Trailing stop to protect profits"
        urgency = Urgency.LOW
    elif pnl_percent > 0:
        stop = cost * 1.01
        reason = "Breakeven stop to protect against losses"
        urgency = Urgency.MEDIUM
    elif pnl_percent > -5:
        stop = cost * (1 - min(0.08, volatility))
        reason = "Tight stop-loss to limit further losses"
        urgency = Urgency.MEDIUM
    elif pnl_percent > -15:
        stop = current_price * (1 - 0.03)
        reason = "Consider immediate exit - position showing significant loss"
        urgency = Urgency.HIGH
    else:
        stop = current_price * (1 - 0.01)
        reason = "Urgent exit recommended - major loss protection"
        urgency = Urgency.CRITICAL

    # Long positions: stop always below the current price
    stop = min(stop, current_price * MAX_STOP_RATIO)

    return StopLossRecommendation(
        symbol=position.symbol,
        current_price=current_price,
        suggested_stop_loss=stop,
        stop_loss_percent=(current_price - stop) / current_price * 100.0,
        risk_amount=position.quantity * (current_price - stop),
        reason=reason,
        urgency=urgency,
    )


def stop_loss_recommendations(
    positions: Sequence[Holding],
    current_prices: Optional[Mapping[str, float]] = None,
    volatilities: Optional[Mapping[str, float]] = None,
) -> list[StopLossRecommendation]:
    """
    Recommendations for every open position, most urgent first.

    Closed or empty positions are skipped.
    """
    current_prices = current_prices or {}
    volatilities = volatilities or {}

    recommendations = [
        stop_loss_recommendation(
            position,
            current_prices.get(position.symbol),
            volatilities.get(position.symbol, DEFAULT_VOLATILITY),
        )
        for position in positions
        if position.status == PositionStatus.OPEN and position.quantity > 0
    ]

    return sorted(recommendations, key=lambda r: r.urgency.rank, reverse=True)
