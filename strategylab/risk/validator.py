"""Order risk validation and portfolio risk recommendations."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence, Union
import logging

from strategylab.models.position import Holding, PositionStatus, RealizedTrade
from strategylab.risk.constants import (
    MAX_ORDER_VALUE_BY_TOLERANCE,
    POSITION_LIMIT_WARNING_RATIO,
    RiskParameters,
    RiskTolerance,
    Urgency,
)
from strategylab.risk.portfolio_risk import calculate_portfolio_risk

logger = logging.getLogger(__name__)

# Orders above this share of the portfolio should carry a stop-loss
LARGE_ORDER_PORTFOLIO_FRACTION = 0.05

LARGE_POSITION_FRACTION = 0.15
OVERSIZED_POSITION_FRACTION = 0.25
LOSS_REVIEW_PERCENT = -10.0
LOSS_CRITICAL_PERCENT = -20.0
MIN_DIVERSIFIED_POSITIONS = 5
DIVERSIFICATION_PORTFOLIO_VALUE = 50000.0
HIGH_VOLATILITY_PERCENT = 30.0


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"
    STOP = "STOP"
    STOP_LIMIT = "STOP_LIMIT"


class RecommendationType(str, Enum):
    POSITION_SIZE = "POSITION_SIZE"
    STOP_LOSS = "STOP_LOSS"
    DIVERSIFICATION = "DIVERSIFICATION"
    CORRELATION = "CORRELATION"
    VOLATILITY = "VOLATILITY"


@dataclass(frozen=True)
class OrderRequest:
    """A proposed order awaiting validation."""
    symbol: str
    quantity: float
    price: float
    side: OrderSide = OrderSide.BUY
    order_type: OrderType = OrderType.MARKET

    @property
    def value(self) -> float:
        return self.quantity * self.price


@dataclass(frozen=True)
class OrderRiskValidation:
    is_valid: bool
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "is_valid": self.is_valid,
            "warnings": list(self.warnings),
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class RiskRecommendation:
    type: RecommendationType
    severity: Urgency
    title: str
    description: str
    action: str
    impact: str

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "severity": self.severity.value,
            "title": self.title,
            "description": self.description,
            "action": self.action,
            "impact": self.impact,
        }


def validate_order_risk(
    order: OrderRequest,
    holdings: Sequence[Holding],
    portfolio_value: float,
    risk_tolerance: Union[RiskTolerance, str] = RiskTolerance.MEDIUM,
    params: RiskParameters = RiskParameters(),
) -> OrderRiskValidation:
    """
    Validate a proposed order against position and tolerance limits.

    Errors make the order invalid; warnings are advisory.

    Args:
        order: Proposed order
        holdings: Current holdings
        portfolio_value: Current portfolio value
        risk_tolerance: Account risk tolerance
        params: Risk limits

    Returns:
        OrderRiskValidation
    """
    warnings: list[str] = []
    errors: list[str] = []

    if not order.symbol or order.quantity <= 0 or order.price <= 0:
        errors.append("Missing required order details")
        return OrderRiskValidation(is_valid=False, warnings=warnings, errors=errors)

    if portfolio_value <= 0:
        errors.append("Portfolio value must be positive")
        return OrderRiskValidation(is_valid=False, warnings=warnings, errors=errors)

    order_value = order.value
    position_percent = order_value / portfolio_value * 100.0

    if position_percent > params.max_position_size:
        errors.append(
            f"Position size ({position_percent:.1f}%) exceeds limit ({params.max_position_size:g}%)"
        )

    existing: Optional[Holding] = next(
        (h for h in holdings if h.symbol == order.symbol and h.status == PositionStatus.OPEN),
        None,
    )
    if existing is not None and order.side == OrderSide.BUY:
        combined_percent = (existing.market_value + order_value) / portfolio_value * 100.0
        if combined_percent > params.max_position_size:
            errors.append(f"Combined position size would exceed {params.max_position_size:g}% limit")
        elif combined_percent > params.max_position_size * POSITION_LIMIT_WARNING_RATIO:
            warnings.append(f"Combined position approaching size limit ({combined_percent:.1f}%)")

    try:
        tolerance = RiskTolerance(str(getattr(risk_tolerance, "value", risk_tolerance)).upper())
    except ValueError:
        tolerance = RiskTolerance.MEDIUM
    if order_value > MAX_ORDER_VALUE_BY_TOLERANCE[tolerance]:
        warnings.append(f"Order value exceeds risk tolerance for {tolerance.value} risk profile")

    if (
        order_value > portfolio_value * LARGE_ORDER_PORTFOLIO_FRACTION
        and order.side == OrderSide.BUY
        and order.order_type == OrderType.MARKET
    ):
        warnings.append("Consider setting stop-loss for large market orders")

    if errors:
        logger.info(f"Order for {order.symbol} rejected: {'; '.join(errors)}")

    return OrderRiskValidation(is_valid=not errors, warnings=warnings, errors=errors)


def generate_risk_recommendations(
    holdings: Sequence[Holding],
    trades: Sequence[RealizedTrade],
    portfolio_value: float,
) -> list[RiskRecommendation]:
    """
    Generate risk management recommendations, most severe first.

    Args:
        holdings: Current holdings
        trades: Realized trades
        portfolio_value: Current portfolio value

    Returns:
        Recommendations sorted by severity
    """
    recommendations: list[RiskRecommendation] = []
    metrics = calculate_portfolio_risk(holdings, trades, portfolio_value)
    open_holdings = [h for h in holdings if h.status == PositionStatus.OPEN]

    if portfolio_value > 0:
        large = [h for h in open_holdings if h.market_value / portfolio_value > LARGE_POSITION_FRACTION]
        if large:
            oversized = any(h.market_value / portfolio_value > OVERSIZED_POSITION_FRACTION for h in large)
            recommendations.append(RiskRecommendation(
                type=RecommendationType.POSITION_SIZE,
                severity=Urgency.HIGH if oversized else Urgency.MEDIUM,
                title="Large Position Concentration",
                description=f"{len(large)} position(s) exceed 15% of portfolio value",
                action="Consider reducing position sizes or rebalancing portfolio",
                impact="Reduces concentration risk and improves diversification",
            ))

    at_risk = [h for h in open_holdings if h.unrealized_pnl_percent < LOSS_REVIEW_PERCENT]
    if at_risk:
        critical = any(h.unrealized_pnl_percent < LOSS_CRITICAL_PERCENT for h in at_risk)
        recommendations.append(RiskRecommendation(
            type=RecommendationType.STOP_LOSS,
            severity=Urgency.CRITICAL if critical else Urgency.HIGH,
            title="Positions Exceeding Loss Limits",
            description=f"{len(at_risk)} position(s) showing significant losses",
            action="Review and update stop-loss orders immediately",
            impact="Prevents further losses and preserves capital",
        ))

    if len(holdings) < MIN_DIVERSIFIED_POSITIONS and portfolio_value > DIVERSIFICATION_PORTFOLIO_VALUE:
        recommendations.append(RiskRecommendation(
            type=RecommendationType.DIVERSIFICATION,
            severity=Urgency.MEDIUM,
            title="Limited Diversification",
            description=f"Portfolio contains fewer than {MIN_DIVERSIFIED_POSITIONS} positions",
            action="Consider adding positions in different sectors or asset classes",
            impact="Reduces overall portfolio risk through diversification",
        ))

    if metrics.volatility > HIGH_VOLATILITY_PERCENT:
        recommendations.append(RiskRecommendation(
            type=RecommendationType.VOLATILITY,
            severity=Urgency.HIGH,
            title="High Portfolio Volatility",
            description=f"Portfolio volatility is {metrics.volatility:.1f}% (>30%)",
            action="Consider adding stable assets or reducing position sizes",
            impact="Reduces daily price swings and drawdown risk",
        ))

    return sorted(recommendations, key=lambda r: r.severity.rank, reverse=True)
