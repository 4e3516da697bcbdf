"""
Risk Engine Package.

Provides stateless risk functions with:
- Risk-based position sizing
- Stop-loss recommendations
- Portfolio risk metrics
- Pre-trade order validation
"""

from strategylab.risk.constants import (
    MAX_PORTFOLIO_RISK_PERCENT,
    MAX_POSITION_SIZE_PERCENT,
    CORRELATION_THRESHOLD,
    DEFAULT_VOLATILITY,
    RiskParameters,
    RiskTolerance,
    Urgency,
    validate_immutable_constants,
)
from strategylab.risk.sizing import SizingResult, size_position
from strategylab.risk.stop_loss import (
    StopLossRecommendation,
    stop_loss_recommendation,
    stop_loss_recommendations,
)
from strategylab.risk.portfolio_risk import RiskMetrics, calculate_portfolio_risk
from strategylab.risk.validator import (
    OrderRequest,
    OrderSide,
    OrderType,
    OrderRiskValidation,
    RiskRecommendation,
    RecommendationType,
    validate_order_risk,
    generate_risk_recommendations,
)

__all__ = [
    # Constants
    "MAX_PORTFOLIO_RISK_PERCENT",
    "MAX_POSITION_SIZE_PERCENT",
    "CORRELATION_THRESHOLD",
    "DEFAULT_VOLATILITY",
    "RiskParameters",
    "RiskTolerance",
    "Urgency",
    "validate_immutable_constants",
    # Sizing and stops
    "SizingResult",
    "size_position",
    "StopLossRecommendation",
    "stop_loss_recommendation",
    "stop_loss_recommendations",
    # Portfolio
    "RiskMetrics",
    "calculate_portfolio_risk",
    # Validation
    "OrderRequest",
    "OrderSide",
    "OrderType",
    "OrderRiskValidation",
    "RiskRecommendation",
    "RecommendationType",
    "validate_order_risk",
    "generate_risk_recommendations",
]
