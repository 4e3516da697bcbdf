"""
Risk-based position sizing.

Pure function; safe to call from any number of threads. Out-of-range
inputs are clamped and annotated in the result, never raised.
"""

from dataclasses import dataclass, field
from typing import Optional, Union
import logging
import math

from strategylab.observability import metrics as prom
from strategylab.risk.constants import (
    CORRELATION_SIZE_REDUCTION,
    CORRELATION_THRESHOLD,
    DEFAULT_VOLATILITY,
    HIGH_VOLATILITY_THRESHOLD,
    MAX_VOLATILITY_FACTOR,
    MIN_VOLATILITY_FACTOR,
    TOLERANCE_MULTIPLIERS,
    WIDE_STOP_DISTANCE_PERCENT,
    RiskParameters,
    RiskTolerance,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SizingResult:
    """
    Recommended position size.

    risk_amount is the budgeted risk (portfolio x risk% x tolerance);
    actual_risk_amount is what the final share count puts at risk, and
    risk_percent is that actual risk as a share of the portfolio.
    """
    recommended_shares: int
    recommended_value: float
    risk_amount: float
    actual_risk_amount: float
    risk_percent: float
    position_size_percent: float
    stop_loss_distance_percent: float
    volatility_factor: float
    warnings: list[str] = field(default_factory=list)
    adjustments: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "recommended_shares": self.recommended_shares,
            "recommended_value": self.recommended_value,
            "risk_amount": self.risk_amount,
            "actual_risk_amount": self.actual_risk_amount,
            "risk_percent": self.risk_percent,
            "position_size_percent": self.position_size_percent,
            "stop_loss_distance_percent": self.stop_loss_distance_percent,
            "volatility_factor": self.volatility_factor,
            "warnings": list(self.warnings),
            "adjustments": list(self.adjustments),
        }


def _coerce_tolerance(value: Union[RiskTolerance, str], warnings: list[str]) -> RiskTolerance:
    try:
        return RiskTolerance(str(getattr(value, "value", value)).upper())
    except ValueError:
        warnings.append(f"Unknown risk tolerance '{value}', using MEDIUM")
        return RiskTolerance.MEDIUM


def _empty_result(
    risk_amount: float,
    stop_distance: float,
    warnings: list[str],
    adjustments: list[str],
) -> SizingResult:
    return SizingResult(
        recommended_shares=0,
        recommended_value=0.0,
        risk_amount=risk_amount,
        actual_risk_amount=0.0,
        risk_percent=0.0,
        position_size_percent=0.0,
        stop_loss_distance_percent=stop_distance,
        volatility_factor=1.0,
        warnings=warnings,
        adjustments=adjustments,
    )


def size_position(
    entry_price: float,
    stop_price: float,
    portfolio_value: float,
    risk_per_trade_percent: float,
    risk_tolerance: Union[RiskTolerance, str] = RiskTolerance.MEDIUM,
    volatility: Optional[float] = None,
    correlation: Optional[float] = None,
    params: RiskParameters = RiskParameters(),
) -> SizingResult:
    """
    Calculate a position size from the risk budget.

    Steps:
    1. risk_amount = portfolio x risk% x tolerance multiplier
    2. base shares = floor(risk_amount / |entry - stop|)
    3. volatility factor clip(1 / volatility, 0.5, 1.5)
    4. cap at max_position_size % of the portfolio
    5. cut by 30% when correlation with holdings exceeds 0.7

    Args:
        entry_price: Planned entry price
        stop_price: Planned stop-loss price
        portfolio_value: Current portfolio value
        risk_per_trade_percent: Risk budget per trade, in percent
        risk_tolerance: LOW, MEDIUM or HIGH
        volatility: Annualized volatility (0.2 when unknown)
        correlation: Correlation with existing holdings
        params: Risk limits

    Returns:
        SizingResult; zero shares with a warning for unusable inputs
    """
    warnings: list[str] = []
    adjustments: list[str] = []

    tolerance = _coerce_tolerance(risk_tolerance, warnings)
    adjusted_risk_percent = max(0.0, risk_per_trade_percent) * TOLERANCE_MULTIPLIERS[tolerance]
    risk_amount = max(0.0, portfolio_value) * adjusted_risk_percent / 100.0

    if entry_price <= 0 or portfolio_value <= 0 or risk_per_trade_percent <= 0:
        warnings.append("Entry price, portfolio value and risk per trade must be positive")
        result = _empty_result(risk_amount, 0.0, warnings, adjustments)
        prom.record_sizing(tolerance.value, True)
        return result

    price_risk = abs(entry_price - stop_price)
    stop_distance = price_risk / entry_price * 100.0

    if price_risk == 0:
        warnings.append("Stop-loss price equals entry price; cannot size position")
        result = _empty_result(risk_amount, stop_distance, warnings, adjustments)
        prom.record_sizing(tolerance.value, True)
        return result

    base_shares = math.floor(risk_amount / price_risk)

    # Volatility adjustment
    vol = volatility if volatility is not None and volatility > 0 else DEFAULT_VOLATILITY
    if volatility is not None and volatility <= 0:
        warnings.append(f"Invalid volatility {volatility}, using default {DEFAULT_VOLATILITY}")
    volatility_factor = max(MIN_VOLATILITY_FACTOR, min(MAX_VOLATILITY_FACTOR, 1.0 / vol))
    shares = math.floor(base_shares * volatility_factor)
    if volatility_factor != 1.0:
        adjustments.append(f"Volatility adjustment x{volatility_factor:.2f} applied")

    # Position size limit
    position_percent = shares * entry_price / portfolio_value * 100.0
    if position_percent > params.max_position_size:
        shares = math.floor(portfolio_value * params.max_position_size / 100.0 / entry_price)
        warnings.append(f"Position size reduced to {params.max_position_size:g}% limit")
        adjustments.append("Consider reducing position size or increasing stop-loss distance")

    # Correlation adjustment
    if correlation is not None and correlation > CORRELATION_THRESHOLD:
        shares = math.floor(shares * (1 - CORRELATION_SIZE_REDUCTION))
        warnings.append("Position size reduced due to high correlation with existing holdings")
        adjustments.append("Consider diversifying into uncorrelated assets")

    shares = max(0, shares)
    final_value = shares * entry_price
    actual_risk = shares * price_risk
    risk_percent = actual_risk / portfolio_value * 100.0

    if stop_distance > WIDE_STOP_DISTANCE_PERCENT:
        warnings.append("Stop-loss distance is high (>10%), consider tighter risk management")

    if risk_percent > params.max_portfolio_risk:
        warnings.append(f"Risk per trade ({risk_percent:.2f}%) exceeds recommended limit")

    if vol > HIGH_VOLATILITY_THRESHOLD:
        warnings.append("High volatility asset - consider smaller position size")
        adjustments.append("Monitor position closely and consider trailing stops")

    logger.debug(
        f"Sized position: {shares} shares @ {entry_price} "
        f"(risk {actual_risk:.2f}, {risk_percent:.2f}% of portfolio)"
    )
    prom.record_sizing(tolerance.value, bool(warnings))

    return SizingResult(
        recommended_shares=shares,
        recommended_value=final_value,
        risk_amount=risk_amount,
        actual_risk_amount=actual_risk,
        risk_percent=risk_percent,
        position_size_percent=final_value / portfolio_value * 100.0,
        stop_loss_distance_percent=stop_distance,
        volatility_factor=volatility_factor,
        warnings=warnings,
        adjustments=adjustments,
    )
