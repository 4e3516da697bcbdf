"""
HARD RISK LIMITS

Default limits used by the position sizer, the stop-loss recommender and
order validation. Callers may pass a RiskParameters with tighter values;
the module-level constants themselves are never modified at runtime.
"""

from dataclasses import dataclass
from enum import Enum


class RiskTolerance(str, Enum):
    """Investor risk tolerance."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Urgency(str, Enum):
    """Urgency/severity levels, ordered LOW < MEDIUM < HIGH < CRITICAL."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return URGENCY_ORDER[self]


URGENCY_ORDER = {
    Urgency.LOW: 1,
    Urgency.MEDIUM: 2,
    Urgency.HIGH: 3,
    Urgency.CRITICAL: 4,
}

# Position Limits
MAX_PORTFOLIO_RISK_PERCENT = 2.0          # Maximum 2% of portfolio at risk per trade
MAX_POSITION_SIZE_PERCENT = 20.0          # Maximum 20% of portfolio per position
POSITION_LIMIT_WARNING_RATIO = 0.8        # Warn when a position reaches 80% of the limit

# Correlation Limits
CORRELATION_THRESHOLD = 0.7               # Correlation above 0.7 counts as highly correlated
CORRELATION_SIZE_REDUCTION = 0.3          # Cut size by 30% when highly correlated

# Volatility
DEFAULT_VOLATILITY = 0.2                  # Annualized volatility assumed when unknown
HIGH_VOLATILITY_THRESHOLD = 0.4
MIN_VOLATILITY_FACTOR = 0.5
MAX_VOLATILITY_FACTOR = 1.5

# Stop distance above which a warning is raised
WIDE_STOP_DISTANCE_PERCENT = 10.0

TOLERANCE_MULTIPLIERS = {
    RiskTolerance.LOW: 0.5,
    RiskTolerance.MEDIUM: 1.0,
    RiskTolerance.HIGH: 1.5,
}

# Largest single order value accepted without a warning, per tolerance
MAX_ORDER_VALUE_BY_TOLERANCE = {
    RiskTolerance.LOW: 15000.0,
    RiskTolerance.MEDIUM: 50000.0,
    RiskTolerance.HIGH: 100000.0,
}


@dataclass(frozen=True)
class RiskParameters:
    """Risk limits applied by the sizing and validation functions."""
    max_portfolio_risk: float = MAX_PORTFOLIO_RISK_PERCENT
    max_position_size: float = MAX_POSITION_SIZE_PERCENT


def validate_immutable_constants() -> None:
    """
    Validates that hard-coded constants are within acceptable ranges.
    Raises AssertionError if any constant is out of range.
    """
    assert 0 < MAX_PORTFOLIO_RISK_PERCENT <= 5.0, "MAX_PORTFOLIO_RISK_PERCENT out of acceptable range"
    assert 0 < MAX_POSITION_SIZE_PERCENT <= 25.0, "MAX_POSITION_SIZE_PERCENT out of acceptable range"
    assert 0 < CORRELATION_THRESHOLD < 1, "CORRELATION_THRESHOLD out of acceptable range"
    assert 0 < CORRELATION_SIZE_REDUCTION < 1, "CORRELATION_SIZE_REDUCTION out of acceptable range"
    assert 0 < MIN_VOLATILITY_FACTOR <= 1 <= MAX_VOLATILITY_FACTOR, "Volatility factor bounds out of range"
    assert 0 < DEFAULT_VOLATILITY < 1, "DEFAULT_VOLATILITY out of acceptable range"
    assert all(m > 0 for m in TOLERANCE_MULTIPLIERS.values()), "Tolerance multipliers must be positive"
