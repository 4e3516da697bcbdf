"""
Parameter sensitivity analysis for optimization runs.

Correlates each swept parameter with the objective across all runs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Sequence

from strategylab.core.stats import pearson_correlation

HIGH_IMPORTANCE_THRESHOLD = 0.7
MEDIUM_IMPORTANCE_THRESHOLD = 0.4


class Importance(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class ParameterSensitivity:
    """Pearson r between a parameter's values and the objective."""
    parameter: str
    correlation: float
    importance: Importance

    def to_dict(self) -> dict:
        return {
            "correlation": self.correlation,
            "importance": self.importance.value,
        }


def classify_importance(correlation: float) -> Importance:
    """|r| > 0.7 is HIGH, |r| > 0.4 is MEDIUM, anything else LOW."""
    strength = abs(correlation)
    if strength > HIGH_IMPORTANCE_THRESHOLD:
        return Importance.HIGH
    if strength > MEDIUM_IMPORTANCE_THRESHOLD:
        return Importance.MEDIUM
    return Importance.LOW


def calculate_parameter_sensitivity(
    parameter_names: Sequence[str],
    parameter_sets: Sequence[Mapping[str, Any]],
    scores: Sequence[float],
) -> dict[str, ParameterSensitivity]:
    """
    Compute sensitivity for every swept parameter.

    Args:
        parameter_names: Parameters that were varied
        parameter_sets: Parameters of each run, aligned with scores
        scores: Objective value of each run

    Returns:
        Parameter name -> sensitivity. A parameter held constant, or a
        grid with fewer than two runs, yields r = 0 and LOW importance.
    """
    sensitivity = {}

    for name in parameter_names:
        values = [float(params[name]) for params in parameter_sets]
        r = pearson_correlation(values, list(scores))
        sensitivity[name] = ParameterSensitivity(
            parameter=name,
            correlation=r,
            importance=classify_importance(r),
        )

    return sensitivity
