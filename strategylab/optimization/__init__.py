"""
Strategy parameter optimization.

Grid search over strategy parameters with per-parameter sensitivity.
"""

from strategylab.optimization.parameter_space import ParameterSpace
from strategylab.optimization.sensitivity import (
    Importance,
    ParameterSensitivity,
    calculate_parameter_sensitivity,
    classify_importance,
)
from strategylab.optimization.engine import (
    OptimizationEngine,
    OptimizationObjective,
    OptimizationResult,
    OptimizationRun,
    optimize_strategy,
)

__all__ = [
    "ParameterSpace",
    "Importance",
    "ParameterSensitivity",
    "calculate_parameter_sensitivity",
    "classify_importance",
    "OptimizationEngine",
    "OptimizationObjective",
    "OptimizationResult",
    "OptimizationRun",
    "optimize_strategy",
]
