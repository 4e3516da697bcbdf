"""
Parameter space definition and grid generation for optimization.

Handles discrete value lists and inclusive ranges with step sizes.
"""

from typing import Dict, Any, List, Union
import itertools
import logging
import math

from pydantic import ValidationError

from strategylab.exceptions import BacktestConfigError
from strategylab.schemas.optimization_schema import ParameterGrid, ParameterRange

logger = logging.getLogger(__name__)

# Tolerance, in steps, for max - min landing just short of a whole step
EPSILON = 1e-9


class ParameterSpace:
    """
    Defines and generates parameter combinations for optimization.

    Supports two types of parameter definitions:
    1. Discrete values: {"param": [1, 2, 3, 4]}
    2. Range with step: {"param": {"min": 1.0, "max": 3.0, "step": 0.5}}

    Ranges include both endpoints whenever max - min is a whole number of
    steps. Combinations are ordered with the last parameter varying fastest.
    """

    def __init__(self, parameter_ranges: Dict[str, Any]):
        """
        Initialize parameter space.

        Args:
            parameter_ranges: Dict mapping parameter names to ranges
                Examples:
                    {"short_period": [5, 10, 15]}  # Discrete values
                    {"stop_loss_percent": {"min": 2.0, "max": 6.0, "step": 1.0}}  # Range

        Raises:
            BacktestConfigError: If any definition is malformed
        """
        self.parameter_ranges = self._parse(parameter_ranges)
        self.parameters = list(self.parameter_ranges.keys())

    @staticmethod
    def _parse(parameter_ranges: Dict[str, Any]) -> Dict[str, Union[ParameterRange, List[float]]]:
        try:
            grid = ParameterGrid(parameters=parameter_ranges)
        except ValidationError as e:
            raise BacktestConfigError(f"Invalid parameter ranges: {e}") from e
        return grid.parameters

    @staticmethod
    def _range_size(definition: ParameterRange) -> int:
        return math.floor((definition.max - definition.min) / definition.step + EPSILON) + 1

    @classmethod
    def _range_values(cls, definition: ParameterRange) -> List[float]:
        # Precision follows the step so tiny steps are not rounded away
        digits = 10 + max(0, -math.floor(math.log10(definition.step)))
        return [
            round(definition.min + i * definition.step, digits)
            for i in range(cls._range_size(definition))
        ]

    def values_for(self, name: str) -> List[Any]:
        """All values swept for one parameter."""
        definition = self.parameter_ranges[name]
        if isinstance(definition, list):
            return list(definition)
        return self._range_values(definition)

    def generate_grid(self) -> List[Dict[str, Any]]:
        """
        Generate all possible combinations (grid search).

        Returns:
            List of parameter dictionaries containing all combinations
        """
        param_lists = [self.values_for(name) for name in self.parameters]

        configs = [
            dict(zip(self.parameters, combo))
            for combo in itertools.product(*param_lists)
        ]

        logger.info(f"Generated {len(configs)} configurations for grid search")
        return configs

    def count_combinations(self) -> int:
        """
        Count total number of grid combinations without generating them.

        Returns:
            Total number of possible combinations
        """
        count = 1

        for definition in self.parameter_ranges.values():
            if isinstance(definition, list):
                count *= len(definition)
            else:
                count *= self._range_size(definition)

        return count
