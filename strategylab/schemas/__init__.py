from strategylab.schemas.optimization_schema import ParameterRange, ParameterGrid

__all__ = [
    "ParameterRange",
    "ParameterGrid",
]
