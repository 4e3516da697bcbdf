"""
Strategy definition passed into the backtest engine and the optimizer.

A definition is an immutable name plus a parameter mapping. The optimizer
builds variants with with_parameters(); the base definition is never
modified.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


DEFAULT_STRATEGY_PARAMETERS: Mapping[str, Any] = MappingProxyType({
    "short_period": 10,
    "long_period": 20,
    "rsi_period": 14,
    "rsi_overbought": 70.0,
    "rsi_oversold": 30.0,
    "stop_loss_percent": 5.0,
    "take_profit_percent": 15.0,
    "exit_on_sell_signal": True,
})


@dataclass(frozen=True)
class StrategyDefinition:
    """Named strategy with its tunable parameters."""
    name: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze a private copy so callers cannot mutate it behind our back
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))

    def get(self, name: str, default: Any = None) -> Any:
        """Look up a parameter, falling back to the engine default."""
        if name in self.parameters:
            return self.parameters[name]
        if name in DEFAULT_STRATEGY_PARAMETERS:
            return DEFAULT_STRATEGY_PARAMETERS[name]
        return default

    def with_parameters(self, overrides: Mapping[str, Any]) -> "StrategyDefinition":
        """Return a variant with some parameters replaced."""
        merged = dict(self.parameters)
        merged.update(overrides)
        return StrategyDefinition(name=self.name, parameters=merged)

    def to_dict(self) -> dict:
        return {"name": self.name, "parameters": dict(self.parameters)}
