from abc import ABC, abstractmethod
from typing import Any, Dict, Sequence
import logging

from strategylab.exceptions import BacktestConfigError
from strategylab.models.market_data import PriceBar
from strategylab.models.strategy import StrategyDefinition
from strategylab.strategies.signals import Signal

logger = logging.getLogger(__name__)


class BaseStrategy(ABC):
    """
    Abstract base class for signal generators.

    All strategies must implement:
    - generate_signal(): Evaluate one symbol's history up to the current bar
    - get_name(): Return strategy name
    - get_default_config(): Return default configuration

    A strategy instance is created per backtest run and holds no state
    between evaluations; it only reads its configuration.
    """

    def __init__(self, definition: StrategyDefinition):
        self.definition = definition
        self.config: Dict[str, Any] = {**self.get_default_config(), **definition.parameters}
        self.name = self.get_name()
        self.validate_config()
        logger.debug(f"Initialized strategy: {self.name} ({definition.name})")

    @abstractmethod
    def generate_signal(self, history: Sequence[PriceBar]) -> Signal:
        """
        Evaluate the trailing window for one symbol.

        Args:
            history: All bars for the symbol up to and including the
                current bar, oldest first

        Returns:
            Signal for the current bar
        """
        pass

    @abstractmethod
    def get_name(self) -> str:
        """Return strategy name."""
        pass

    @abstractmethod
    def get_default_config(self) -> Dict[str, Any]:
        """Return default configuration parameters."""
        pass

    def validate_config(self) -> None:
        """
        Validate the bracket parameters shared by all strategies.

        Override in subclass for custom validation.
        """
        stop_loss = self.config.get("stop_loss_percent", 0)
        take_profit = self.config.get("take_profit_percent", 0)

        if not 0 < stop_loss < 100:
            raise BacktestConfigError(f"stop_loss_percent must be in (0, 100), got {stop_loss}")
        if take_profit <= 0:
            raise BacktestConfigError(f"take_profit_percent must be positive, got {take_profit}")

    @property
    def exit_on_sell_signal(self) -> bool:
        return bool(self.config.get("exit_on_sell_signal", True))
