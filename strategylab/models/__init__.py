from strategylab.models.market_data import PriceBar
from strategylab.models.strategy import StrategyDefinition, DEFAULT_STRATEGY_PARAMETERS
from strategylab.models.position import Holding, RealizedTrade, PositionStatus, PositionSide

__all__ = [
    "PriceBar",
    "StrategyDefinition",
    "DEFAULT_STRATEGY_PARAMETERS",
    "Holding",
    "RealizedTrade",
    "PositionStatus",
    "PositionSide",
]
