from strategylab.data.base_provider import PriceDataProvider
from strategylab.data.memory_provider import InMemoryPriceProvider
from strategylab.data.synthetic_provider import SyntheticPriceProvider

__all__ = [
    "PriceDataProvider",
    "InMemoryPriceProvider",
    "SyntheticPriceProvider",
]
