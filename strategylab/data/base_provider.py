"""
Price-bar provider interface.

The engine never fetches market data itself; callers hand it an object
implementing PriceDataProvider.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from strategylab.models.market_data import PriceBar


class PriceDataProvider(ABC):
    """
    Base class for price-bar sources.

    Contract:
    - bars are returned sorted ascending by timestamp
    - at most one bar per symbol per day
    - no synthetic gap-filling
    """

    @abstractmethod
    def get_bars(self, symbol: str, start: datetime, end: datetime) -> list[PriceBar]:
        """
        Return daily bars for one symbol within [start, end].

        Args:
            symbol: Trading symbol
            start: Inclusive range start
            end: Inclusive range end

        Returns:
            Bars sorted ascending by timestamp (may be empty)
        """
        pass
