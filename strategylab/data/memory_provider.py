from datetime import datetime
from typing import Iterable, Mapping

from strategylab.data.base_provider import PriceDataProvider
from strategylab.models.market_data import PriceBar


class InMemoryPriceProvider(PriceDataProvider):
    """Serves pre-loaded bars, e.g. ones already fetched by a data service."""

    def __init__(self, bars_by_symbol: Mapping[str, Iterable[PriceBar]]):
        self._bars = {symbol: tuple(bars) for symbol, bars in bars_by_symbol.items()}

    @classmethod
    def from_bars(cls, bars: Iterable[PriceBar]) -> "InMemoryPriceProvider":
        """Group a flat bar list by symbol, preserving order."""
        grouped: dict[str, list[PriceBar]] = {}
        for bar in bars:
            grouped.setdefault(bar.symbol, []).append(bar)
        return cls(grouped)

    @property
    def symbols(self) -> list[str]:
        return list(self._bars)

    def get_bars(self, symbol: str, start: datetime, end: datetime) -> list[PriceBar]:
        return [bar for bar in self._bars.get(symbol, ()) if start <= bar.timestamp <= end]
