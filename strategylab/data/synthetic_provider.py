"""
Seeded random-walk price generator for tests and demos.

The randomness source is injected so scenarios are reproducible; the
engine itself never depends on this module.
"""

from datetime import datetime, timedelta
from typing import Optional
import random
import logging

from strategylab.data.base_provider import PriceDataProvider
from strategylab.models.market_data import PriceBar

logger = logging.getLogger(__name__)


class SyntheticPriceProvider(PriceDataProvider):
    """
    Generates one bar per calendar day with a drifting random walk.

    Each symbol gets its own walk derived from the base seed and the symbol
    name, so the same symbol always yields the same series regardless of
    which other symbols are requested or in what order.

    Example:
        provider = SyntheticPriceProvider(seed=42)
        bars = provider.get_bars("AAPL", start, end)
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
        trend: float = 0.0002,
        volatility: float = 0.02,
        start_price_range: tuple[float, float] = (100.0, 300.0),
    ):
        """
        Args:
            seed: Base seed used to derive a per-symbol generator
            rng: Explicit generator; takes precedence over seed and is
                consumed sequentially across calls
            trend: Daily drift as a decimal
            volatility: Maximum daily move as a decimal
            start_price_range: Range the first price is drawn from
        """
        if seed is None and rng is None:
            raise ValueError("SyntheticPriceProvider needs a seed or an explicit rng")
        self.seed = seed
        self._rng = rng
        self.trend = trend
        self.volatility = volatility
        self.start_price_range = start_price_range

    def _rng_for(self, symbol: str) -> random.Random:
        if self._rng is not None:
            return self._rng
        return random.Random(f"{self.seed}:{symbol}")

    def get_bars(self, symbol: str, start: datetime, end: datetime) -> list[PriceBar]:
        rng = self._rng_for(symbol)
        days = (end - start).days

        low_start, high_start = self.start_price_range
        price = rng.uniform(low_start, high_start)
        bars = []

        for i in range(days + 1):
            timestamp = start + timedelta(days=i)
            change = (rng.random() - 0.5) * 2 * self.volatility
            price *= 1 + self.trend + change

            day_range = self.volatility * 0.5
            high = price * (1 + rng.random() * day_range)
            low = price * (1 - rng.random() * day_range)
            open_ = low + rng.random() * (high - low)
            volume = int(1_000_000 + rng.random() * 5_000_000)

            bars.append(PriceBar(
                symbol=symbol,
                timestamp=timestamp,
                open=open_,
                high=high,
                low=low,
                close=price,
                volume=volume,
            ))

        logger.debug(f"Generated {len(bars)} synthetic bars for {symbol}")
        return bars
