"""
Tests for the in-memory and synthetic price providers.
"""

import random
import pytest
from datetime import datetime, timedelta

from strategylab.data import InMemoryPriceProvider, SyntheticPriceProvider


START = datetime(2024, 1, 1)


class TestInMemoryPriceProvider:

    def test_filters_inclusive_range(self, bars_factory):
        bars = bars_factory("AAPL", [100.0 + i for i in range(10)])
        provider = InMemoryPriceProvider({"AAPL": bars})

        result = provider.get_bars("AAPL", START + timedelta(days=2), START + timedelta(days=5))

        assert [b.close for b in result] == [102.0, 103.0, 104.0, 105.0]

    def test_unknown_symbol_is_empty(self):
        assert InMemoryPriceProvider({}).get_bars("AAPL", START, START + timedelta(days=5)) == []

    def test_from_bars_groups_by_symbol(self, bars_factory):
        bars = bars_factory("AAPL", [1.0, 2.0]) + bars_factory("MSFT", [3.0])

        provider = InMemoryPriceProvider.from_bars(bars)

        assert provider.symbols == ["AAPL", "MSFT"]
        assert len(provider.get_bars("AAPL", START, START + timedelta(days=1))) == 2


class TestSyntheticPriceProvider:

    def test_one_bar_per_day_inclusive(self, synthetic_provider):
        bars = synthetic_provider.get_bars("AAPL", START, START + timedelta(days=30))

        assert len(bars) == 31
        assert [b.timestamp for b in bars] == [START + timedelta(days=i) for i in range(31)]

    def test_bars_are_consistent(self, synthetic_provider):
        """Test every bar has low <= open, close <= high."""
        for bar in synthetic_provider.get_bars("AAPL", START, START + timedelta(days=60)):
            assert bar.low <= bar.close <= bar.high
            assert bar.low <= bar.open <= bar.high
            assert bar.volume > 0

    def test_same_seed_same_series(self):
        first = SyntheticPriceProvider(seed=7).get_bars("AAPL", START, START + timedelta(days=20))
        second = SyntheticPriceProvider(seed=7).get_bars("AAPL", START, START + timedelta(days=20))

        assert first == second

    def test_series_independent_of_request_order(self):
        provider = SyntheticPriceProvider(seed=7)
        end = START + timedelta(days=20)

        msft_first = provider.get_bars("MSFT", START, end)
        aapl = provider.get_bars("AAPL", START, end)

        assert aapl == SyntheticPriceProvider(seed=7).get_bars("AAPL", START, end)
        assert aapl != msft_first

    def test_explicit_rng(self):
        bars = SyntheticPriceProvider(rng=random.Random(1)).get_bars("AAPL", START, START + timedelta(days=5))

        assert len(bars) == 6

    def test_requires_seed_or_rng(self):
        with pytest.raises(ValueError):
            SyntheticPriceProvider()
