"""Tests for the cycle-scoped market data cache and bar conversion."""

from datetime import date, datetime
from decimal import Decimal

import pandas as pd
import pytest

from mock_trader.core.data_provider import DataProvider, frame_to_bars
from mock_trader.core.errors import DataProviderError
from mock_trader.data.market_data import LastCloseQuoteProvider, MarketDataManager
from mock_trader.brokers.mock_broker import MockDataProvider


class CountingProvider(DataProvider):
    def __init__(self, fail=False):
        self.calls = 0
        self.fail = fail

    def get_ohlcv(self, ticker, start_date, end_date):
        self.calls += 1
        if self.fail:
            raise RuntimeError("connection reset")
        return pd.DataFrame({
            "date": [date(2024, 1, 2), date(2024, 1, 1)],
            "open": [10.0, 9.0], "high": [11.0, 10.0], "low": [9.5, 8.5],
            "close": [10.5, 9.5], "volume": [100, 200],
        })

    def get_tickers(self):
        return ["AAPL"]


class TestFrameToBars:
    def test_sorted_and_decimal(self):
        bars = frame_to_bars(CountingProvider().get_ohlcv("AAPL", None, None))
        assert [b.timestamp for b in bars] == [datetime(2024, 1, 1), datetime(2024, 1, 2)]
        assert bars[0].close == Decimal("9.5")
        assert bars[1].volume == 100

    def test_empty_frame(self):
        assert frame_to_bars(pd.DataFrame(columns=["date", "open", "high", "low", "close", "volume"])) == []


class TestMarketDataManager:
    def test_cache_within_cycle(self):
        provider = CountingProvider()
        manager = MarketDataManager(provider)
        manager.begin_cycle()
        first = manager.get_history("AAPL", date(2024, 1, 2), lookback_days=10)
        second = manager.get_history("AAPL", date(2024, 1, 2), lookback_days=10)
        assert first == second
        assert provider.calls == 1

    def test_begin_cycle_invalidates(self):
        provider = CountingProvider()
        manager = MarketDataManager(provider)
        manager.begin_cycle()
        manager.get_history("AAPL", date(2024, 1, 2))
        manager.begin_cycle()
        manager.get_history("AAPL", date(2024, 1, 2))
        assert provider.calls == 2
        assert manager.cycle == 2

    def test_clear_cache_keeps_cycle(self):
        provider = CountingProvider()
        manager = MarketDataManager(provider)
        manager.begin_cycle()
        manager.get_history("AAPL", date(2024, 1, 2))
        manager.clear_cache()
        manager.get_history("AAPL", date(2024, 1, 2))
        assert provider.calls == 2
        assert manager.cycle == 1

    def test_use_cache_false_bypasses(self):
        provider = CountingProvider()
        manager = MarketDataManager(provider)
        manager.get_bars("AAPL", date(2024, 1, 1), date(2024, 1, 2), use_cache=False)
        manager.get_bars("AAPL", date(2024, 1, 1), date(2024, 1, 2), use_cache=False)
        assert provider.calls == 2

    def test_provider_error_wrapped(self):
        manager = MarketDataManager(CountingProvider(fail=True))
        with pytest.raises(DataProviderError, match="AAPL"):
            manager.get_history("AAPL", date(2024, 1, 2))


class TestLastCloseQuoteProvider:
    def test_last_close_is_current_price(self):
        provider = MockDataProvider()
        provider.load_data("TEST", pd.DataFrame({
            "date": ["2024-01-01", "2024-01-02", "2024-01-03"],
            "open": [1.0, 2.0, 3.0], "high": [1.0, 2.0, 3.0], "low": [1.0, 2.0, 3.0],
            "close": [1.25, 2.5, 3.75], "volume": [1, 1, 1],
        }))
        quotes = LastCloseQuoteProvider(provider, today=lambda: date(2024, 1, 5))
        assert quotes.get_current_prices(["TEST"]) == {"TEST": Decimal("3.75")}

    def test_missing_data_omitted(self):
        provider = MockDataProvider()
        provider.load_data("TEST", pd.DataFrame({
            "date": ["2023-01-01"], "open": [1.0], "high": [1.0], "low": [1.0],
            "close": [1.0], "volume": [1],
        }))
        quotes = LastCloseQuoteProvider(provider, today=lambda: date(2024, 1, 5))
        assert quotes.get_current_prices(["TEST"]) == {}

    def test_failing_provider_omitted(self):
        quotes = LastCloseQuoteProvider(CountingProvider(fail=True))
        assert quotes.get_current_prices(["AAPL"]) == {}

    def test_weekday_is_open(self):
        quotes = LastCloseQuoteProvider(CountingProvider())
        assert quotes.is_market_open(datetime(2024, 3, 4, 3, 0))
        assert not quotes.is_market_open(datetime(2024, 3, 3, 12, 0))
