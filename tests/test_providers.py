"""Tests for the ClickHouse and Yahoo data providers, using fake clients."""

from datetime import date

import pandas as pd
import pytest

from mock_trader.core.errors import DataProviderError
from mock_trader.data import yahoo_provider
from mock_trader.data.clickhouse_provider import ClickHouseDataProvider
from mock_trader.data.yahoo_provider import YahooDataProvider
from mock_trader.ingestion.clickhouse_schema import verify_connection


class FakeResult:
    def __init__(self, rows):
        self.result_rows = rows


class FakeClickHouseClient:
    def __init__(self, rows=None, fail=False):
        self.rows = rows or []
        self.fail = fail
        self.queries = []

    def query(self, sql, parameters=None):
        if self.fail:
            raise ConnectionError("refused")
        self.queries.append((sql, parameters))
        if "DISTINCT ticker" in sql:
            return FakeResult([("AAPL",), ("MSFT",)])
        return FakeResult(self.rows)

    def command(self, sql):
        if self.fail:
            raise ConnectionError("refused")
        return 1


class TestClickHouseDataProvider:
    def test_get_ohlcv(self):
        client = FakeClickHouseClient(rows=[
            (date(2024, 1, 2), 1.0, 2.0, 0.5, 1.5, 100),
            (date(2024, 1, 3), 1.5, 2.5, 1.0, 2.0, 200),
        ])
        provider = ClickHouseDataProvider(client=client)
        df = provider.get_ohlcv("AAPL", date(2024, 1, 1), date(2024, 1, 31))
        assert list(df.columns) == ["date", "open", "high", "low", "close", "volume"]
        assert list(df["close"]) == [1.5, 2.0]
        sql, params = client.queries[0]
        assert "adjusted_close as close" in sql
        assert params["ticker"] == "AAPL"

    def test_raw_close_column(self):
        client = FakeClickHouseClient()
        ClickHouseDataProvider(client=client, use_adjusted_close=False).get_ohlcv(
            "AAPL", date(2024, 1, 1), date(2024, 1, 31)
        )
        sql = client.queries[0][0]
        assert "close as close" in sql
        assert "adjusted_close" not in sql

    def test_query_failure(self):
        provider = ClickHouseDataProvider(client=FakeClickHouseClient(fail=True))
        with pytest.raises(DataProviderError):
            provider.get_ohlcv("AAPL", date(2024, 1, 1), date(2024, 1, 31))

    def test_get_tickers(self):
        assert ClickHouseDataProvider(client=FakeClickHouseClient()).get_tickers() == ["AAPL", "MSFT"]

    def test_verify_connection(self):
        assert verify_connection(FakeClickHouseClient())
        assert not verify_connection(FakeClickHouseClient(fail=True))


class FakeTicker:
    calls = 0
    fail = False

    def __init__(self, symbol):
        self.symbol = symbol

    def history(self, start, end, auto_adjust, actions):
        FakeTicker.calls += 1
        if FakeTicker.fail:
            raise ConnectionError("timeout")
        index = pd.DatetimeIndex(["2024-01-02", "2024-01-03"], name="Date")
        return pd.DataFrame({
            "Open": [1.0, 2.0], "High": [1.5, 2.5], "Low": [0.5, 1.5],
            "Close": [1.2, 2.2], "Adj Close": [1.1, 2.1], "Volume": [10, 20],
        }, index=index)


@pytest.fixture
def fake_yfinance(monkeypatch):
    FakeTicker.calls = 0
    FakeTicker.fail = False
    monkeypatch.setattr(yahoo_provider.yf, "Ticker", FakeTicker)
    return FakeTicker


class TestYahooDataProvider:
    def test_columns_normalized(self, fake_yfinance):
        provider = YahooDataProvider(tickers=["AAPL"])
        df = provider.get_ohlcv("AAPL", date(2024, 1, 1), date(2024, 1, 5))
        assert list(df.columns) == ["date", "open", "high", "low", "close", "volume"]
        assert list(df["close"]) == [1.1, 2.1]
        assert df["date"].iloc[0] == date(2024, 1, 2)

    def test_raw_close(self, fake_yfinance):
        provider = YahooDataProvider(use_adjusted_close=False)
        df = provider.get_ohlcv("AAPL", date(2024, 1, 1), date(2024, 1, 5))
        assert list(df["close"]) == [1.2, 2.2]

    def test_retries_then_fails(self, fake_yfinance):
        fake_yfinance.fail = True
        provider = YahooDataProvider(max_retries=3, retry_delay=0)
        with pytest.raises(DataProviderError):
            provider.get_ohlcv("AAPL", date(2024, 1, 1), date(2024, 1, 5))
        assert fake_yfinance.calls == 3

    def test_tickers(self):
        assert YahooDataProvider(tickers=["AAPL", "MSFT"]).get_tickers() == ["AAPL", "MSFT"]
