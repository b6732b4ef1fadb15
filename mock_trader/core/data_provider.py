"""
봉 데이터 제공 추상 클래스 정의.

[ 역할 ]
    OHLCV(시가/고가/저가/종가/거래량) 데이터를 제공하는 인터페이스.
    데이터 소스(모의 데이터, ClickHouse, Yahoo 등)에 독립적으로 전략에 데이터 공급.
    조회 실패는 DataProviderError로 보고하고, 재시도 여부는 구현체가 정한다.

[ 구현체 ]
    - brokers/mock_broker.py::MockDataProvider        (무작위 보행 / 미리 로드한 DataFrame)
    - data/clickhouse_provider.py::ClickHouseDataProvider
    - data/yahoo_provider.py::YahooDataProvider

[ 호출하는 곳 ]
    - data/market_data.py::MarketDataManager가 이 인터페이스를 통해 조회 후
      frame_to_bars()로 Bar 리스트로 변환
"""

from abc import ABC, abstractmethod
from datetime import date, datetime

import pandas as pd

from mock_trader.core.models import Bar, to_decimal

OHLCV_COLUMNS = ["date", "open", "high", "low", "close", "volume"]


class DataProvider(ABC):
    """봉 데이터 제공 추상 클래스."""

    @abstractmethod
    def get_ohlcv(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        """OHLCV 데이터 조회.

        Args:
            ticker: 종목 코드
            start_date: 시작일
            end_date: 종료일

        Returns:
            DataFrame with columns: [date, open, high, low, close, volume]
            date 오름차순. 빈 구간은 채우지 않는다.
        """
        ...

    @abstractmethod
    def get_tickers(self) -> list[str]:
        """조회 가능한 종목 코드 목록."""
        ...


def _to_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return pd.Timestamp(value).to_pydatetime()


def frame_to_bars(df: pd.DataFrame) -> list[Bar]:
    """OHLCV DataFrame → Bar 리스트 (date 오름차순). 가격은 Decimal로 변환."""
    if df.empty:
        return []

    df = df.sort_values("date")
    bars = []
    for row in df.itertuples(index=False):
        bars.append(Bar(
            timestamp=_to_datetime(row.date),
            open=to_decimal(float(row.open)),
            high=to_decimal(float(row.high)),
            low=to_decimal(float(row.low)),
            close=to_decimal(float(row.close)),
            volume=int(row.volume),
        ))
    return bars
