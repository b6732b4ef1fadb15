"""
ClickHouse 기반 DataProvider 구현.

[ 역할 ]
    ClickHouse stock_ohlcv 테이블의 일봉을 조회하여 전략에 제공.
    현재가는 data/market_data.py::LastCloseQuoteProvider로 감싸서 최근 종가를 쓴다.

[ 의존성 ]
    - core/data_provider.py::DataProvider (추상 클래스)
    - ingestion/clickhouse_schema.py (ClickHouse 연결 및 스키마)

[ 호출하는 곳 ]
    - run_trader.py (--source clickhouse 옵션 사용 시)
"""

from datetime import date
from typing import Optional

import pandas as pd
from clickhouse_connect.driver import Client

from mock_trader.core.data_provider import OHLCV_COLUMNS, DataProvider
from mock_trader.core.errors import DataProviderError
from mock_trader.ingestion.clickhouse_schema import OHLCV_TABLE, get_client


class ClickHouseDataProvider(DataProvider):
    """ClickHouse 기반 데이터 제공자.

    사용 예:
        provider = ClickHouseDataProvider('localhost', 8123, 'default', password='password')
        df = provider.get_ohlcv('AAPL', date(2024, 1, 1), date(2024, 12, 31))
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 8123,
        database: str = "default",
        user: str = "default",
        password: str = "password",
        use_adjusted_close: bool = True,
        client: Optional[Client] = None,
    ):
        """
        Args:
            host, port, database, user, password: 접속 정보
            use_adjusted_close: True이면 adjusted_close를 close로 사용
            client: 이미 생성된 클라이언트 (주어지면 접속 정보 무시)
        """
        self.client = client if client is not None else get_client(host, port, database, user, password)
        self.use_adjusted_close = use_adjusted_close

    def get_ohlcv(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        close_column = "adjusted_close" if self.use_adjusted_close else "close"

        query = f"""
            SELECT
                date,
                open,
                high,
                low,
                {close_column} as close,
                volume
            FROM {OHLCV_TABLE}
            WHERE ticker = %(ticker)s
              AND date >= %(start_date)s
              AND date <= %(end_date)s
            ORDER BY date ASC
        """

        try:
            result = self.client.query(
                query,
                parameters={
                    "ticker": ticker,
                    "start_date": start_date,
                    "end_date": end_date,
                },
            )
        except Exception as e:
            raise DataProviderError(f"ClickHouse 조회 실패 ({ticker}): {e}") from e

        df = pd.DataFrame(result.result_rows, columns=OHLCV_COLUMNS)
        if not df.empty:
            df["date"] = pd.to_datetime(df["date"])
        return df

    def get_tickers(self) -> list[str]:
        """조회 가능한 종목 코드 목록 (알파벳 순)."""
        result = self.client.query(f"SELECT DISTINCT ticker FROM {OHLCV_TABLE} ORDER BY ticker")
        return [row[0] for row in result.result_rows]

    def close(self):
        """ClickHouse 연결 종료."""
        if hasattr(self.client, "close"):
            self.client.close()
