"""
Yahoo Finance 기반 DataProvider 구현.

[ 역할 ]
    yfinance로 일봉을 직접 받아 전략에 제공 (DB 없이 실데이터로 돌릴 때).
    현재가는 data/market_data.py::LastCloseQuoteProvider로 감싸서 최근 종가를 쓴다.

[ 호출하는 곳 ]
    - run_trader.py (--source yahoo 옵션 사용 시)
"""

import logging
import time
from datetime import date, timedelta
from typing import Optional

import pandas as pd
import yfinance as yf

from mock_trader.core.data_provider import OHLCV_COLUMNS, DataProvider
from mock_trader.core.errors import DataProviderError

logger = logging.getLogger("mock_trader.yahoo")


def validate_data(df: pd.DataFrame, ticker: str) -> bool:
    """
    수집한 데이터를 검증합니다.

    필수 컬럼이 빠졌으면 False. 가격 0 이하, high < low 같은 이상치는
    경고만 남기고 통과시킨다.
    """
    if df is None or df.empty:
        logger.warning(f"Empty DataFrame for {ticker}")
        return False

    missing_columns = set(OHLCV_COLUMNS) - set(df.columns)
    if missing_columns:
        logger.error(f"Missing columns for {ticker}: {missing_columns}")
        return False

    for col in ["open", "high", "low", "close"]:
        invalid_count = (df[col] <= 0).sum()
        if invalid_count:
            logger.warning(f"Invalid {col} values (<=0) for {ticker}: {invalid_count} rows")

    invalid_count = (df["high"] < df["low"]).sum()
    if invalid_count:
        logger.warning(f"Invalid OHLC relationship (high < low) for {ticker}: {invalid_count} rows")

    return True


class YahooDataProvider(DataProvider):
    """Yahoo Finance 데이터 제공자.

    사용 예:
        provider = YahooDataProvider(tickers=["AAPL", "MSFT"])
        df = provider.get_ohlcv("AAPL", date(2024, 1, 1), date(2024, 3, 31))
    """

    def __init__(
        self,
        tickers: Optional[list[str]] = None,
        use_adjusted_close: bool = True,
        max_retries: int = 3,
        retry_delay: float = 5,
    ):
        self.tickers = list(tickers or [])
        self.use_adjusted_close = use_adjusted_close
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    def _download(self, ticker: str, start_date: date, end_date: date) -> pd.DataFrame:
        df = yf.Ticker(ticker).history(
            start=start_date,
            end=end_date + timedelta(days=1),  # end_date 포함
            auto_adjust=False,
            actions=False,
        )
        if df.empty:
            return pd.DataFrame(columns=OHLCV_COLUMNS)

        df = df.reset_index()
        close_column = "Adj Close" if self.use_adjusted_close and "Adj Close" in df.columns else "Close"
        df = pd.DataFrame({
            "date": df["Date"],
            "open": df["Open"],
            "high": df["High"],
            "low": df["Low"],
            "close": df[close_column],
            "volume": df["Volume"],
        })
        if pd.api.types.is_datetime64_any_dtype(df["date"]):
            df["date"] = df["date"].dt.date
        return df

    def get_ohlcv(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        last_error: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                df = self._download(ticker, start_date, end_date)
            except Exception as e:
                last_error = e
                logger.error(f"Error fetching {ticker} (attempt {attempt + 1}/{self.max_retries}): {e}")
                if attempt < self.max_retries - 1:
                    time.sleep(self.retry_delay)
                continue

            if df.empty:
                logger.warning(f"No data found for {ticker}")
                return df
            if not validate_data(df, ticker):
                raise DataProviderError(f"{ticker} 데이터 검증 실패")
            return df

        raise DataProviderError(f"{ticker} 조회 실패 (재시도 {self.max_retries}회): {last_error}")

    def get_tickers(self) -> list[str]:
        return list(self.tickers)
