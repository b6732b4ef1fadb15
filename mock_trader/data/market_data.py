"""
시장 데이터 관리 모듈.

[ 역할 ]
    DataProvider를 감싸서 사이클 단위 캐싱 + Bar 변환 제공.
    전역 캐시가 아니라 엔진이 참조로 들고 다니는 객체이며,
    매 틱 시작 시 begin_cycle()로 비운다. 같은 사이클 안에서 같은 종목을
    다시 조회하면 캐시에서 즉시 반환한다.

[ 포함 클래스 ]
    MarketDataManager       - 봉 데이터 캐시
    LastCloseQuoteProvider  - 현재가 API가 없는 소스(ClickHouse, Yahoo)용
                              QuoteProvider. 최근 봉의 종가를 현재가로 쓴다.

[ 의존성 ]
    - core/data_provider.py::DataProvider (데이터 소스 추상화)

[ 호출하는 곳 ]
    - engine/trading_engine.py::TradingEngine.run_cycle() / process_symbol()
"""

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, Optional

import pandas as pd

from mock_trader.core.broker_api import QuoteProvider
from mock_trader.core.data_provider import DataProvider, frame_to_bars
from mock_trader.core.errors import DataProviderError
from mock_trader.core.models import Bar

logger = logging.getLogger("mock_trader.market_data")


class MarketDataManager:
    """DataProvider 위에 사이클 단위 캐싱 레이어를 추가한 매니저.

    사용 예:
        manager = MarketDataManager(MockDataProvider())
        manager.begin_cycle()
        bars = manager.get_history("AAPL", date.today(), lookback_days=100)
    """

    def __init__(self, data_provider: DataProvider):
        self.provider = data_provider
        self._cache: dict[str, list[Bar]] = {}  # "ticker_start_end" → Bar 리스트
        self.cycle = 0

    def begin_cycle(self) -> None:
        """새 틱 시작. 이전 사이클의 캐시를 무효화."""
        self.clear_cache()
        self.cycle += 1

    def get_bars(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
        use_cache: bool = True,
    ) -> list[Bar]:
        """봉 데이터 조회 (캐싱 지원).

        Raises:
            DataProviderError: 데이터 소스 조회 실패 (코어는 재시도하지 않음)
        """
        cache_key = f"{ticker}_{start_date}_{end_date}"
        if use_cache and cache_key in self._cache:
            return self._cache[cache_key]

        try:
            df = self.provider.get_ohlcv(ticker, start_date, end_date)
        except DataProviderError:
            raise
        except Exception as e:
            raise DataProviderError(f"{ticker} 봉 데이터 조회 실패: {e}") from e

        bars = frame_to_bars(df)
        if use_cache:
            self._cache[cache_key] = bars
        return bars

    def get_history(
        self,
        ticker: str,
        end_date: date,
        lookback_days: int = 100,
    ) -> list[Bar]:
        """end_date 기준 최근 lookback_days 일간의 봉."""
        start = end_date - timedelta(days=lookback_days)
        return self.get_bars(ticker, start, end_date)

    def clear_cache(self) -> None:
        """캐시 초기화."""
        self._cache.clear()


class LastCloseQuoteProvider(QuoteProvider):
    """최근 봉 종가를 현재가로 사용하는 QuoteProvider."""

    def __init__(
        self,
        data_provider: DataProvider,
        lookback_days: int = 10,
        today: Callable[[], date] = date.today,
    ):
        self.provider = data_provider
        self.lookback_days = lookback_days
        self._today = today

    def _last_close(self, symbol: str) -> Optional[Decimal]:
        end = self._today()
        df = self.provider.get_ohlcv(symbol, end - timedelta(days=self.lookback_days), end)
        bars = frame_to_bars(df)
        return bars[-1].close if bars else None

    def get_current_prices(self, symbols: list[str]) -> dict[str, Decimal]:
        prices = {}
        for symbol in symbols:
            try:
                price = self._last_close(symbol)
            except Exception as e:
                logger.warning(f"현재가 조회 실패: {symbol}: {e}")
                continue
            if price is None:
                logger.warning(f"최근 {self.lookback_days}일 봉 없음: {symbol}")
                continue
            prices[symbol] = price
        return prices

    def is_market_open(self, now: datetime) -> bool:
        return pd.Timestamp(now).dayofweek < 5
