"""
모의 시장: 봉 데이터 / 현재가 / 주문 체결 시뮬레이션.

[ 역할 ]
    실제 증권사 API 없이 자동매매 루프를 돌리기 위한 협력자 구현.
    난수는 numpy Generator(seed 고정)로 만들어 실행마다 재현 가능하다.

[ 포함 클래스 ]
    MockDataProvider - core/data_provider.py::DataProvider 구현체
                       미리 로드된 DataFrame을 쓰거나, 없으면 종목별
                       무작위 보행(일 ±5%) 봉 데이터를 생성

    MockBroker       - core/broker_api.py::QuoteProvider + ExecutionClient 구현체
                       현재가: 기준가에서 ±2% 흔들리며 이동
                       체결:   슬리피지(기본 0.1%, 100주 초과 시 비례 증가 + 0~0.2% 난수)
                               수수료율 적용, rejection_rate 확률로 거부

[ 호출하는 곳 ]
    - run_trader.py (--source mock, 기본값)
    - tests/ 에서 결정적 시장 데이터로 활용
"""

import logging
import uuid
import zlib
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import numpy as np
import pandas as pd

from mock_trader.core.broker_api import ExecutionClient, ExecutionResult, QuoteProvider
from mock_trader.core.data_provider import OHLCV_COLUMNS, DataProvider
from mock_trader.core.errors import ExecutionError
from mock_trader.core.models import OrderSide, TradeIntent, TradeStatus, to_decimal

logger = logging.getLogger("mock_trader.mock_broker")

DEFAULT_BASE_PRICES = {
    "AAPL": 175.50,
    "GOOGL": 135.25,
    "MSFT": 378.85,
    "TSLA": 238.45,
    "AMZN": 145.30,
    "NVDA": 875.25,
    "META": 485.60,
    "NFLX": 425.75,
}

CENT = Decimal("0.01")
TICK = Decimal("0.0001")


def _ticker_seed(seed: int, ticker: str, start_date: date) -> int:
    # hash()는 프로세스마다 달라지므로 crc32 사용
    return (seed * 1_000_003 + zlib.crc32(f"{ticker}:{start_date}".encode())) % 2**32


def generate_sample_data(
    ticker: str,
    start_date: date,
    end_date: date,
    initial_price: float = 100.0,
    max_daily_change: float = 0.05,
    seed: int = 42,
) -> pd.DataFrame:
    """모의 일봉 데이터 생성. 종가는 매일 ±max_daily_change 범위로 무작위 변동."""
    rng = np.random.default_rng(_ticker_seed(seed, ticker, start_date))
    dates = pd.date_range(start=start_date, end=end_date, freq="D")
    n = len(dates)
    if n == 0:
        return pd.DataFrame(columns=OHLCV_COLUMNS)

    changes = (rng.random(n) - 0.5) * 2 * max_daily_change
    closes = initial_price * np.cumprod(1 + changes)
    opens = np.concatenate([[initial_price], closes[:-1]])
    intraday = rng.random(n) * 0.03  # 0~3% 일중 범위
    highs = np.maximum(opens * (1 + intraday), closes)
    lows = np.minimum(opens * (1 - intraday), closes)
    volumes = rng.integers(1_000_000, 11_000_000, n)

    return pd.DataFrame({
        "date": [d.date() for d in dates],
        "open": np.round(opens, 2),
        "high": np.round(highs, 2),
        "low": np.round(lows, 2),
        "close": np.round(closes, 2),
        "volume": volumes,
    })


# ─── Mock 데이터 제공자 ──────────────────────────────────────────────────────

class MockDataProvider(DataProvider):
    """모의 봉 데이터 제공자.

    사용법:
        provider = MockDataProvider(seed=7)
        provider.load_data("AAPL", aapl_df)  # 고정 데이터 사용 시
        df = provider.get_ohlcv("AAPL", start, end)
    """

    def __init__(
        self,
        base_prices: Optional[dict[str, float]] = None,
        seed: int = 42,
        default_price: float = 100.0,
    ):
        self.base_prices = dict(base_prices or DEFAULT_BASE_PRICES)
        self.seed = seed
        self.default_price = default_price
        self._data: dict[str, pd.DataFrame] = {}  # ticker → 미리 로드된 DataFrame

    def load_data(self, ticker: str, df: pd.DataFrame) -> None:
        """고정 데이터 로드. 이후 이 종목은 생성하지 않고 df에서 잘라 반환."""
        df = df.copy()
        df["date"] = pd.to_datetime(df["date"]).dt.date
        self._data[ticker] = df.sort_values("date").reset_index(drop=True)

    def get_ohlcv(
        self,
        ticker: str,
        start_date: date,
        end_date: date,
    ) -> pd.DataFrame:
        if ticker in self._data:
            df = self._data[ticker]
            mask = (df["date"] >= start_date) & (df["date"] <= end_date)
            return df[mask].copy().reset_index(drop=True)

        return generate_sample_data(
            ticker,
            start_date,
            end_date,
            initial_price=self.base_prices.get(ticker, self.default_price),
            seed=self.seed,
        )

    def get_tickers(self) -> list[str]:
        return sorted(set(self.base_prices) | set(self._data))


# ─── Mock 브로커 ─────────────────────────────────────────────────────────────

class MockBroker(QuoteProvider, ExecutionClient):
    """모의 브로커. 실제 주문 없이 현재가 변동과 체결을 시뮬레이션.

    매수 시: 현재가 + 슬리피지 로 불리하게 체결
    매도 시: 현재가 - 슬리피지 로 불리하게 체결
    수수료: 체결금액 * commission_rate
    """

    def __init__(
        self,
        base_prices: Optional[dict[str, float]] = None,
        commission_rate: float = 0.0,
        slippage_rate: float = 0.001,       # 0.1%
        random_slippage: float = 0.002,     # 0~0.2% 추가
        rejection_rate: float = 0.01,       # 1%
        price_fluctuation: float = 0.02,    # ±2%
        seed: Optional[int] = None,
    ):
        prices = base_prices or DEFAULT_BASE_PRICES
        self._prices: dict[str, Decimal] = {s: to_decimal(p) for s, p in prices.items()}
        self.commission_rate = to_decimal(commission_rate)
        self.slippage_rate = to_decimal(slippage_rate)
        self.random_slippage = random_slippage
        self.rejection_rate = rejection_rate
        self.price_fluctuation = price_fluctuation
        self._rng = np.random.default_rng(seed)
        self.orders: dict[str, ExecutionResult] = {}  # order_id → 결과

    def set_price(self, symbol: str, price: Decimal) -> None:
        """종목 기준가 설정 (시뮬레이션용)."""
        self._prices[symbol] = to_decimal(price)

    def last_price(self, symbol: str) -> Optional[Decimal]:
        return self._prices.get(symbol)

    # ─── QuoteProvider ─────────────────────────────────────────────────

    def _next_price(self, symbol: str) -> Decimal:
        fluctuation = (self._rng.random() - 0.5) * 2 * self.price_fluctuation
        price = (self._prices[symbol] * to_decimal(1 + fluctuation)).quantize(CENT)
        self._prices[symbol] = price
        return price

    def get_current_prices(self, symbols: list[str]) -> dict[str, Decimal]:
        prices = {}
        for symbol in symbols:
            if symbol not in self._prices:
                logger.warning(f"현재가 없음: {symbol}")
                continue
            prices[symbol] = self._next_price(symbol)
        return prices

    def is_market_open(self, now: datetime) -> bool:
        """평일 09:00 ~ 16:00 만 개장으로 취급."""
        if now.weekday() >= 5:
            return False
        return 9 <= now.hour < 16

    # ─── ExecutionClient ───────────────────────────────────────────────

    def _slippage(self, intent: TradeIntent, price: Decimal) -> Decimal:
        rate = self.slippage_rate
        size_multiplier = Decimal(intent.quantity) / Decimal(100)
        if size_multiplier > 1:
            rate = rate * size_multiplier
        rate = rate + to_decimal(self._rng.random() * self.random_slippage)
        return price * rate

    def execute(self, intent: TradeIntent) -> ExecutionResult:
        if intent.symbol not in self._prices:
            raise ExecutionError(f"failed to get current price for mock order: {intent.symbol}")

        order_id = f"mock_{uuid.uuid4().hex[:8]}"
        price = self._next_price(intent.symbol)

        if self._rng.random() < self.rejection_rate:
            result = ExecutionResult(
                status=TradeStatus.REJECTED,
                order_id=order_id,
                message="mock order rejected due to market conditions",
            )
            self.orders[order_id] = result
            logger.info(f"모의 주문 거부: {intent.side.value} {intent.quantity} {intent.symbol}")
            return result

        slippage = self._slippage(intent, price)
        if intent.side == OrderSide.BUY:
            fill_price = (price + slippage).quantize(TICK)
        else:
            fill_price = (price - slippage).quantize(TICK)
        commission = (fill_price * intent.quantity * self.commission_rate).quantize(TICK)

        result = ExecutionResult(
            status=TradeStatus.FILLED,
            fill_price=fill_price,
            commission=commission,
            order_id=order_id,
        )
        self.orders[order_id] = result
        logger.info(
            f"모의 주문 체결: {intent.side.value} {intent.quantity} {intent.symbol} @ {fill_price}"
        )
        return result
