"""
시세 조회 / 주문 실행 추상 클래스 정의.

[ 역할 ]
    증권사와의 통신을 두 계약으로 추상화.
    - QuoteProvider:   현재가 조회, 장 운영 여부
    - ExecutionClient: TradeIntent 체결 → ExecutionResult
    슬리피지, 수수료, 체결가 대체 규칙(최근 체결가 vs 호가 중간값)은
    모두 구현체의 책임이며 코어는 관여하지 않는다.

[ 구현체 ]
    - brokers/mock_broker.py::MockBroker               (QuoteProvider + ExecutionClient)
    - data/market_data.py::LastCloseQuoteProvider     (최근 종가로 현재가 대체)

[ 호출하는 곳 ]
    - engine/trading_engine.py::TradingEngine
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from mock_trader.core.models import TradeIntent, TradeStatus, ZERO


@dataclass
class ExecutionResult:
    """ExecutionClient.execute()의 반환값. status는 FILLED 또는 REJECTED."""
    status: TradeStatus
    fill_price: Decimal = ZERO
    commission: Decimal = ZERO
    order_id: str = ""
    message: str = ""

    @property
    def filled(self) -> bool:
        return self.status == TradeStatus.FILLED


class QuoteProvider(ABC):
    """현재가 제공 추상 클래스."""

    @abstractmethod
    def get_current_prices(self, symbols: list[str]) -> dict[str, Decimal]:
        """여러 종목 현재가 조회. 가격을 얻지 못한 종목은 결과에서 빠진다."""
        ...

    def get_current_price(self, symbol: str) -> Decimal:
        prices = self.get_current_prices([symbol])
        if symbol not in prices:
            raise KeyError(f"price not available for symbol {symbol}")
        return prices[symbol]

    def is_market_open(self, now: datetime) -> bool:
        """장 운영 여부. 기본 구현은 항상 True."""
        return True


class ExecutionClient(ABC):
    """주문 실행 추상 클래스."""

    @abstractmethod
    def execute(self, intent: TradeIntent) -> ExecutionResult:
        """주문 실행.

        Returns:
            ExecutionResult (FILLED: 체결가/수수료 포함, REJECTED: 사유 포함)

        Raises:
            ExecutionError: 네트워크/타임아웃 등 결과를 알 수 없는 실패
        """
        ...
