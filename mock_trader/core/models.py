"""
도메인 모델 정의.

[ 역할 ]
    봉(Bar), 시그널(Signal), 포지션(Position), 계좌(Account),
    주문 의도(TradeIntent), 거래(Trade) 데이터 구조.
    금액/가격은 모두 Decimal. float을 거치면 평균단가/손익에 오차가 누적된다.

[ 소유권 ]
    - Position, Account 변경은 data/portfolio.py::PortfolioLedger만 수행
    - TradeIntent는 engine/decision.py가 만들고 실행 협력자가 소비 (비영속)
    - Trade는 엔진이 생성, 실행 결과로 상태 전이, FILLED일 때만 원장 반영

[ 거래 상태 전이 ]
    PENDING → FILLED | CANCELLED | REJECTED
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """숫자를 Decimal로 변환. float은 repr 문자열을 거쳐 이진 오차를 옮기지 않는다."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(value)


# ─── 시세 ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Bar:
    """단일 봉 데이터. 시간 오름차순으로 전달되며 빈 구간은 채우지 않는다."""
    timestamp: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: int


# ─── 시그널 ──────────────────────────────────────────────────────────────────

class SignalType(Enum):
    """전략이 반환하는 방향. HOLD는 시그널 없음(None)으로 표현."""
    BUY = "BUY"
    SELL = "SELL"


@dataclass
class Signal:
    """전략 하나가 낸 매매 시그널. strength는 [0, 1]로 클램프된다."""
    symbol: str
    signal_type: SignalType
    strength: float
    strategy: str
    price: Decimal
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        self.strength = min(1.0, max(0.0, float(self.strength)))


# ─── 포지션 / 계좌 ───────────────────────────────────────────────────────────

@dataclass
class Position:
    """(사용자, 종목) 단위 포지션. quantity == 0 이면 avg_price == 0."""
    user_id: int
    symbol: str
    quantity: int = 0
    avg_price: Decimal = ZERO
    market_value: Decimal = ZERO      # 마지막 평가 시 quantity * 현재가
    unrealized_pl: Decimal = ZERO     # 마지막 평가 시 평가손익
    updated_at: datetime = field(default_factory=datetime.now)

    @property
    def is_open(self) -> bool:
        return self.quantity != 0

    @property
    def cost_basis(self) -> Decimal:
        return self.avg_price * self.quantity


@dataclass
class Account:
    """사용자 계좌. 현금은 FILLED 거래로만 변한다."""
    user_id: int
    username: str
    cash: Decimal
    email: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)


# ─── 주문 ────────────────────────────────────────────────────────────────────

class OrderSide(Enum):
    BUY = "buy"
    SELL = "sell"


class OrderType(Enum):
    """주문 타입. 현재는 시장가만 생성한다."""
    MARKET = "market"


class TradeStatus(Enum):
    PENDING = "pending"
    FILLED = "filled"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


@dataclass(frozen=True)
class TradeIntent:
    """decide()의 반환값. 실행 협력자에게 전달되는 일회성 주문 의도."""
    symbol: str
    side: OrderSide
    quantity: int
    price: Decimal           # 판단 시점 기준가
    strategy: str = "multi_strategy"

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValueError(f"quantity must be positive: {self.quantity}")


@dataclass
class Trade:
    """거래 기록. 엔진이 생성하고 실행 결과에 따라 상태가 바뀐다."""
    user_id: int
    symbol: str
    side: OrderSide
    quantity: int
    price: Decimal
    strategy: str
    order_type: OrderType = OrderType.MARKET
    status: TradeStatus = TradeStatus.PENDING
    fill_price: Decimal = ZERO
    commission: Decimal = ZERO
    realized_pl: Decimal = ZERO       # 포지션 축소 체결 시 원장이 기록
    broker_order_id: str = ""
    notes: str = ""
    id: Optional[int] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    filled_at: Optional[datetime] = None

    @classmethod
    def from_intent(cls, intent: TradeIntent, user_id: int) -> "Trade":
        return cls(
            user_id=user_id,
            symbol=intent.symbol,
            side=intent.side,
            quantity=intent.quantity,
            price=intent.price,
            strategy=intent.strategy,
        )

    @property
    def is_filled(self) -> bool:
        return self.status == TradeStatus.FILLED

    def mark_filled(self, fill_price: Decimal, commission: Decimal = ZERO) -> None:
        now = datetime.now()
        self.fill_price = fill_price
        self.commission = commission
        self.status = TradeStatus.FILLED
        self.filled_at = now
        self.updated_at = now

    def cancel(self, reason: str = "") -> None:
        self.status = TradeStatus.CANCELLED
        self.notes = reason
        self.updated_at = datetime.now()

    def reject(self, reason: str = "") -> None:
        self.status = TradeStatus.REJECTED
        self.notes = reason
        self.updated_at = datetime.now()

    def total_cost(self) -> Decimal:
        """현금 변동 크기. 매수: 체결금액 + 수수료, 매도: 체결금액 - 수수료."""
        if not self.is_filled:
            return ZERO
        cost = self.fill_price * self.quantity
        if self.side == OrderSide.BUY:
            return cost + self.commission
        return cost - self.commission

    def profit_loss(self, current_price: Decimal) -> Decimal:
        """이 거래 단독의 현재가 기준 손익 (수수료 차감)."""
        if not self.is_filled:
            return ZERO
        if self.side == OrderSide.BUY:
            return (current_price - self.fill_price) * self.quantity - self.commission
        return (self.fill_price - current_price) * self.quantity - self.commission
