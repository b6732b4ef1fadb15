"""
매매 판단(Decision Engine) 모듈.

[ 역할 ]
    한 종목에 대해 여러 전략의 시그널을 집계하여 최대 1건의 TradeIntent를 만든다.
    상태를 갖지 않는 순수 함수. 같은 입력이면 같은 결과.

[ 판단 순서 ]
    1. BUY 개수, SELL 개수, 강도 합계 집계
    2. 정족수: 한쪽이 다른 쪽보다 많고(동수 불가) min_concurring_signals 이상
    3. BUY: 포지션이 없을 때만
          금액 = min(max_position_value, 현금 * risk_fraction * 강도합)
          수량 = floor(금액 / 현재가), 수량 > 0 이고 수량 * 현재가 <= 현금일 때만
    4. SELL: 보유 수량 > 0 일 때만 전량 매도 (부분 매도/공매도 없음)
    5. 해당 없으면 None. 무거래는 오류가 아니다.

[ 호출하는 곳 ]
    - engine/trading_engine.py::TradingEngine.process_symbol()
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal
from typing import Optional, Sequence

from mock_trader.core.models import (
    Account,
    OrderSide,
    Position,
    Signal,
    SignalType,
    TradeIntent,
    to_decimal,
)

logger = logging.getLogger("mock_trader.decision")

MULTI_STRATEGY_TAG = "multi_strategy"


@dataclass(frozen=True)
class RiskConfig:
    """포지션 크기 결정용 리스크 설정. utils/config.py의 risk 섹션에서 생성."""
    max_position_value: Decimal = Decimal("10000")
    risk_fraction: Decimal = Decimal("0.02")
    min_concurring_signals: int = 2

    def __post_init__(self):
        object.__setattr__(self, "max_position_value", to_decimal(self.max_position_value))
        object.__setattr__(self, "risk_fraction", to_decimal(self.risk_fraction))


@dataclass(frozen=True)
class SignalTally:
    buy_count: int
    sell_count: int
    total_strength: Decimal


def tally_signals(signals: Sequence[Signal]) -> SignalTally:
    """방향별 개수와 강도 합계 집계. 강도 합은 모든 시그널을 포함한다."""
    buys = sum(1 for s in signals if s.signal_type == SignalType.BUY)
    sells = sum(1 for s in signals if s.signal_type == SignalType.SELL)
    total = sum((to_decimal(s.strength) for s in signals), Decimal(0))
    return SignalTally(buy_count=buys, sell_count=sells, total_strength=total)


def consensus(tally: SignalTally, min_concurring: int = 2) -> Optional[SignalType]:
    """정족수를 만족하는 방향. 동수이거나 한 표 차 단독 시그널이면 None."""
    if tally.buy_count > tally.sell_count and tally.buy_count >= min_concurring:
        return SignalType.BUY
    if tally.sell_count > tally.buy_count and tally.sell_count >= min_concurring:
        return SignalType.SELL
    return None


def size_buy(
    cash: Decimal,
    price: Decimal,
    total_strength: Decimal,
    risk: RiskConfig,
) -> int:
    """매수 수량 계산. 감당할 수 없거나 0주면 0."""
    if price <= 0:
        return 0
    position_value = min(risk.max_position_value, cash * risk.risk_fraction * total_strength)
    quantity = int((position_value / price).to_integral_value(rounding=ROUND_FLOOR))
    if quantity <= 0 or quantity * price > cash:
        return 0
    return quantity


def decide(
    signals: Sequence[Signal],
    position: Optional[Position],
    account: Account,
    risk_config: RiskConfig,
    current_price: Decimal,
) -> Optional[TradeIntent]:
    """종목 하나의 시그널들로 TradeIntent 결정.

    Args:
        signals: 같은 종목에 대한 전략별 시그널 (전략당 최대 1개)
        position: 현재 포지션 (없으면 None)
        account: 계좌 (현금 잔고 사용)
        risk_config: 최대 포지션 금액 / 리스크 비율 / 정족수
        current_price: 현재가

    Returns:
        TradeIntent 또는 None (무거래)
    """
    if not signals:
        return None

    symbol = signals[0].symbol
    tally = tally_signals(signals)
    direction = consensus(tally, risk_config.min_concurring_signals)
    if direction is None:
        logger.debug(f"{symbol}: 정족수 미달 (BUY {tally.buy_count}, SELL {tally.sell_count})")
        return None

    held = position.quantity if position is not None else 0

    if direction == SignalType.BUY:
        if held != 0:
            return None
        quantity = size_buy(account.cash, current_price, tally.total_strength, risk_config)
        if quantity == 0:
            logger.debug(f"{symbol}: 매수 수량 0 또는 현금 부족")
            return None
        return TradeIntent(
            symbol=symbol,
            side=OrderSide.BUY,
            quantity=quantity,
            price=current_price,
            strategy=MULTI_STRATEGY_TAG,
        )

    if held > 0:
        return TradeIntent(
            symbol=symbol,
            side=OrderSide.SELL,
            quantity=held,
            price=current_price,
            strategy=MULTI_STRATEGY_TAG,
        )
    return None
