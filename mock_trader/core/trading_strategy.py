"""
매매 전략 공통 계약 정의.

[ 역할 ]
    모든 전략이 따르는 단일 순수 함수 계약:
        analyze(symbol, bars, current_price) -> Signal | None
    None은 HOLD(시그널 없음)를 의미한다.

[ 구현체 ]
    전략 집합은 닫혀 있다. 상속 없이 같은 계약만 구현한다.
    - strategies/sma_cross_strategy.py::SMACrossStrategy
    - strategies/rsi_strategy.py::RSIMomentumStrategy
    - strategies/mean_reversion_strategy.py::MeanReversionStrategy

[ 호출하는 곳 ]
    - engine/trading_engine.py::TradingEngine.process_symbol()에서
      종목마다 모든 전략의 analyze()를 호출하여 시그널을 모은다

[ 데이터 흐름 ]
    bars(오름차순 Bar 리스트) + 현재가 → analyze() → Signal 또는 None
    모은 시그널은 engine/decision.py::decide()로 전달됨
"""

from decimal import Decimal
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from mock_trader.core.models import Bar, Signal


@runtime_checkable
class Strategy(Protocol):
    """전략 계약. 파라미터는 params dict에 담기며 DEFAULT_PARAMS로 기본값을 제공."""

    name: str
    description: str
    params: dict[str, Any]

    @property
    def min_history(self) -> int:
        """analyze()가 시그널을 낼 수 있는 최소 봉 개수."""
        ...

    def analyze(
        self,
        symbol: str,
        bars: Sequence[Bar],
        current_price: Decimal,
    ) -> Optional[Signal]:
        """시그널 생성. 데이터가 부족하거나 조건 미충족이면 None."""
        ...


def merge_params(defaults: dict[str, Any], params: dict[str, Any] | None) -> dict[str, Any]:
    """DEFAULT_PARAMS 위에 사용자 파라미터를 덮어쓴다. 모르는 키는 거부."""
    params = params or {}
    unknown = set(params) - set(defaults)
    if unknown:
        raise ValueError(f"알 수 없는 파라미터: {sorted(unknown)}")
    return {**defaults, **params}
