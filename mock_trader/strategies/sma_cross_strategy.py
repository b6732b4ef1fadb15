"""
단순 이동평균 교차(SMA Crossover) 전략 구현.

[ 역할 ]
    core/trading_strategy.py::Strategy 계약의 구현체.
    "단기 SMA가 장기 SMA를 상향 돌파하면 매수, 하향 돌파하면 매도"

[ 전략 흐름 ]
    매 사이클 analyze() 호출됨 (← engine/trading_engine.py에서)
        ├── 봉 개수 < long_period → None
        ├── 단기/장기 SMA 각각 최소 2개 필요 (직전 + 현재)
        ├── 직전: 단기 <= 장기, 현재: 단기 > 장기 → BUY (골든 크로스)
        └── 직전: 단기 >= 장기, 현재: 단기 < 장기 → SELL (데드 크로스)

[ 시그널 강도 ]
    base_strength + gap_multiplier * |단기 - 장기| / 장기, 최대 1.0

[ 파라미터 (config.yaml의 strategies 항목에서 로드) ]
    short_period:    단기 SMA 기간
    long_period:     장기 SMA 기간
    base_strength:   교차 발생 시 기본 강도
    gap_multiplier:  이격률에 곱하는 가중치
"""

from decimal import Decimal
from typing import Any, Optional, Sequence

from mock_trader.core.indicators import extract_closes, sma
from mock_trader.core.models import Bar, Signal, SignalType
from mock_trader.core.trading_strategy import merge_params
from mock_trader.strategies import register


@register("sma_cross")
class SMACrossStrategy:
    """이동평균 교차 전략 구현체."""

    DEFAULT_PARAMS = {
        "short_period": 20,
        "long_period": 50,
        "base_strength": 0.7,
        "gap_multiplier": 3.0,
    }

    def __init__(self, params: dict[str, Any] | None = None):
        self.name = "sma_cross"
        self.description = "Simple Moving Average crossover strategy"
        self.params = merge_params(self.DEFAULT_PARAMS, params)
        if self.short_period >= self.long_period:
            raise ValueError(
                f"short_period({self.short_period})는 long_period({self.long_period})보다 작아야 함"
            )

    @property
    def short_period(self) -> int:
        return int(self.params["short_period"])

    @property
    def long_period(self) -> int:
        return int(self.params["long_period"])

    @property
    def min_history(self) -> int:
        # 장기 SMA 2개(직전/현재)를 얻으려면 long_period + 1개 필요
        return self.long_period + 1

    def _strength(self, short_now: Decimal, long_now: Decimal) -> float:
        gap = abs(short_now - long_now) / long_now
        strength = float(self.params["base_strength"]) + float(self.params["gap_multiplier"]) * float(gap)
        return min(strength, 1.0)

    def analyze(
        self,
        symbol: str,
        bars: Sequence[Bar],
        current_price: Decimal,
    ) -> Optional[Signal]:
        if len(bars) < self.long_period:
            return None

        closes = extract_closes(bars)
        short_sma = sma(closes, self.short_period)
        long_sma = sma(closes, self.long_period)
        if len(short_sma) < 2 or len(long_sma) < 2:
            return None

        short_prev, short_now = short_sma[-2], short_sma[-1]
        long_prev, long_now = long_sma[-2], long_sma[-1]
        if long_now == 0:
            return None

        if short_prev <= long_prev and short_now > long_now:
            signal_type = SignalType.BUY
        elif short_prev >= long_prev and short_now < long_now:
            signal_type = SignalType.SELL
        else:
            return None

        return Signal(
            symbol=symbol,
            signal_type=signal_type,
            strength=self._strength(short_now, long_now),
            strategy=self.name,
            price=current_price,
        )
