"""
RSI 모멘텀 전략 구현.

[ 역할 ]
    core/trading_strategy.py::Strategy 계약의 구현체.
    RSI가 과매도선을 하향 돌파하면 매수, 과매수선을 상향 돌파하면 매도.

[ 전략 흐름 ]
    analyze() 호출 시
        ├── 봉 개수 < period + 1 → None
        ├── 극단 구간 우선 (돌파 여부와 무관)
        │     ├── RSI < extreme_oversold   → BUY  (extreme_strength)
        │     └── RSI > extreme_overbought → SELL (extreme_strength)
        └── 돌파 판정 (직전 RSI 필요)
              ├── 직전 > oversold,   현재 <= oversold   → BUY
              │     강도 = (oversold - RSI) / oversold, 최소 min_strength
              └── 직전 < overbought, 현재 >= overbought → SELL
                    강도 = (RSI - overbought) / (100 - overbought), 최소 min_strength

[ 파라미터 ]
    period:             RSI 기간
    oversold:           과매도 기준선
    overbought:         과매수 기준선
    min_strength:       돌파 시그널 최소 강도
    extreme_oversold:   절대 과매도 기준
    extreme_overbought: 절대 과매수 기준
    extreme_strength:   극단 구간 시그널 강도
"""

from decimal import Decimal
from typing import Any, Optional, Sequence

from mock_trader.core.indicators import extract_closes, rsi
from mock_trader.core.models import Bar, Signal, SignalType, to_decimal
from mock_trader.core.trading_strategy import merge_params
from mock_trader.strategies import register


@register("rsi_momentum")
class RSIMomentumStrategy:
    """RSI 기준선 돌파 전략 구현체."""

    DEFAULT_PARAMS = {
        "period": 14,
        "oversold": 30.0,
        "overbought": 70.0,
        "min_strength": 0.6,
        "extreme_oversold": 20.0,
        "extreme_overbought": 80.0,
        "extreme_strength": 0.9,
    }

    def __init__(self, params: dict[str, Any] | None = None):
        self.name = "rsi_momentum"
        self.description = "Relative Strength Index momentum strategy"
        self.params = merge_params(self.DEFAULT_PARAMS, params)
        if not 0 < self.oversold < self.overbought < 100:
            raise ValueError(
                f"0 < oversold({self.oversold}) < overbought({self.overbought}) < 100 이어야 함"
            )

    @property
    def period(self) -> int:
        return int(self.params["period"])

    @property
    def oversold(self) -> float:
        return float(self.params["oversold"])

    @property
    def overbought(self) -> float:
        return float(self.params["overbought"])

    @property
    def min_history(self) -> int:
        return self.period + 1

    def _level(self, key: str) -> Decimal:
        return to_decimal(self.params[key])

    def _classify(self, current: Decimal, previous: Optional[Decimal]) -> Optional[tuple[SignalType, float]]:
        """(방향, 강도) 또는 None."""
        if current < self._level("extreme_oversold"):
            return SignalType.BUY, float(self.params["extreme_strength"])
        if current > self._level("extreme_overbought"):
            return SignalType.SELL, float(self.params["extreme_strength"])

        if previous is None:
            return None

        floor = float(self.params["min_strength"])
        oversold = self._level("oversold")
        overbought = self._level("overbought")

        if previous > oversold and current <= oversold:
            strength = float((oversold - current) / oversold)
            return SignalType.BUY, max(min(strength, 1.0), floor)
        if previous < overbought and current >= overbought:
            strength = float((current - overbought) / (100 - overbought))
            return SignalType.SELL, max(min(strength, 1.0), floor)
        return None

    def analyze(
        self,
        symbol: str,
        bars: Sequence[Bar],
        current_price: Decimal,
    ) -> Optional[Signal]:
        if len(bars) < self.min_history:
            return None

        values = rsi(extract_closes(bars), self.period)
        if not values:
            return None

        previous = values[-2] if len(values) >= 2 else None
        result = self._classify(values[-1], previous)
        if result is None:
            return None

        signal_type, strength = result
        return Signal(
            symbol=symbol,
            signal_type=signal_type,
            strength=strength,
            strategy=self.name,
            price=current_price,
        )
