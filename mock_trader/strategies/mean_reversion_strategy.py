"""
평균회귀(볼린저 밴드) 전략 구현.

[ 역할 ]
    core/trading_strategy.py::Strategy 계약의 구현체.
    현재가가 밴드 하단 아래면 매수, 상단 위면 매도하는 4구간 사다리.

[ 구간 판정 ] (half = 밴드 폭 / 2)
    현재가 < 하단                          → BUY,  강도 0.6 + 2 * 침투율
    현재가 > 상단                          → SELL, 강도 0.6 + 2 * 침투율
    하단 <= 현재가 < 중심 - 0.7 * half     → 약한 BUY  (밴드 하위 30%)
    중심 + 0.7 * half < 현재가 <= 상단     → 약한 SELL (밴드 상위 30%)
    그 외                                  → None
    침투율 = 밴드 밖으로 벗어난 거리 / 밴드 폭

    약한 구간 경계는 밴드 폭 전체가 아니라 half 기준이다.
    폭 전체 * 0.7 을 쓰면 경계가 밴드 밖에 놓여 약한 구간이 생기지 않는다.
    그 동작이 필요하면 weak_zone_ratio=1.4 (= 폭 전체 * 0.7).

[ 변동성 감쇠 ]
    최근 3개 종가의 변화율 RMS가 0.05를 넘으면 강도 * 0.7

[ 파라미터 ]
    period, num_std:           볼린저 밴드 기간 / 표준편차 배수
    base_strength:             밴드 이탈 시 기본 강도
    penetration_multiplier:    침투율 가중치
    weak_zone_ratio:           약한 구간 경계 (half 대비 비율)
    weak_base_strength:        약한 구간 기본 강도
    weak_distance_multiplier:  약한 구간 거리 가중치
    volatility_window:         변동성 계산용 종가 개수
    volatility_threshold:      감쇠 기준 변동성
    volatility_damping:        감쇠 배수
"""

from decimal import Decimal
from typing import Any, Optional, Sequence

from mock_trader.core.indicators import bollinger_bands, extract_closes
from mock_trader.core.models import Bar, Signal, SignalType, ZERO, to_decimal
from mock_trader.core.trading_strategy import merge_params
from mock_trader.strategies import register


def trailing_volatility(closes: Sequence[Decimal], window: int = 3) -> float:
    """최근 window개 종가의 기간별 변화율 제곱평균제곱근(RMS)."""
    recent = list(closes[-window:])
    if len(recent) < 2:
        return 0.0

    changes = [(cur - prev) / prev for prev, cur in zip(recent, recent[1:]) if prev != 0]
    if not changes:
        return 0.0
    mean_square = sum((c * c for c in changes), ZERO) / Decimal(len(changes))
    return float(mean_square.sqrt())


@register("mean_reversion")
class MeanReversionStrategy:
    """볼린저 밴드 평균회귀 전략 구현체."""

    DEFAULT_PARAMS = {
        "period": 20,
        "num_std": 2.0,
        "base_strength": 0.6,
        "penetration_multiplier": 2.0,
        "weak_zone_ratio": 0.7,
        "weak_base_strength": 0.3,
        "weak_distance_multiplier": 0.5,
        "volatility_window": 3,
        "volatility_threshold": 0.05,
        "volatility_damping": 0.7,
    }

    def __init__(self, params: dict[str, Any] | None = None):
        self.name = "mean_reversion"
        self.description = "Bollinger Bands mean reversion strategy"
        self.params = merge_params(self.DEFAULT_PARAMS, params)

    @property
    def period(self) -> int:
        return int(self.params["period"])

    @property
    def min_history(self) -> int:
        return self.period

    def _band_signal(
        self,
        price: Decimal,
        upper: Decimal,
        middle: Decimal,
        lower: Decimal,
    ) -> Optional[tuple[SignalType, float]]:
        bandwidth = upper - lower
        base = float(self.params["base_strength"])
        pen_mult = float(self.params["penetration_multiplier"])

        if price < lower:
            penetration = float((lower - price) / bandwidth)
            return SignalType.BUY, min(base + penetration * pen_mult, 1.0)
        if price > upper:
            penetration = float((price - upper) / bandwidth)
            return SignalType.SELL, min(base + penetration * pen_mult, 1.0)

        offset = bandwidth / 2 * to_decimal(self.params["weak_zone_ratio"])
        lower_threshold = middle - offset
        upper_threshold = middle + offset
        weak_base = float(self.params["weak_base_strength"])
        weak_mult = float(self.params["weak_distance_multiplier"])

        if price < lower_threshold:
            distance = float((lower_threshold - price) / bandwidth)
            return SignalType.BUY, weak_base + distance * weak_mult
        if price > upper_threshold:
            distance = float((price - upper_threshold) / bandwidth)
            return SignalType.SELL, weak_base + distance * weak_mult
        return None

    def analyze(
        self,
        symbol: str,
        bars: Sequence[Bar],
        current_price: Decimal,
    ) -> Optional[Signal]:
        if len(bars) < self.period:
            return None

        closes = extract_closes(bars)
        bands = bollinger_bands(closes, self.period, self.params["num_std"])
        if not len(bands):
            return None

        upper, middle, lower = bands.upper[-1], bands.middle[-1], bands.lower[-1]
        if upper - lower == 0:
            return None

        result = self._band_signal(current_price, upper, middle, lower)
        if result is None:
            return None
        signal_type, strength = result

        volatility = trailing_volatility(closes, int(self.params["volatility_window"]))
        if volatility > float(self.params["volatility_threshold"]):
            strength *= float(self.params["volatility_damping"])

        return Signal(
            symbol=symbol,
            signal_type=signal_type,
            strength=strength,
            strategy=self.name,
            price=current_price,
        )
