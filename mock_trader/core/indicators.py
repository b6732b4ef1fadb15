"""
기술적 지표 계산 모듈.

[ 역할 ]
    종가 시계열(list[Decimal])을 받아 SMA / EMA / RSI / 볼린저 밴드 / MACD 계산.
    모두 순수 함수이며, 같은 입력에 대해 항상 같은 Decimal 결과를 낸다.

[ 데이터 부족 처리 ]
    기간보다 데이터가 짧으면 예외가 아니라 빈 리스트를 반환한다.
    워밍업 구간에서는 정상적으로 발생하는 상황이다.

[ 0으로 나누기 ]
    - RSI: 평균 손실이 0이면 RSI = 100
    - 볼린저 밴드: 표준편차 0이면 밴드 폭 0 (상/하단 = 중심선)

[ 호출하는 곳 ]
    - strategies/sma_cross_strategy.py      (sma)
    - strategies/rsi_strategy.py            (rsi)
    - strategies/mean_reversion_strategy.py (bollinger_bands)
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Sequence

from mock_trader.core.models import Bar, ZERO, to_decimal

HUNDRED = Decimal(100)
ONE = Decimal(1)


@dataclass
class BollingerBands:
    """bollinger_bands()의 반환값. 네 리스트의 길이는 같다."""
    upper: list[Decimal] = field(default_factory=list)
    middle: list[Decimal] = field(default_factory=list)
    lower: list[Decimal] = field(default_factory=list)
    stddev: list[Decimal] = field(default_factory=list)  # 창별 모표준편차

    def __len__(self) -> int:
        return len(self.middle)


@dataclass
class MACD:
    """macd()의 반환값. 세 리스트 모두 signal 길이에 맞춰 정렬된다."""
    macd: list[Decimal] = field(default_factory=list)
    signal: list[Decimal] = field(default_factory=list)
    histogram: list[Decimal] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.signal)


def _check_period(period: int) -> None:
    if period <= 0:
        raise ValueError(f"period must be positive: {period}")


def sma(values: Sequence[Decimal], period: int) -> list[Decimal]:
    """단순 이동평균. 결과 길이 = len(values) - period + 1."""
    _check_period(period)
    if len(values) < period:
        return []

    divisor = Decimal(period)
    result = []
    for end in range(period, len(values) + 1):
        window = values[end - period:end]
        result.append(sum(window, ZERO) / divisor)
    return result


def ema(values: Sequence[Decimal], period: int) -> list[Decimal]:
    """지수 이동평균. 첫 값은 앞 period개의 SMA, 이후 승수 2/(period+1).

    ema[i] = price[i]*m + ema[i-1]*(1-m) 를 ema[i-1] + (price[i]-ema[i-1])*m
    형태로 계산한다. 상수 시계열에서 값이 정확히 유지된다.
    """
    _check_period(period)
    if len(values) < period:
        return []

    multiplier = Decimal(2) / Decimal(period + 1)
    current = sum(values[:period], ZERO) / Decimal(period)
    result = [current]
    for price in values[period:]:
        current = current + (price - current) * multiplier
        result.append(current)
    return result


def _rsi_value(avg_gain: Decimal, avg_loss: Decimal) -> Decimal:
    if avg_loss == 0:
        return HUNDRED
    rs = avg_gain / avg_loss
    return HUNDRED - HUNDRED / (ONE + rs)


def rsi(prices: Sequence[Decimal], period: int) -> list[Decimal]:
    """RSI (Wilder 평활). 결과 길이 = len(prices) - period."""
    _check_period(period)
    if len(prices) < period + 1:
        return []

    gains = []
    losses = []
    for prev, cur in zip(prices, prices[1:]):
        change = cur - prev
        if change > 0:
            gains.append(change)
            losses.append(ZERO)
        else:
            gains.append(ZERO)
            losses.append(-change)

    divisor = Decimal(period)
    avg_gain = sum(gains[:period], ZERO) / divisor
    avg_loss = sum(losses[:period], ZERO) / divisor
    result = [_rsi_value(avg_gain, avg_loss)]

    keep = Decimal(period - 1)
    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * keep + gain) / divisor
        avg_loss = (avg_loss * keep + loss) / divisor
        result.append(_rsi_value(avg_gain, avg_loss))
    return result


def bollinger_bands(prices: Sequence[Decimal], period: int, k) -> BollingerBands:
    """볼린저 밴드. 중심선 = SMA, 폭 = k * 창별 모표준편차."""
    middle = sma(prices, period)
    if not middle:
        return BollingerBands()

    k = to_decimal(k)
    divisor = Decimal(period)
    bands = BollingerBands(middle=middle)
    for i, mean in enumerate(middle):
        window = prices[i:i + period]
        variance = sum(((p - mean) * (p - mean) for p in window), ZERO) / divisor
        std = variance.sqrt()
        width = k * std
        bands.stddev.append(std)
        bands.upper.append(mean + width)
        bands.lower.append(mean - width)
    return bands


def _align(a: list[Decimal], b: list[Decimal]) -> tuple[list[Decimal], list[Decimal]]:
    """긴 쪽의 앞부분을 잘라 끝을 맞춘다."""
    n = min(len(a), len(b))
    return a[len(a) - n:], b[len(b) - n:]


def macd(
    prices: Sequence[Decimal],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MACD:
    """MACD = EMA(fast) - EMA(slow), signal = EMA(MACD), histogram = MACD - signal."""
    fast = ema(prices, fast_period)
    slow = ema(prices, slow_period)
    if not fast or not slow:
        return MACD()

    fast, slow = _align(fast, slow)
    macd_line = [f - s for f, s in zip(fast, slow)]

    signal_line = ema(macd_line, signal_period)
    if not signal_line:
        return MACD()

    macd_aligned = macd_line[len(macd_line) - len(signal_line):]
    histogram = [m - s for m, s in zip(macd_aligned, signal_line)]
    return MACD(macd=macd_aligned, signal=signal_line, histogram=histogram)


# ─── 봉 → 가격 시계열 ────────────────────────────────────────────────────────

def extract_closes(bars: Sequence[Bar]) -> list[Decimal]:
    return [bar.close for bar in bars]


def extract_highs(bars: Sequence[Bar]) -> list[Decimal]:
    return [bar.high for bar in bars]


def extract_lows(bars: Sequence[Bar]) -> list[Decimal]:
    return [bar.low for bar in bars]
