"""
계좌 성과 통계 모듈.

[ 역할 ]
    거래 기록 + 사이클별 총 자산을 받아 계좌 통계를 계산.
    calculate_stats() 함수가 핵심.

[ 계산하는 지표 ]
    - 총 거래 수 (체결된 매수+매도)
    - 청산 거래(매도) 기준 승/패 수, 승률, 실현손익 합계
    - MDD (최대 낙폭)
    - 샤프 비율 (사이클 수익률 기준, 무위험 수익률 0, 연환산하지 않음)

[ 호출하는 곳 ]
    - run_trader.py --stats 및 루프 종료 시 출력

[ 입력 데이터 ]
    - trades: data/sqlite_store.py::SQLiteStore.get_trades_by_user() 결과
    - equity_curve: engine/trading_engine.py가 매 사이클 기록한 총 자산 리스트
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Sequence

import numpy as np

from mock_trader.core.models import OrderSide, Trade, ZERO


@dataclass
class AccountStats:
    """계좌 통계. summary()로 포맷된 리포트 출력 가능."""
    total_trades: int = 0              # 체결된 거래 수
    closed_trades: int = 0             # 매도(청산) 거래 수
    winning_trades: int = 0
    losing_trades: int = 0
    win_rate: float = 0.0              # 승률 (%)
    total_realized_pl: Decimal = ZERO  # 실현손익 합계 (수수료 차감)
    total_commission: Decimal = ZERO
    max_drawdown: float = 0.0          # 최대 낙폭 MDD (%)
    sharpe_ratio: float = 0.0
    portfolio_value: Decimal = ZERO    # 마지막 총 자산
    total_return: float = 0.0          # 초기 자금 대비 수익률 (%)

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리 변환. Decimal은 문자열로."""
        return {
            k: str(v) if isinstance(v, Decimal) else v
            for k, v in asdict(self).items()
        }

    def summary(self) -> str:
        """성과 요약 문자열."""
        lines = [
            "=" * 50,
            "계좌 성과 리포트",
            "=" * 50,
            f"총 자산:         {self.portfolio_value:>14,.2f}",
            f"총 수익률:       {self.total_return:>14.2f}%",
            f"실현손익:        {self.total_realized_pl:>14,.2f}",
            f"수수료 합계:     {self.total_commission:>14,.2f}",
            f"최대 낙폭(MDD):  {self.max_drawdown:>14.2f}%",
            f"샤프 비율:       {self.sharpe_ratio:>14.2f}",
            "-" * 50,
            f"체결 거래:       {self.total_trades:>14d}",
            f"청산 거래:       {self.closed_trades:>14d}",
            f"수익 거래:       {self.winning_trades:>14d}",
            f"손실 거래:       {self.losing_trades:>14d}",
            f"승률:            {self.win_rate:>14.2f}%",
            "=" * 50,
        ]
        return "\n".join(lines)


def max_drawdown(values: Sequence[float]) -> float:
    """고점 대비 최대 하락폭 (%)."""
    if not values:
        return 0.0
    peak = values[0]
    max_dd = 0.0
    for value in values:
        if value > peak:
            peak = value
        if peak > 0:
            max_dd = max(max_dd, (peak - value) / peak * 100)
    return max_dd


def calculate_stats(
    trades: Sequence[Trade],
    equity_curve: Sequence[Decimal],
    initial_balance: Decimal,
) -> AccountStats:
    """계좌 통계 계산.

    Args:
        trades: 사용자의 거래 기록 (미체결 포함, 체결된 것만 집계)
        equity_curve: 사이클별 총 자산 (현금 + 평가금액)
        initial_balance: 초기 자금
    """
    stats = AccountStats()

    filled = [t for t in trades if t.is_filled]
    stats.total_trades = len(filled)
    stats.total_commission = sum((t.commission for t in filled), ZERO)

    # 수익 실현은 매도 체결에서만 발생
    sells = [t for t in filled if t.side == OrderSide.SELL]
    stats.closed_trades = len(sells)
    if sells:
        stats.winning_trades = sum(1 for t in sells if t.realized_pl > 0)
        stats.losing_trades = len(sells) - stats.winning_trades
        stats.win_rate = stats.winning_trades / len(sells) * 100
        stats.total_realized_pl = sum((t.realized_pl for t in sells), ZERO)

    if not equity_curve:
        stats.portfolio_value = Decimal(initial_balance)
        return stats

    stats.portfolio_value = equity_curve[-1]
    if initial_balance > 0:
        stats.total_return = float((equity_curve[-1] - initial_balance) / initial_balance * 100)

    values = [float(v) for v in equity_curve]
    stats.max_drawdown = max_drawdown(values)

    if len(values) > 1:
        arr = np.array(values)
        prev = arr[:-1]
        returns = np.diff(arr)[prev > 0] / prev[prev > 0]
        if len(returns) and np.std(returns) > 0:
            stats.sharpe_ratio = float(np.mean(returns) / np.std(returns))

    return stats
