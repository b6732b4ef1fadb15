"""
포트폴리오 원장(Ledger) 모듈.

[ 역할 ]
    체결된(FILLED) 거래를 (사용자, 종목) 포지션과 계좌 현금에 반영하고,
    매 사이클 현재가로 평가금액/평가손익을 다시 계산한다.
    Position, Account를 변경하는 유일한 컴포넌트.

[ 포지션 상태 전이 ]
    NO_POSITION ─(매수 체결)→ OPEN
    OPEN ─(추가 매수)→ OPEN        평균단가 = 수량 가중평균
    OPEN ─(매도 체결)→ OPEN/CLOSED 수량 감소, 0이면 평균단가 0
    보유 수량보다 큰 매도는 부호 반전(공매도)이 되므로 갱신 전체를 거부한다.

[ 현금 변동 ] (FILLED 거래만)
    매수: -(수량 * 체결가 + 수수료)
    매도: +(수량 * 체결가 - 수수료)

[ 동시성 ]
    (사용자, 종목) 키마다 Lock으로 read-modify-write를 직렬화 (단일 writer).
    새 상태는 복사본에서 계산한 뒤 영속화가 성공하면 한 번에 반영한다.
    실패하면 메모리 상태는 그대로 남는다.

[ 호출하는 곳 ]
    - engine/trading_engine.py: 사이클 시작 시 mark_to_market(),
      체결 후 apply_fill()
    - data/stats.py: 거래 기록의 realized_pl로 승률 계산
"""

import logging
import sqlite3
import threading
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping, Optional

from mock_trader.core.errors import (
    InsufficientPositionError,
    LedgerError,
    PersistenceError,
    TradeNotFilledError,
)
from mock_trader.core.models import Account, OrderSide, Position, Trade, TradeStatus, ZERO

logger = logging.getLogger("mock_trader.portfolio")


def update_position(position: Position, quantity: int, price: Decimal) -> tuple[Position, Decimal]:
    """부호 있는 수량 체결을 포지션에 더한 새 포지션과 실현손익(수수료 제외) 반환.

    Args:
        position: 현재 포지션 (변경하지 않음)
        quantity: 매수는 양수, 매도는 음수
        price: 체결가
    """
    now = datetime.now()
    held = position.quantity

    if held == 0:
        if quantity < 0:
            raise InsufficientPositionError(
                f"{position.symbol}: 보유 수량 없이 매도 {-quantity}주"
            )
        return replace(position, quantity=quantity, avg_price=price, updated_at=now), ZERO

    if (quantity > 0) == (held > 0):
        total_cost = position.cost_basis + price * quantity
        new_qty = held + quantity
        return replace(position, quantity=new_qty, avg_price=total_cost / new_qty, updated_at=now), ZERO

    if abs(quantity) > abs(held):
        raise InsufficientPositionError(
            f"{position.symbol}: 보유 {held}주보다 많은 반대 체결 {quantity}주"
        )

    realized = (price - position.avg_price) * abs(quantity)
    if held < 0:
        realized = -realized
    new_qty = held + quantity
    avg_price = position.avg_price if new_qty != 0 else ZERO
    return replace(position, quantity=new_qty, avg_price=avg_price, updated_at=now), realized


def revalue(position: Position, current_price: Decimal) -> Position:
    """현재가 기준 평가금액/평가손익을 다시 계산한 새 포지션. 여러 번 호출해도 결과 동일."""
    if not position.is_open:
        return replace(position, market_value=ZERO, unrealized_pl=ZERO, updated_at=datetime.now())
    market_value = position.quantity * current_price
    unrealized = market_value - position.cost_basis
    return replace(position, market_value=market_value, unrealized_pl=unrealized, updated_at=datetime.now())


class PortfolioLedger:
    """포지션/계좌 원장.

    store는 영속화 협력자(data/sqlite_store.py::SQLiteStore 등). None이면 메모리 전용.
    """

    def __init__(self, store: Any = None):
        self.store = store
        self._accounts: dict[int, Account] = {}
        self._positions: dict[tuple[int, str], Position] = {}
        self._locks: dict[Any, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ─── 잠금 ───────────────────────────────────────────────────────────

    def _lock_for(self, key: Any) -> threading.Lock:
        with self._locks_guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    # ─── 조회 ───────────────────────────────────────────────────────────

    def add_account(self, account: Account) -> None:
        """계좌 등록 (신규 사용자 또는 외부에서 로드한 계좌)."""
        self._accounts[account.user_id] = account

    def load_user(self, user_id: int) -> Account:
        """store에서 계좌와 보유 포지션을 읽어 원장에 올린다."""
        if self.store is None:
            raise LedgerError("영속화 store가 설정되지 않음")
        account = self.store.get_account(user_id)
        positions = self.store.get_positions_by_user(user_id)
        self._accounts[user_id] = account
        for p in positions:
            self._positions[(user_id, p.symbol)] = p
        logger.info(f"원장 로드: user={user_id}, 현금 {account.cash}, 포지션 {len(positions)}개")
        return replace(account)

    def get_account(self, user_id: int) -> Account:
        if user_id not in self._accounts:
            if self.store is None:
                raise LedgerError(f"등록되지 않은 사용자: {user_id}")
            self._accounts[user_id] = self.store.get_account(user_id)
        return replace(self._accounts[user_id])

    def _load_position(self, user_id: int, symbol: str) -> Position:
        """캐시 → store 순으로 포지션 조회. 없으면 빈 포지션."""
        position = self._positions.get((user_id, symbol))
        if position is None and self.store is not None:
            position = self.store.get_position(user_id, symbol)
        return position or Position(user_id=user_id, symbol=symbol)

    def get_position(self, user_id: int, symbol: str) -> Optional[Position]:
        position = self._positions.get((user_id, symbol))
        return replace(position) if position is not None else None

    def get_positions(self, user_id: int, include_closed: bool = False) -> list[Position]:
        return [
            replace(p) for (uid, _), p in sorted(self._positions.items())
            if uid == user_id and (include_closed or p.is_open)
        ]

    # ─── 갱신 ───────────────────────────────────────────────────────────

    def apply_fill(self, trade: Trade) -> tuple[Position, Account]:
        """체결된 거래를 포지션과 현금에 반영.

        Raises:
            TradeNotFilledError: trade.status가 FILLED가 아님
            InsufficientPositionError: 보유 수량을 넘는 매도
            CorruptRecordError: store의 저장값 파싱 실패
            PersistenceError: store 트랜잭션 실패 (메모리 상태는 변경 없음)
        """
        if trade.status != TradeStatus.FILLED:
            raise TradeNotFilledError(
                f"FILLED 상태가 아닌 거래는 반영할 수 없음: {trade.symbol} ({trade.status.value})"
            )

        key = (trade.user_id, trade.symbol)
        with self._lock_for(key), self._lock_for(trade.user_id):
            account = self.get_account(trade.user_id)
            current = self._load_position(trade.user_id, trade.symbol)

            signed_qty = trade.quantity if trade.side == OrderSide.BUY else -trade.quantity
            position, realized = update_position(current, signed_qty, trade.fill_price)
            position = revalue(position, trade.fill_price)

            if trade.side == OrderSide.BUY:
                cash = account.cash - trade.total_cost()
            else:
                cash = account.cash + trade.total_cost()
            account = replace(account, cash=cash, updated_at=datetime.now())
            realized_pl = realized - trade.commission if signed_qty < 0 else ZERO

            if self.store is not None:
                try:
                    self.store.commit_fill(replace(trade, realized_pl=realized_pl), position, account)
                except sqlite3.Error as e:
                    raise PersistenceError(f"{trade.symbol} 체결 기록 실패: {e}") from e

            trade.realized_pl = realized_pl
            self._positions[key] = position
            self._accounts[trade.user_id] = account

        logger.info(
            f"원장 반영: {trade.symbol} {trade.side.value} {trade.quantity}주 @ {trade.fill_price} "
            f"→ 보유 {position.quantity}주, 평균 {position.avg_price}, 현금 {account.cash}"
        )
        return replace(position), replace(account)

    def mark_to_market(self, user_id: int, prices: Mapping[str, Decimal]) -> list[Position]:
        """현재가로 보유 포지션의 평가금액/평가손익 재계산. 거래가 없어도 매 사이클 호출."""
        updated = []
        for (uid, symbol) in list(self._positions):
            if uid != user_id or symbol not in prices:
                continue
            key = (uid, symbol)
            with self._lock_for(key):
                position = revalue(self._positions[key], prices[symbol])
                if self.store is not None:
                    self.store.upsert_position(position)
                self._positions[key] = position
            updated.append(replace(position))
        return updated

    # ─── 요약 ───────────────────────────────────────────────────────────

    def total_value(self, user_id: int) -> Decimal:
        """현금 + 마지막 평가금액 합계."""
        account = self.get_account(user_id)
        return account.cash + sum((p.market_value for p in self.get_positions(user_id)), ZERO)

    def summary(self, user_id: int) -> dict[str, Any]:
        """포트폴리오 요약."""
        account = self.get_account(user_id)
        positions = self.get_positions(user_id)
        return {
            "cash": account.cash,
            "positions_value": sum((p.market_value for p in positions), ZERO),
            "total_value": self.total_value(user_id),
            "unrealized_pl": sum((p.unrealized_pl for p in positions), ZERO),
            "num_positions": len(positions),
            "positions": [
                {
                    "symbol": p.symbol,
                    "quantity": p.quantity,
                    "avg_price": p.avg_price,
                    "market_value": p.market_value,
                    "unrealized_pl": p.unrealized_pl,
                }
                for p in positions
            ],
        }
