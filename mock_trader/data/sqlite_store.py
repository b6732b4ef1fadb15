"""
SQLite 기반 영속화 모듈.

[ 역할 ]
    계좌(users), 거래(trades), 포지션(portfolios), 시그널(trading_signals)을
    SQLite에 저장/조회. 원장(data/portfolio.py)의 영속화 협력자.

[ 저장 규칙 ]
    금액/가격/수량은 모두 Decimal 문자열(TEXT)로 저장한다. REAL을 쓰면
    평균단가와 손익이 이진 부동소수점으로 왕복하며 오차가 생긴다.
    로드 시 파싱에 실패하면 CorruptRecordError (재시도하지 않음).
    시그널 강도(strength)는 0~1 비율이라 REAL로 둔다.

[ 동시성 ]
    연결 하나를 Lock으로 보호. commit_fill()은 거래/포지션/계좌를
    하나의 트랜잭션으로 기록한다.

[ 호출하는 곳 ]
    - data/portfolio.py::PortfolioLedger (포지션/계좌)
    - engine/trading_engine.py (거래, 시그널)
    - run_trader.py (데모 계좌 생성/조회, 통계)
"""

import logging
import sqlite3
import threading
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from mock_trader.core.errors import CorruptRecordError
from mock_trader.core.models import (
    Account,
    OrderSide,
    OrderType,
    Position,
    Signal,
    Trade,
    TradeStatus,
)

logger = logging.getLogger("mock_trader.store")

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT UNIQUE NOT NULL,
    email TEXT NOT NULL DEFAULT '',
    balance TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS trades (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    symbol TEXT NOT NULL,
    side TEXT NOT NULL,
    type TEXT NOT NULL,
    quantity TEXT NOT NULL,
    price TEXT NOT NULL,
    fill_price TEXT NOT NULL DEFAULT '0',
    status TEXT NOT NULL,
    commission TEXT NOT NULL DEFAULT '0',
    realized_pl TEXT NOT NULL DEFAULT '0',
    broker_order_id TEXT NOT NULL DEFAULT '',
    strategy TEXT NOT NULL,
    notes TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    filled_at TEXT,
    FOREIGN KEY (user_id) REFERENCES users (id)
);
CREATE TABLE IF NOT EXISTS portfolios (
    user_id INTEGER NOT NULL,
    symbol TEXT NOT NULL,
    quantity TEXT NOT NULL,
    average_price TEXT NOT NULL,
    current_value TEXT NOT NULL DEFAULT '0',
    unrealized_pl TEXT NOT NULL DEFAULT '0',
    updated_at TEXT NOT NULL,
    PRIMARY KEY (user_id, symbol),
    FOREIGN KEY (user_id) REFERENCES users (id)
);
CREATE TABLE IF NOT EXISTS trading_signals (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    symbol TEXT NOT NULL,
    signal TEXT NOT NULL,
    strength REAL NOT NULL,
    price TEXT NOT NULL,
    strategy TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_trades_user_id ON trades (user_id);
CREATE INDEX IF NOT EXISTS idx_trades_symbol ON trades (symbol);
CREATE INDEX IF NOT EXISTS idx_trades_status ON trades (status);
CREATE INDEX IF NOT EXISTS idx_portfolios_user_id ON portfolios (user_id);
CREATE INDEX IF NOT EXISTS idx_signals_symbol ON trading_signals (symbol);
"""


def _parse_decimal(value: str, field: str) -> Decimal:
    try:
        result = Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise CorruptRecordError(f"{field} 파싱 실패: {value!r}") from e
    if not result.is_finite():
        raise CorruptRecordError(f"{field} 값이 유한하지 않음: {value!r}")
    return result


def _parse_quantity(value: str, field: str = "quantity") -> int:
    number = _parse_decimal(value, field)
    if number != number.to_integral_value():
        raise CorruptRecordError(f"{field}는 정수여야 함: {value!r}")
    return int(number)


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteStore:
    """SQLite 영속화 협력자.

    사용 예:
        store = SQLiteStore(Path("data/trades.db"))
        store.initialize()
        account = store.create_account("demo_trader", Decimal("100000"))
    """

    def __init__(self, database_path: str | Path):
        self.database_path = Path(database_path)
        self._lock = threading.Lock()
        self._connection: Optional[sqlite3.Connection] = None

    # ─── 연결 ───────────────────────────────────────────────────────────

    def _get_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            if str(self.database_path) != ":memory:":
                self.database_path.parent.mkdir(parents=True, exist_ok=True)
            connection = sqlite3.connect(
                str(self.database_path),
                check_same_thread=False,
                isolation_level=None,  # 자동 커밋, 트랜잭션은 명시적으로
            )
            connection.execute("PRAGMA foreign_keys=ON")
            connection.row_factory = sqlite3.Row
            self._connection = connection
        return self._connection

    def initialize(self) -> None:
        """스키마 생성 (이미 있으면 무시)."""
        with self._lock:
            self._get_connection().executescript(SCHEMA)
        logger.info(f"데이터베이스 초기화 완료: {self.database_path}")

    def close(self) -> None:
        with self._lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None

    # ─── 계좌 ───────────────────────────────────────────────────────────

    def create_account(self, username: str, cash: Decimal, email: str = "") -> Account:
        now = datetime.now()
        with self._lock:
            cursor = self._get_connection().execute(
                "INSERT INTO users (username, email, balance, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (username, email, str(cash), now.isoformat(), now.isoformat()),
            )
        return Account(
            user_id=cursor.lastrowid,
            username=username,
            email=email,
            cash=cash,
            created_at=now,
            updated_at=now,
        )

    def _row_to_account(self, row: sqlite3.Row) -> Account:
        return Account(
            user_id=row["id"],
            username=row["username"],
            email=row["email"],
            cash=_parse_decimal(row["balance"], "balance"),
            created_at=_parse_time(row["created_at"]),
            updated_at=_parse_time(row["updated_at"]),
        )

    def get_account(self, user_id: int) -> Account:
        """계좌 조회.

        Raises:
            KeyError: 존재하지 않는 사용자
            CorruptRecordError: balance 파싱 실패
        """
        with self._lock:
            row = self._get_connection().execute(
                "SELECT * FROM users WHERE id = ?", (user_id,)
            ).fetchone()
        if row is None:
            raise KeyError(f"사용자 없음: {user_id}")
        return self._row_to_account(row)

    def find_account(self, username: str) -> Optional[Account]:
        with self._lock:
            row = self._get_connection().execute(
                "SELECT * FROM users WHERE username = ?", (username,)
            ).fetchone()
        return self._row_to_account(row) if row is not None else None

    def _write_account(self, conn: sqlite3.Connection, account: Account) -> None:
        conn.execute(
            "UPDATE users SET username = ?, email = ?, balance = ?, updated_at = ? WHERE id = ?",
            (account.username, account.email, str(account.cash),
             account.updated_at.isoformat(), account.user_id),
        )

    # ─── 거래 ───────────────────────────────────────────────────────────

    def save_trade(self, trade: Trade) -> int:
        """신규 거래 INSERT. 부여된 id를 trade.id에 채우고 반환."""
        with self._lock:
            cursor = self._get_connection().execute(
                """
                INSERT INTO trades (user_id, symbol, side, type, quantity, price, fill_price,
                    status, commission, realized_pl, broker_order_id, strategy, notes,
                    created_at, updated_at, filled_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    trade.user_id, trade.symbol, trade.side.value, trade.order_type.value,
                    str(trade.quantity), str(trade.price), str(trade.fill_price),
                    trade.status.value, str(trade.commission), str(trade.realized_pl),
                    trade.broker_order_id, trade.strategy, trade.notes,
                    trade.created_at.isoformat(), trade.updated_at.isoformat(),
                    trade.filled_at.isoformat() if trade.filled_at else None,
                ),
            )
        trade.id = cursor.lastrowid
        return trade.id

    def _write_trade(self, conn: sqlite3.Connection, trade: Trade) -> None:
        conn.execute(
            """
            UPDATE trades SET fill_price = ?, status = ?, commission = ?, realized_pl = ?,
                broker_order_id = ?, notes = ?, updated_at = ?, filled_at = ?
            WHERE id = ?
            """,
            (
                str(trade.fill_price), trade.status.value, str(trade.commission),
                str(trade.realized_pl), trade.broker_order_id, trade.notes,
                trade.updated_at.isoformat(),
                trade.filled_at.isoformat() if trade.filled_at else None,
                trade.id,
            ),
        )

    def update_trade(self, trade: Trade) -> None:
        with self._lock:
            self._write_trade(self._get_connection(), trade)

    def _row_to_trade(self, row: sqlite3.Row) -> Trade:
        return Trade(
            id=row["id"],
            user_id=row["user_id"],
            symbol=row["symbol"],
            side=OrderSide(row["side"]),
            order_type=OrderType(row["type"]),
            quantity=_parse_quantity(row["quantity"]),
            price=_parse_decimal(row["price"], "price"),
            fill_price=_parse_decimal(row["fill_price"], "fill_price"),
            status=TradeStatus(row["status"]),
            commission=_parse_decimal(row["commission"], "commission"),
            realized_pl=_parse_decimal(row["realized_pl"], "realized_pl"),
            broker_order_id=row["broker_order_id"],
            strategy=row["strategy"],
            notes=row["notes"],
            created_at=_parse_time(row["created_at"]),
            updated_at=_parse_time(row["updated_at"]),
            filled_at=_parse_time(row["filled_at"]),
        )

    def get_trades_by_user(self, user_id: int, limit: int = 100) -> list[Trade]:
        """최근 거래 limit건을 시간 오름차순으로 반환."""
        with self._lock:
            rows = self._get_connection().execute(
                "SELECT * FROM trades WHERE user_id = ? ORDER BY id DESC LIMIT ?",
                (user_id, limit),
            ).fetchall()
        return [self._row_to_trade(r) for r in reversed(rows)]

    # ─── 포지션 ─────────────────────────────────────────────────────────

    def _write_position(self, conn: sqlite3.Connection, position: Position) -> None:
        conn.execute(
            """
            INSERT OR REPLACE INTO portfolios (user_id, symbol, quantity, average_price,
                current_value, unrealized_pl, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                position.user_id, position.symbol, str(position.quantity),
                str(position.avg_price), str(position.market_value),
                str(position.unrealized_pl), position.updated_at.isoformat(),
            ),
        )

    def upsert_position(self, position: Position) -> None:
        with self._lock:
            self._write_position(self._get_connection(), position)

    def _row_to_position(self, row: sqlite3.Row) -> Position:
        return Position(
            user_id=row["user_id"],
            symbol=row["symbol"],
            quantity=_parse_quantity(row["quantity"]),
            avg_price=_parse_decimal(row["average_price"], "average_price"),
            market_value=_parse_decimal(row["current_value"], "current_value"),
            unrealized_pl=_parse_decimal(row["unrealized_pl"], "unrealized_pl"),
            updated_at=_parse_time(row["updated_at"]),
        )

    def get_position(self, user_id: int, symbol: str) -> Optional[Position]:
        with self._lock:
            row = self._get_connection().execute(
                "SELECT * FROM portfolios WHERE user_id = ? AND symbol = ?",
                (user_id, symbol),
            ).fetchone()
        return self._row_to_position(row) if row is not None else None

    def get_positions_by_user(self, user_id: int) -> list[Position]:
        """보유 수량이 0이 아닌 포지션만 반환."""
        with self._lock:
            rows = self._get_connection().execute(
                "SELECT * FROM portfolios WHERE user_id = ? AND quantity != '0' ORDER BY symbol",
                (user_id,),
            ).fetchall()
        return [self._row_to_position(r) for r in rows]

    # ─── 체결 반영 (트랜잭션) ───────────────────────────────────────────

    def commit_fill(self, trade: Trade, position: Position, account: Account) -> None:
        """체결 결과를 한 트랜잭션으로 기록. 실패 시 전부 롤백."""
        with self._lock:
            conn = self._get_connection()
            conn.execute("BEGIN")
            try:
                if trade.id is not None:
                    self._write_trade(conn, trade)
                self._write_position(conn, position)
                self._write_account(conn, account)
            except sqlite3.Error:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    # ─── 시그널 ─────────────────────────────────────────────────────────

    def save_signal(self, signal: Signal) -> int:
        with self._lock:
            cursor = self._get_connection().execute(
                "INSERT INTO trading_signals (symbol, signal, strength, price, strategy, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    signal.symbol, signal.signal_type.value, signal.strength,
                    str(signal.price), signal.strategy, signal.created_at.isoformat(),
                ),
            )
        return cursor.lastrowid

    def count_signals(self, symbol: Optional[str] = None) -> int:
        with self._lock:
            if symbol is None:
                row = self._get_connection().execute("SELECT COUNT(*) FROM trading_signals").fetchone()
            else:
                row = self._get_connection().execute(
                    "SELECT COUNT(*) FROM trading_signals WHERE symbol = ?", (symbol,)
                ).fetchone()
        return int(row[0])
