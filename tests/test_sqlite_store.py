"""Tests for SQLite persistence and ledger integration."""

import sqlite3
from decimal import Decimal

import pytest

from mock_trader.core.errors import CorruptRecordError, PersistenceError
from mock_trader.core.models import OrderSide, Position, Signal, SignalType, Trade, TradeStatus
from mock_trader.data.portfolio import PortfolioLedger
from mock_trader.data.sqlite_store import SQLiteStore


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "trades.db"


@pytest.fixture
def store(db_path):
    store = SQLiteStore(db_path)
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def user(store):
    return store.create_account("tester", Decimal("100000.00"), email="t@example.com")


class TestAccounts:
    def test_create_and_load(self, store, user):
        loaded = store.get_account(user.user_id)
        assert loaded.username == "tester"
        assert loaded.cash == Decimal("100000.00")
        assert store.find_account("tester").user_id == user.user_id

    def test_missing_account(self, store):
        assert store.find_account("nobody") is None
        with pytest.raises(KeyError):
            store.get_account(999)

    def test_corrupt_balance(self, store, user):
        store._get_connection().execute(
            "UPDATE users SET balance = 'not-a-number' WHERE id = ?", (user.user_id,)
        )
        with pytest.raises(CorruptRecordError):
            store.get_account(user.user_id)


class TestTrades:
    def test_decimal_fields_round_trip_exactly(self, store, user):
        trade = Trade(user_id=user.user_id, symbol="AAPL", side=OrderSide.BUY, quantity=7,
                      price=Decimal("175.5"), strategy="multi_strategy")
        trade_id = store.save_trade(trade)
        assert trade.id == trade_id

        trade.mark_filled(Decimal("175.6789"), Decimal("0.1234"))
        trade.broker_order_id = "mock_abc"
        store.update_trade(trade)

        [loaded] = store.get_trades_by_user(user.user_id)
        assert loaded.status == TradeStatus.FILLED
        assert loaded.fill_price == Decimal("175.6789")
        assert loaded.commission == Decimal("0.1234")
        assert loaded.quantity == 7
        assert loaded.broker_order_id == "mock_abc"
        assert loaded.filled_at is not None

    def test_trades_in_insertion_order(self, store, user):
        for symbol in ["AAPL", "MSFT", "TSLA"]:
            store.save_trade(Trade(user_id=user.user_id, symbol=symbol, side=OrderSide.BUY,
                                   quantity=1, price=Decimal("1"), strategy="s"))
        assert [t.symbol for t in store.get_trades_by_user(user.user_id)] == ["AAPL", "MSFT", "TSLA"]
        assert [t.symbol for t in store.get_trades_by_user(user.user_id, limit=2)] == ["MSFT", "TSLA"]


class TestPositions:
    def test_upsert_and_filter_closed(self, store, user):
        store.upsert_position(Position(user_id=user.user_id, symbol="AAPL", quantity=3,
                                       avg_price=Decimal("100.125")))
        store.upsert_position(Position(user_id=user.user_id, symbol="MSFT"))

        assert store.get_position(user.user_id, "AAPL").avg_price == Decimal("100.125")
        assert [p.symbol for p in store.get_positions_by_user(user.user_id)] == ["AAPL"]

    def test_fractional_quantity_is_corrupt(self, store, user):
        store.upsert_position(Position(user_id=user.user_id, symbol="AAPL", quantity=3,
                                       avg_price=Decimal("100")))
        store._get_connection().execute("UPDATE portfolios SET quantity = '2.5'")
        with pytest.raises(CorruptRecordError):
            store.get_position(user.user_id, "AAPL")


class TestSignals:
    def test_save_and_count(self, store):
        for symbol in ["AAPL", "AAPL", "MSFT"]:
            store.save_signal(Signal(symbol=symbol, signal_type=SignalType.BUY, strength=0.7,
                                     strategy="sma_cross", price=Decimal("10")))
        assert store.count_signals() == 3
        assert store.count_signals("AAPL") == 2


class TestLedgerPersistence:
    def test_fill_survives_reload(self, db_path, store, user, filled_trade):
        ledger = PortfolioLedger(store)
        ledger.load_user(user.user_id)

        trade = filled_trade("buy", 10, "100.10", commission="0.50", user_id=user.user_id)
        store.save_trade(trade)
        ledger.apply_fill(trade)
        store.close()

        reopened = SQLiteStore(db_path)
        reloaded = PortfolioLedger(reopened)
        account = reloaded.load_user(user.user_id)
        assert account.cash == Decimal("98998.50")
        position = reloaded.get_position(user.user_id, "AAPL")
        assert position.quantity == 10
        assert position.avg_price == Decimal("100.10")
        reopened.close()

    def test_positions_load_lazily(self, store, user, filled_trade):
        first = PortfolioLedger(store)
        first.load_user(user.user_id)
        first.apply_fill(filled_trade("buy", 10, "100", user_id=user.user_id))

        second = PortfolioLedger(store)
        second.get_account(user.user_id)
        position, _ = second.apply_fill(filled_trade("sell", 4, "110", user_id=user.user_id))
        assert position.quantity == 6

    def test_corrupt_position_aborts_fill(self, store, user, filled_trade):
        ledger = PortfolioLedger(store)
        ledger.get_account(user.user_id)
        store.upsert_position(Position(user_id=user.user_id, symbol="AAPL", quantity=5,
                                       avg_price=Decimal("100")))
        store._get_connection().execute("UPDATE portfolios SET average_price = 'garbage'")

        with pytest.raises(CorruptRecordError):
            ledger.apply_fill(filled_trade("buy", 1, "100", user_id=user.user_id))
        assert ledger.get_account(user.user_id).cash == Decimal("100000.00")
        assert store.get_account(user.user_id).cash == Decimal("100000.00")

    def test_write_failure_rolls_back_fill(self, db_path, user, filled_trade):
        class LockedAccountStore(SQLiteStore):
            def _write_account(self, conn, account):
                raise sqlite3.OperationalError("database is locked")

        locked = LockedAccountStore(db_path)
        ledger = PortfolioLedger(locked)
        ledger.load_user(user.user_id)

        with pytest.raises(PersistenceError, match="AAPL"):
            ledger.apply_fill(filled_trade("buy", 10, "100", user_id=user.user_id))
        assert ledger.get_position(user.user_id, "AAPL") is None
        assert ledger.get_account(user.user_id).cash == Decimal("100000.00")
        # 포지션 쓰기도 함께 롤백
        assert locked.get_position(user.user_id, "AAPL") is None
        assert locked.get_account(user.user_id).cash == Decimal("100000.00")
        locked.close()
