"""Tests for the portfolio ledger."""

from decimal import Decimal

import pytest

from mock_trader.core.errors import InsufficientPositionError, TradeNotFilledError
from mock_trader.core.models import OrderSide, Position, Trade
from mock_trader.data.portfolio import PortfolioLedger, revalue, update_position


@pytest.fixture
def ledger(account):
    ledger = PortfolioLedger()
    ledger.add_account(account)
    return ledger


class TestUpdatePosition:
    def test_open_from_flat(self):
        position, realized = update_position(Position(user_id=1, symbol="AAPL"), 10, Decimal("100"))
        assert position.quantity == 10
        assert position.avg_price == Decimal("100")
        assert realized == 0

    def test_volume_weighted_average(self):
        start = Position(user_id=1, symbol="AAPL", quantity=10, avg_price=Decimal("100"))
        position, _ = update_position(start, 30, Decimal("120"))
        assert position.quantity == 40
        assert position.avg_price == Decimal("115")

    def test_does_not_mutate_input(self):
        start = Position(user_id=1, symbol="AAPL", quantity=10, avg_price=Decimal("100"))
        update_position(start, -4, Decimal("110"))
        assert start.quantity == 10

    def test_partial_reduce_keeps_average(self):
        start = Position(user_id=1, symbol="AAPL", quantity=10, avg_price=Decimal("100"))
        position, realized = update_position(start, -4, Decimal("110"))
        assert position.quantity == 6
        assert position.avg_price == Decimal("100")
        assert realized == Decimal("40")

    def test_oversized_opposite_fill_rejected(self):
        start = Position(user_id=1, symbol="AAPL", quantity=5, avg_price=Decimal("100"))
        with pytest.raises(InsufficientPositionError):
            update_position(start, -6, Decimal("100"))


class TestRevalue:
    def test_idempotent(self):
        position = Position(user_id=1, symbol="AAPL", quantity=10, avg_price=Decimal("100"))
        once = revalue(position, Decimal("110"))
        twice = revalue(once, Decimal("110"))
        assert once.market_value == twice.market_value == Decimal("1100")
        assert once.unrealized_pl == twice.unrealized_pl == Decimal("100")

    def test_flat_position_is_zero(self):
        position = revalue(Position(user_id=1, symbol="AAPL"), Decimal("110"))
        assert position.market_value == 0
        assert position.unrealized_pl == 0


class TestApplyFill:
    def test_round_trip(self, ledger, filled_trade):
        ledger.apply_fill(filled_trade("buy", 10, "100"))
        position, account = ledger.apply_fill(filled_trade("buy", 10, "110"))
        assert position.quantity == 20
        assert position.avg_price == Decimal("105")
        assert account.cash == Decimal("7900")

        sell = filled_trade("sell", 20, "120", commission="1")
        position, account = ledger.apply_fill(sell)
        assert position.quantity == 0
        assert position.avg_price == 0
        assert account.cash == Decimal("10299")
        assert sell.realized_pl == Decimal("299")

    def test_buy_commission_reduces_cash(self, ledger, filled_trade):
        _, account = ledger.apply_fill(filled_trade("buy", 3, "0.1", commission="0.05"))
        assert account.cash == Decimal("9999.65")

    def test_pending_trade_rejected(self, ledger):
        trade = Trade(user_id=1, symbol="AAPL", side=OrderSide.BUY, quantity=10,
                      price=Decimal("100"), strategy="test")
        with pytest.raises(TradeNotFilledError):
            ledger.apply_fill(trade)
        assert ledger.get_account(1).cash == Decimal("10000")
        assert ledger.get_position(1, "AAPL") is None

    def test_rejected_trade_rejected(self, ledger):
        trade = Trade(user_id=1, symbol="AAPL", side=OrderSide.BUY, quantity=10,
                      price=Decimal("100"), strategy="test")
        trade.reject("no liquidity")
        with pytest.raises(TradeNotFilledError):
            ledger.apply_fill(trade)

    def test_oversell_leaves_state_untouched(self, ledger, filled_trade):
        ledger.apply_fill(filled_trade("buy", 5, "100"))
        with pytest.raises(InsufficientPositionError):
            ledger.apply_fill(filled_trade("sell", 10, "100"))
        assert ledger.get_position(1, "AAPL").quantity == 5
        assert ledger.get_account(1).cash == Decimal("9500")

    def test_sell_without_position(self, ledger, filled_trade):
        with pytest.raises(InsufficientPositionError):
            ledger.apply_fill(filled_trade("sell", 1, "100"))

    def test_store_failure_leaves_state_untouched(self, account, filled_trade):
        class FailingStore:
            def get_position(self, user_id, symbol):
                return None

            def commit_fill(self, trade, position, account):
                raise RuntimeError("disk full")

        ledger = PortfolioLedger(FailingStore())
        ledger.add_account(account)
        with pytest.raises(RuntimeError):
            ledger.apply_fill(filled_trade("buy", 10, "100"))
        assert ledger.get_account(1).cash == Decimal("10000")
        assert ledger.get_position(1, "AAPL") is None

    def test_returned_objects_are_copies(self, ledger, filled_trade):
        position, account = ledger.apply_fill(filled_trade("buy", 10, "100"))
        position.quantity = 999
        account.cash = Decimal("0")
        assert ledger.get_position(1, "AAPL").quantity == 10
        assert ledger.get_account(1).cash == Decimal("9000")


class TestMarkToMarket:
    def test_revalues_held_positions(self, ledger, filled_trade):
        ledger.apply_fill(filled_trade("buy", 10, "100"))
        ledger.mark_to_market(1, {"AAPL": Decimal("110")})
        ledger.mark_to_market(1, {"AAPL": Decimal("110")})
        position = ledger.get_position(1, "AAPL")
        assert position.market_value == Decimal("1100")
        assert position.unrealized_pl == Decimal("100")

    def test_missing_price_keeps_last_value(self, ledger, filled_trade):
        ledger.apply_fill(filled_trade("buy", 10, "100"))
        ledger.mark_to_market(1, {})
        assert ledger.get_position(1, "AAPL").market_value == Decimal("1000")

    def test_summary(self, ledger, filled_trade):
        ledger.apply_fill(filled_trade("buy", 10, "100"))
        ledger.mark_to_market(1, {"AAPL": Decimal("120")})
        summary = ledger.summary(1)
        assert summary["cash"] == Decimal("9000")
        assert summary["positions_value"] == Decimal("1200")
        assert summary["total_value"] == Decimal("10200")
        assert summary["unrealized_pl"] == Decimal("200")
        assert summary["num_positions"] == 1

    def test_closed_positions_hidden(self, ledger, filled_trade):
        ledger.apply_fill(filled_trade("buy", 10, "100"))
        ledger.apply_fill(filled_trade("sell", 10, "100"))
        assert ledger.get_positions(1) == []
        assert len(ledger.get_positions(1, include_closed=True)) == 1


class TestTradeModel:
    def test_profit_loss_buy(self, filled_trade):
        trade = filled_trade("buy", 10, "100", commission="1")
        assert trade.profit_loss(Decimal("105")) == Decimal("49")
        assert trade.profit_loss(Decimal("95")) == Decimal("-51")

    def test_profit_loss_sell(self, filled_trade):
        trade = filled_trade("sell", 10, "100", commission="1")
        assert trade.profit_loss(Decimal("95")) == Decimal("49")

    def test_unfilled_trade_has_no_profit_loss(self):
        trade = Trade(user_id=1, symbol="AAPL", side=OrderSide.BUY, quantity=10,
                      price=Decimal("100"), strategy="test")
        assert trade.profit_loss(Decimal("150")) == 0
        assert trade.total_cost() == 0

    def test_position_cost_basis(self):
        position = Position(user_id=1, symbol="AAPL", quantity=4, avg_price=Decimal("25.5"))
        assert position.is_open
        assert position.cost_basis == Decimal("102")
        assert not Position(user_id=1, symbol="AAPL").is_open
