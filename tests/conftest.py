"""공용 fixture."""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from mock_trader.core.models import Account, Bar, OrderSide, Trade


def _make_bars(closes, start=datetime(2024, 1, 1)):
    bars = []
    for i, close in enumerate(closes):
        price = Decimal(str(close))
        bars.append(Bar(
            timestamp=start + timedelta(days=i),
            open=price,
            high=price,
            low=price,
            close=price,
            volume=1000,
        ))
    return bars


@pytest.fixture
def make_bars():
    """종가 목록 → 시가=고가=저가=종가인 일봉 리스트."""
    return _make_bars


@pytest.fixture
def account():
    return Account(user_id=1, username="tester", cash=Decimal("10000"))


@pytest.fixture
def filled_trade():
    """체결 완료된 Trade 생성 함수."""
    def factory(side, quantity, price, commission="0", symbol="AAPL", user_id=1):
        trade = Trade(
            user_id=user_id,
            symbol=symbol,
            side=side if isinstance(side, OrderSide) else OrderSide(side),
            quantity=quantity,
            price=Decimal(str(price)),
            strategy="test",
        )
        trade.mark_filled(Decimal(str(price)), Decimal(str(commission)))
        return trade
    return factory
