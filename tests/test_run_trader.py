"""Tests for command-line helpers."""

from decimal import Decimal

import pytest

from mock_trader.core.errors import ConfigError
from mock_trader.data.sqlite_store import SQLiteStore
from mock_trader.utils.config import Config
from run_trader import apply_param_overrides, get_or_create_account, parse_param


class TestParseParam:
    @pytest.mark.parametrize("raw, expected", [
        ("period=14", ("period", 14)),
        ("num_std=2.5", ("num_std", 2.5)),
        ("enabled=yes", ("enabled", True)),
        ("enabled=false", ("enabled", False)),
        ("name = abc", ("name", "abc")),
    ])
    def test_conversion(self, raw, expected):
        assert parse_param(raw) == expected


class TestParamOverrides:
    def test_override_applied_to_copy(self):
        strategies = Config().strategies
        result = apply_param_overrides(strategies, ["sma_cross.short_period=10"])
        assert result[0]["params"]["short_period"] == 10
        assert strategies[0]["params"]["short_period"] == 20

    def test_missing_dot(self):
        with pytest.raises(ConfigError):
            apply_param_overrides(Config().strategies, ["short_period=10"])

    def test_strategy_not_in_set(self):
        with pytest.raises(ConfigError):
            apply_param_overrides(Config().strategies, ["macd.fast=5"])


class TestAccountBootstrap:
    def test_created_once(self, tmp_path):
        store = SQLiteStore(tmp_path / "trades.db")
        store.initialize()
        config = Config()
        first = get_or_create_account(store, config)
        second = get_or_create_account(store, config)
        assert first.user_id == second.user_id
        assert second.cash == Decimal("100000")
        store.close()
