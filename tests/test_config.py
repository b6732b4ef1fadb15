"""Tests for configuration loading and validation."""

import json
from decimal import Decimal

import pytest

from mock_trader.core.errors import ConfigError
from mock_trader.utils.config import Config


class TestDefaults:
    def test_defaults_are_valid(self):
        config = Config()
        config.validate()
        assert config.trading.username == "demo_trader"
        assert config.trading.initial_balance == 100_000
        assert len(config.trading.watchlist) == 8
        assert [s["name"] for s in config.strategies] == ["sma_cross", "rsi_momentum", "mean_reversion"]
        assert config.market_data.source == "mock"

    def test_risk_config_conversion(self):
        risk = Config().risk.to_risk_config()
        assert risk.max_position_value == Decimal("10000")
        assert risk.risk_fraction == Decimal("0.02")
        assert risk.min_concurring_signals == 2


class TestLoading:
    def test_partial_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "trading:\n"
            "  watchlist: [AAPL, MSFT]\n"
            "  refresh_interval: 1\n"
            "  unknown_key: ignored\n"
            "risk:\n"
            "  risk_fraction: 0.05\n"
            "strategies:\n"
            "  - name: sma_cross\n"
            "    short_period: 10\n"
            "    long_period: 30\n"
            "  - rsi_momentum\n"
            "log_level: DEBUG\n",
            encoding="utf-8",
        )
        config = Config.from_yaml(path)
        assert config.trading.watchlist == ["AAPL", "MSFT"]
        assert config.trading.refresh_interval == 1
        assert config.trading.initial_balance == 100_000
        assert config.risk.risk_fraction == 0.05
        assert config.strategies == [
            {"name": "sma_cross", "params": {"short_period": 10, "long_period": 30}},
            {"name": "rsi_momentum", "params": {}},
        ]
        assert config.log_level == "DEBUG"
        config.validate()

    def test_empty_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert Config.from_yaml(path).trading.username == "demo_trader"

    def test_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"market_data": {"source": "yahoo"}}), encoding="utf-8")
        assert Config.from_json(path).market_data.source == "yahoo"

    def test_save_and_reload(self, tmp_path):
        config = Config()
        config.trading.watchlist = ["TSLA"]
        config.broker.commission_rate = 0.0005
        path = tmp_path / "out" / "config.yaml"
        config.save_yaml(path)

        reloaded = Config.from_yaml(path)
        assert reloaded.trading.watchlist == ["TSLA"]
        assert reloaded.broker.commission_rate == 0.0005
        assert reloaded.strategies == config.strategies


class TestValidation:
    @pytest.mark.parametrize("mutate, message", [
        (lambda c: setattr(c.trading, "initial_balance", 0), "initial_balance"),
        (lambda c: setattr(c.trading, "refresh_interval", 0), "refresh_interval"),
        (lambda c: setattr(c.trading, "watchlist", []), "watchlist"),
        (lambda c: setattr(c.risk, "risk_fraction", 1.5), "risk_fraction"),
        (lambda c: setattr(c.risk, "min_concurring_signals", 0), "min_concurring_signals"),
        (lambda c: setattr(c.broker, "rejection_rate", 2), "rejection_rate"),
        (lambda c: setattr(c.market_data, "source", "bloomberg"), "market_data.source"),
        (lambda c: setattr(c, "log_level", "VERBOSE"), "log_level"),
        (lambda c: c.strategies.append({"name": "magic", "params": {}}), "magic"),
    ])
    def test_invalid_values(self, mutate, message):
        config = Config()
        mutate(config)
        with pytest.raises(ConfigError, match=message):
            config.validate()

    def test_collects_all_errors(self):
        config = Config()
        config.trading.initial_balance = -1
        config.trading.watchlist = []
        with pytest.raises(ConfigError) as excinfo:
            config.validate()
        assert "initial_balance" in str(excinfo.value)
        assert "watchlist" in str(excinfo.value)
