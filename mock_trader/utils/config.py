"""
설정 관리 모듈.

[ 역할 ]
    config.yaml (또는 .json) 파일을 파싱하여 Config 객체로 변환.
    매매 루프, 리스크, 전략 집합, 모의 브로커, 데이터 소스, 로깅 설정을 통합 관리.

[ 설정 파일 구조 (config.yaml) ]
    trading:          → TradingConfig (계좌, 감시 종목, 루프 주기)
    risk:             → RiskSettings (포지션 크기 / 정족수)
    strategies:       → [{name, params}, ...] 전략 집합
    broker:           → BrokerConfig (모의 체결 파라미터)
    market_data:      → MarketDataConfig (mock / clickhouse / yahoo)
    database:         → DatabaseConfig (SQLite 경로)
    log_level:        → "INFO" / "DEBUG"
    log_dir:          → 로그 디렉토리 경로

[ 호출하는 곳 ]
    - run_trader.py에서 Config.from_yaml()로 로드 후 validate()
    - 엔진 생성 시 config.trading / config.risk.to_risk_config() 사용
"""

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from mock_trader.core.errors import ConfigError
from mock_trader.engine.decision import RiskConfig
from mock_trader.utils.logger import LOG_LEVELS

DEFAULT_WATCHLIST = ["AAPL", "GOOGL", "MSFT", "TSLA", "AMZN", "NVDA", "META", "NFLX"]

MARKET_DATA_SOURCES = ("mock", "clickhouse", "yahoo")


def _default_strategies() -> list[dict[str, Any]]:
    from mock_trader.strategies import DEFAULT_STRATEGY_SET
    return [{"name": s["name"], "params": dict(s["params"])} for s in DEFAULT_STRATEGY_SET]


@dataclass
class TradingConfig:
    """매매 루프 설정. config.yaml의 trading 섹션에 대응."""
    username: str = "demo_trader"
    email: str = "demo@example.com"
    initial_balance: float = 100_000
    watchlist: list[str] = field(default_factory=lambda: list(DEFAULT_WATCHLIST))
    refresh_interval: float = 5.0  # 초
    trading_enabled: bool = True
    history_days: int = 100
    min_history_bars: int = 50
    enforce_market_hours: bool = False


@dataclass
class RiskSettings:
    """리스크 설정. config.yaml의 risk 섹션에 대응."""
    max_position_value: float = 10_000
    risk_fraction: float = 0.02
    min_concurring_signals: int = 2

    def to_risk_config(self) -> RiskConfig:
        return RiskConfig(
            max_position_value=self.max_position_value,
            risk_fraction=self.risk_fraction,
            min_concurring_signals=self.min_concurring_signals,
        )


@dataclass
class BrokerConfig:
    """모의 브로커 설정. config.yaml의 broker 섹션에 대응."""
    commission_rate: float = 0.0
    slippage_rate: float = 0.001   # 0.1%
    rejection_rate: float = 0.01   # 1%
    seed: int | None = None
    base_prices: dict[str, float] = field(default_factory=dict)


@dataclass
class MarketDataConfig:
    """데이터 소스 설정. config.yaml의 market_data 섹션에 대응."""
    source: str = "mock"
    seed: int = 42
    host: str = "localhost"
    port: int = 8123
    database: str = "default"
    user: str = "default"
    password: str = "password"
    use_adjusted_close: bool = True


@dataclass
class DatabaseConfig:
    """거래 기록 DB 설정. config.yaml의 database 섹션에 대응."""
    path: str = "data/trades.db"


def _section(cls: type, data: dict[str, Any] | None):
    """알 수 없는 키는 무시하고 dataclass 생성."""
    data = data or {}
    return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class Config:
    """전체 설정. from_yaml() 또는 from_json()으로 파일에서 로드."""
    trading: TradingConfig = field(default_factory=TradingConfig)
    risk: RiskSettings = field(default_factory=RiskSettings)
    strategies: list[dict[str, Any]] = field(default_factory=_default_strategies)
    broker: BrokerConfig = field(default_factory=BrokerConfig)
    market_data: MarketDataConfig = field(default_factory=MarketDataConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    log_level: str = "INFO"
    log_dir: str = "logs"

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """YAML 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls._from_dict(data or {})

    @classmethod
    def from_json(cls, path: str | Path) -> "Config":
        """JSON 파일에서 설정 로드."""
        path = Path(path)
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """딕셔너리에서 Config 생성."""
        # strategies 항목: {name, params} 또는 name 외 나머지를 params로
        strategies = []
        for item in data.get("strategies") or []:
            if isinstance(item, str):
                strategies.append({"name": item, "params": {}})
                continue
            if "params" in item:
                params = dict(item["params"] or {})
            else:
                params = {k: v for k, v in item.items() if k != "name"}
            strategies.append({"name": item.get("name", ""), "params": params})

        return cls(
            trading=_section(TradingConfig, data.get("trading")),
            risk=_section(RiskSettings, data.get("risk")),
            strategies=strategies or _default_strategies(),
            broker=_section(BrokerConfig, data.get("broker")),
            market_data=_section(MarketDataConfig, data.get("market_data")),
            database=_section(DatabaseConfig, data.get("database")),
            log_level=data.get("log_level", "INFO"),
            log_dir=data.get("log_dir", "logs"),
        )

    def validate(self) -> None:
        """설정값 검증.

        Raises:
            ConfigError: 잘못된 값이 하나라도 있으면 (모든 문제를 모아 한 번에)
        """
        from mock_trader.strategies import list_strategies

        errors = []
        if self.trading.initial_balance <= 0:
            errors.append("trading.initial_balance는 0보다 커야 함")
        if self.trading.refresh_interval <= 0:
            errors.append("trading.refresh_interval은 0보다 커야 함")
        if not self.trading.watchlist:
            errors.append("trading.watchlist가 비어 있음")
        if self.trading.history_days <= 0:
            errors.append("trading.history_days는 0보다 커야 함")
        if self.trading.min_history_bars < 0:
            errors.append("trading.min_history_bars는 0 이상이어야 함")
        if self.risk.max_position_value <= 0:
            errors.append("risk.max_position_value는 0보다 커야 함")
        if not 0 < self.risk.risk_fraction <= 1:
            errors.append("risk.risk_fraction은 (0, 1] 범위여야 함")
        if self.risk.min_concurring_signals < 1:
            errors.append("risk.min_concurring_signals는 1 이상이어야 함")
        if not 0 <= self.broker.rejection_rate <= 1:
            errors.append("broker.rejection_rate는 [0, 1] 범위여야 함")
        if self.broker.commission_rate < 0 or self.broker.slippage_rate < 0:
            errors.append("broker 수수료율/슬리피지는 음수일 수 없음")
        if self.market_data.source not in MARKET_DATA_SOURCES:
            errors.append(
                f"market_data.source는 {', '.join(MARKET_DATA_SOURCES)} 중 하나: {self.market_data.source}"
            )

        if str(self.log_level).upper() not in LOG_LEVELS:
            errors.append(f"log_level은 {', '.join(LOG_LEVELS)} 중 하나: {self.log_level}")

        known = set(list_strategies())
        for entry in self.strategies:
            if entry["name"] not in known:
                errors.append(f"알 수 없는 전략: {entry['name']}")
        if not self.strategies:
            errors.append("strategies가 비어 있음")

        if errors:
            raise ConfigError("; ".join(errors))

    def to_dict(self) -> dict[str, Any]:
        """딕셔너리로 변환."""
        return asdict(self)

    def save_yaml(self, path: str | Path) -> None:
        """YAML 파일로 저장."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(self.to_dict(), f, allow_unicode=True, default_flow_style=False)
