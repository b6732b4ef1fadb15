"""
모의 자동매매 실행 스크립트 (시스템 진입점).

[ 사용법 ]
    # 기본 실행 (config.yaml 설정, 모의 시장)
    python run_trader.py

    # 한 사이클만 실행
    python run_trader.py --once

    # 사이클 수 / 주기 지정
    python run_trader.py --cycles 10 --interval 1

    # 전략 파라미터 오버라이드 (전략이름.키=값)
    python run_trader.py -p sma_cross.short_period=10 -p rsi_momentum.oversold=25

    # 데이터 소스 지정 (현재가는 최근 종가 사용, 체결은 모의 브로커)
    python run_trader.py --source clickhouse
    python run_trader.py --source yahoo

    # 계좌 통계만 출력
    python run_trader.py --stats

    # 등록된 전략 목록 확인
    python run_trader.py --list

[ 종료 ]
    Ctrl+C (SIGINT) 또는 SIGTERM → 진행 중인 종목 처리 후 정지
"""

import argparse
import signal
import sys
from pathlib import Path
from typing import Any

from mock_trader.brokers.mock_broker import MockBroker, MockDataProvider
from mock_trader.core.broker_api import QuoteProvider
from mock_trader.core.data_provider import DataProvider
from mock_trader.core.errors import ConfigError, TraderError
from mock_trader.core.models import Account, to_decimal
from mock_trader.data.market_data import LastCloseQuoteProvider, MarketDataManager
from mock_trader.data.portfolio import PortfolioLedger
from mock_trader.data.sqlite_store import SQLiteStore
from mock_trader.data.stats import calculate_stats
from mock_trader.engine.trading_engine import TradingEngine
from mock_trader.strategies import create_strategy, create_strategy_set, list_strategies
from mock_trader.utils.config import Config
from mock_trader.utils.logger import setup_logger


def parse_param(param_str: str) -> tuple[str, object]:
    """'key=value' 문자열을 파싱하여 (key, value) 반환. 숫자면 자동 변환."""
    key, _, value = param_str.partition("=")
    key = key.strip()
    value = value.strip()

    # 숫자 자동 변환
    try:
        if "." in value:
            return key, float(value)
        return key, int(value)
    except ValueError:
        # bool 변환
        if value.lower() in ("true", "yes"):
            return key, True
        if value.lower() in ("false", "no"):
            return key, False
        return key, value


def apply_param_overrides(strategies: list[dict[str, Any]], overrides: list[str]) -> list[dict[str, Any]]:
    """'전략이름.키=값' 목록을 strategies 설정에 반영한 새 목록 반환.

    Raises:
        ConfigError: 형식 오류 또는 설정에 없는 전략 이름
    """
    result = [{"name": s["name"], "params": dict(s.get("params") or {})} for s in strategies]
    for p in overrides:
        dotted, value = parse_param(p)
        name, _, key = dotted.partition(".")
        if not key:
            raise ConfigError(f"파라미터 형식은 전략이름.키=값: {p}")
        targets = [s for s in result if s["name"] == name]
        if not targets:
            raise ConfigError(f"설정된 전략 집합에 없는 전략: {name}")
        for s in targets:
            s["params"][key] = value
    return result


def build_data_provider(config: Config) -> DataProvider:
    """market_data.source에 맞는 DataProvider 생성."""
    md = config.market_data
    if md.source == "clickhouse":
        from mock_trader.data.clickhouse_provider import ClickHouseDataProvider
        from mock_trader.ingestion.clickhouse_schema import initialize_schema, verify_connection

        provider = ClickHouseDataProvider(
            host=md.host,
            port=md.port,
            database=md.database,
            user=md.user,
            password=md.password,
            use_adjusted_close=md.use_adjusted_close,
        )
        if not verify_connection(provider.client):
            raise ConfigError(f"ClickHouse 연결 실패: {md.host}:{md.port}")
        initialize_schema(provider.client)
        return provider

    if md.source == "yahoo":
        from mock_trader.data.yahoo_provider import YahooDataProvider
        return YahooDataProvider(
            tickers=config.trading.watchlist,
            use_adjusted_close=md.use_adjusted_close,
        )

    return MockDataProvider(base_prices=config.broker.base_prices or None, seed=md.seed)


def get_or_create_account(store: SQLiteStore, config: Config) -> Account:
    """설정의 username 계좌를 조회하고 없으면 initial_balance로 생성."""
    account = store.find_account(config.trading.username)
    if account is not None:
        return account
    account = store.create_account(
        config.trading.username,
        to_decimal(config.trading.initial_balance),
        email=config.trading.email,
    )
    print(f"계좌 생성: {account.username} (id={account.user_id}), 초기 자금 {account.cash:,.2f}")
    return account


def print_stats(store: SQLiteStore, account: Account, equity_curve: list, config: Config) -> None:
    trades = store.get_trades_by_user(account.user_id, limit=10_000)
    stats = calculate_stats(trades, equity_curve, to_decimal(config.trading.initial_balance))
    print(stats.summary())


def main():
    parser = argparse.ArgumentParser(description="모의 자동매매 실행")
    parser.add_argument("--config", type=str, default="config.yaml", help="설정 파일 경로")
    parser.add_argument("--source", type=str, default=None, choices=["mock", "clickhouse", "yahoo"], help="데이터 소스")
    parser.add_argument("--cycles", type=int, default=None, help="실행할 사이클 수 (생략 시 정지 요청까지)")
    parser.add_argument("--interval", type=float, default=None, help="사이클 주기 (초)")
    parser.add_argument("--once", action="store_true", help="한 사이클만 실행")
    parser.add_argument("-p", "--param", action="append", default=[], help="전략 파라미터 오버라이드 (예: -p sma_cross.short_period=10)")
    parser.add_argument("--stats", action="store_true", help="계좌 통계만 출력")
    parser.add_argument("--list", action="store_true", help="등록된 전략 목록 출력")
    args = parser.parse_args()

    # 전략 목록 출력
    if args.list:
        print("등록된 전략:")
        for name in list_strategies():
            print(f"  - {name}: {create_strategy(name).description}")
        return

    # 설정 로드
    config_path = Path(args.config)
    if config_path.exists():
        config = Config.from_yaml(config_path)
    else:
        print(f"설정 파일 없음: {config_path}, 기본값 사용")
        config = Config()

    if args.source:
        config.market_data.source = args.source
    if args.interval is not None:
        config.trading.refresh_interval = args.interval

    try:
        config.strategies = apply_param_overrides(config.strategies, args.param)
        config.validate()
        strategies = create_strategy_set(config.strategies)
    except (ConfigError, ValueError) as e:
        print(f"설정 오류: {e}")
        sys.exit(2)

    logger = setup_logger(level=config.log_level, log_dir=config.log_dir)

    store = SQLiteStore(config.database.path)
    store.initialize()
    try:
        account = get_or_create_account(store, config)
        ledger = PortfolioLedger(store)
        ledger.load_user(account.user_id)

        broker = MockBroker(
            base_prices=config.broker.base_prices or None,
            commission_rate=config.broker.commission_rate,
            slippage_rate=config.broker.slippage_rate,
            rejection_rate=config.broker.rejection_rate,
            seed=config.broker.seed,
        )
        try:
            provider = build_data_provider(config)
        except TraderError as e:
            print(f"데이터 소스 오류: {e}")
            sys.exit(1)

        # 모의 시장은 브로커가 현재가도 만들고, 실데이터 소스는 최근 종가를 현재가로 쓴다
        quotes: QuoteProvider = broker if config.market_data.source == "mock" else LastCloseQuoteProvider(provider)

        if args.stats:
            prices = quotes.get_current_prices(config.trading.watchlist)
            ledger.mark_to_market(account.user_id, prices)
            print_stats(store, account, [ledger.total_value(account.user_id)], config)
            return

        if config.market_data.source != "mock":
            # 체결가를 실데이터 현재가에 맞춘다
            for symbol, price in quotes.get_current_prices(config.trading.watchlist).items():
                broker.set_price(symbol, price)

        engine = TradingEngine(
            user_id=account.user_id,
            strategies=strategies,
            market_data=MarketDataManager(provider),
            quotes=quotes,
            executor=broker,
            ledger=ledger,
            watchlist=config.trading.watchlist,
            risk_config=config.risk.to_risk_config(),
            store=store,
            refresh_interval=config.trading.refresh_interval,
            history_days=config.trading.history_days,
            min_history_bars=config.trading.min_history_bars,
            trading_enabled=config.trading.trading_enabled,
            enforce_market_hours=config.trading.enforce_market_hours,
        )

        def handle_signal(signum, frame):
            logger.info(f"종료 신호 수신 ({signal.Signals(signum).name}), 정지 요청")
            engine.stop()

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        print(f"\n계좌: {account.username}, 전략: {', '.join(s.name for s in strategies)}")
        print(f"감시 종목: {', '.join(config.trading.watchlist)}")

        max_cycles = 1 if args.once else args.cycles
        engine.run(max_cycles=max_cycles)

        print()
        print_stats(store, account, engine.equity_curve, config)
    finally:
        store.close()


if __name__ == "__main__":
    main()
