"""
=============================================================================
모의 자동매매 시스템 (Mock Trader)
=============================================================================

[ 시스템 전체 구조 ]

    run_trader.py (진입점)
         │
         ├── utils/config.py        ← config.yaml 설정 로드
         ├── utils/logger.py        ← 로깅
         │
         ├── strategies/            ← 매매 전략 (시그널 생성)
         │     ├── sma_cross_strategy.py
         │     ├── rsi_strategy.py
         │     └── mean_reversion_strategy.py
         │
         └── engine/trading_engine.py   ← 주기적 매매 루프
               │
               ├── data/market_data.py    ← 사이클 단위 시세 캐시
               ├── engine/decision.py     ← 시그널 집계 + 수량 결정
               ├── data/portfolio.py      ← 포지션/현금 원장 (단일 writer)
               ├── data/sqlite_store.py   ← 영속화 (Decimal 문자열)
               └── data/stats.py          ← 계좌 성과 지표


[ 핵심 추상 클래스 (core/) - 외부 협력자와의 경계 ]

    core/data_provider.py    → brokers/mock_broker.py::MockDataProvider
                             → data/clickhouse_provider.py::ClickHouseDataProvider
                             → data/yahoo_provider.py::YahooDataProvider

    core/broker_api.py       → brokers/mock_broker.py::MockBroker
                               (QuoteProvider + ExecutionClient)

    core/trading_strategy.py → strategies/ 의 세 전략 (Strategy 프로토콜)


[ 데이터 흐름 ]

    1. 틱마다 MarketDataManager 캐시를 비우고 현재가 조회
    2. 원장(PortfolioLedger)이 현재가로 평가손익 재계산
    3. 종목별로 봉 데이터 → 지표(core/indicators.py) → 전략별 Signal
    4. decide()가 시그널을 집계해 TradeIntent 생성 (최대 1건)
    5. ExecutionClient가 체결 → FILLED 거래만 원장에 반영
"""

__version__ = "0.1.0"
