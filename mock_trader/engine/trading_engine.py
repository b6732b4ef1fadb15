"""
자동매매 루프 엔진 모듈.

[ 역할 ]
    일정 주기(refresh_interval)로 감시 종목을 한 바퀴 돌며
    봉 조회 → 전략별 시그널 → 매매 판단 → 주문 실행 → 원장 반영을 수행.
    시스템의 핵심 실행 루프를 담당.

[ 실행 흐름 ]
    run() 호출 시 정지 요청이 올 때까지 반복:
        run_cycle():
            1. 장 운영 여부 확인 (enforce_market_hours일 때만, 닫혀 있으면 사이클 건너뜀)
            2. market_data.begin_cycle()로 봉 캐시 무효화
            3. 현재가 일괄 조회 → ledger.mark_to_market() (거래가 없어도 매 사이클)
            4. 종목별 process_symbol() (순차, 종목 사이마다 정지 요청 확인)
               → strategy.analyze() × N → decide() → execute_intent()
            5. 총 자산을 equity_curve에 기록, 포트폴리오 요약 로그

[ 오류 처리 ]
    종목 하나의 실패(데이터 조회, 원장 반영 등)는 로그만 남기고 다음 종목으로 진행.
    체결 협력자가 ExecutionError를 던지면 거래는 CANCELLED, 거부하면 REJECTED.
    어느 경우든 원장은 건드리지 않으며 재시도하지 않는다.

[ 의존성 ]
    - core/trading_strategy.py::Strategy (전략 계약)
    - engine/decision.py::decide() (매매 판단)
    - data/market_data.py::MarketDataManager (사이클 캐시)
    - core/broker_api.py::QuoteProvider, ExecutionClient (협력자)
    - data/portfolio.py::PortfolioLedger (포지션/현금)

[ 호출하는 곳 ]
    - run_trader.py (진입점)에서 생성 및 실행
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence

from mock_trader.core.broker_api import ExecutionClient, QuoteProvider
from mock_trader.core.errors import ExecutionError, LedgerError, TraderError
from mock_trader.core.models import Signal, Trade, TradeIntent, ZERO
from mock_trader.core.trading_strategy import Strategy
from mock_trader.data.market_data import MarketDataManager
from mock_trader.data.portfolio import PortfolioLedger
from mock_trader.engine.decision import RiskConfig, decide

logger = logging.getLogger("mock_trader.engine")


@dataclass
class CycleReport:
    """run_cycle() 한 번의 결과."""
    cycle: int
    started_at: datetime
    skipped: bool = False
    stopped: bool = False           # 정지 요청으로 중간에 끝남
    symbols_processed: int = 0
    signals: list[Signal] = field(default_factory=list)
    intents: list[TradeIntent] = field(default_factory=list)
    trades: list[Trade] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)  # symbol → 오류 메시지
    total_value: Decimal = ZERO


class TradingEngine:
    """자동매매 엔진. run()으로 루프 실행, run_cycle()로 한 틱만 실행."""

    def __init__(
        self,
        user_id: int,
        strategies: Sequence[Strategy],
        market_data: MarketDataManager,
        quotes: QuoteProvider,
        executor: ExecutionClient,
        ledger: PortfolioLedger,
        watchlist: Sequence[str],
        risk_config: Optional[RiskConfig] = None,
        store: Any = None,
        refresh_interval: float = 5.0,
        history_days: int = 100,
        min_history_bars: int = 50,
        trading_enabled: bool = True,
        enforce_market_hours: bool = False,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            user_id: 매매할 계좌 (ledger에 등록되어 있어야 함)
            strategies: 전략 집합 (strategies.create_strategy_set() 결과)
            store: 거래/시그널 기록용 (data/sqlite_store.py::SQLiteStore). None이면 기록 안 함
            trading_enabled: False면 판단까지만 하고 주문은 내지 않음
            clock: 현재 시각 함수 (테스트에서 고정 시각 주입)
        """
        self.user_id = user_id
        self.strategies = list(strategies)
        self.market_data = market_data
        self.quotes = quotes
        self.executor = executor
        self.ledger = ledger
        self.watchlist = list(watchlist)
        self.risk_config = risk_config or RiskConfig()
        self.store = store
        self.refresh_interval = refresh_interval
        self.history_days = history_days
        self.min_history_bars = min_history_bars
        self.trading_enabled = trading_enabled
        self.enforce_market_hours = enforce_market_hours
        self._clock = clock

        self.stop_event = threading.Event()
        self.equity_curve: list[Decimal] = []  # 사이클별 총 자산 (통계용)
        self.cycles_run = 0

    # ─── 루프 ──────────────────────────────────────────────────────────

    def stop(self) -> None:
        """정지 요청. 진행 중인 종목 처리가 끝난 뒤 멈춘다."""
        self.stop_event.set()

    def run(self, max_cycles: Optional[int] = None) -> list[CycleReport]:
        """정지 요청 또는 max_cycles 도달까지 사이클 반복."""
        reports = []
        logger.info(
            f"매매 루프 시작: 종목 {len(self.watchlist)}개, 전략 {len(self.strategies)}개, "
            f"주기 {self.refresh_interval}초"
        )
        while not self.stop_event.is_set():
            reports.append(self.run_cycle())
            if max_cycles is not None and len(reports) >= max_cycles:
                break
            if self.stop_event.wait(self.refresh_interval):
                break
        logger.info(f"매매 루프 종료: {len(reports)} 사이클")
        return reports

    def run_cycle(self) -> CycleReport:
        """한 틱 실행. 종목 사이마다 정지 요청을 확인한다."""
        now = self._clock()
        self.cycles_run += 1
        report = CycleReport(cycle=self.cycles_run, started_at=now)

        if self.enforce_market_hours and not self.quotes.is_market_open(now):
            logger.info(f"[사이클 {report.cycle}] 장 마감 시간, 건너뜀")
            report.skipped = True
            return report

        self.market_data.begin_cycle()
        logger.info(f"[사이클 {report.cycle}] 시작")

        prices = self.quotes.get_current_prices(self.watchlist)
        self.ledger.mark_to_market(self.user_id, prices)

        for symbol in self.watchlist:
            if self.stop_event.is_set():
                logger.info(f"[사이클 {report.cycle}] 정지 요청, {symbol}부터 생략")
                report.stopped = True
                break
            if symbol not in prices:
                logger.warning(f"{symbol}: 현재가 없음, 건너뜀")
                continue
            try:
                self.process_symbol(symbol, prices[symbol], report)
            except TraderError as e:
                logger.error(f"{symbol} 처리 실패: {e}")
                report.errors[symbol] = str(e)
            report.symbols_processed += 1

        report.total_value = self.ledger.total_value(self.user_id)
        self.equity_curve.append(report.total_value)
        self._log_summary(report)
        return report

    # ─── 종목 처리 ─────────────────────────────────────────────────────

    def collect_signals(self, symbol: str, bars, current_price: Decimal) -> list[Signal]:
        """전략별 analyze() 결과 수집. 전략 하나의 오류는 나머지에 영향 없음."""
        signals = []
        for strategy in self.strategies:
            try:
                signal = strategy.analyze(symbol, bars, current_price)
            except Exception as e:
                logger.error(f"{symbol}: {strategy.name} 분석 실패: {e}")
                continue
            if signal is None:
                continue
            signals.append(signal)
            logger.debug(
                f"{symbol}: {strategy.name} → {signal.signal_type.value} (강도 {signal.strength:.2f})"
            )
            if self.store is not None:
                self.store.save_signal(signal)
        return signals

    def process_symbol(
        self,
        symbol: str,
        current_price: Decimal,
        report: Optional[CycleReport] = None,
    ) -> Optional[Trade]:
        """종목 하나 처리. 주문을 냈으면 Trade, 아니면 None."""
        bars = self.market_data.get_history(symbol, self._clock().date(), self.history_days)
        if len(bars) < self.min_history_bars:
            logger.debug(f"{symbol}: 봉 부족 ({len(bars)} < {self.min_history_bars}), 건너뜀")
            return None

        signals = self.collect_signals(symbol, bars, current_price)
        if report is not None:
            report.signals.extend(signals)

        intent = decide(
            signals,
            self.ledger.get_position(self.user_id, symbol),
            self.ledger.get_account(self.user_id),
            self.risk_config,
            current_price,
        )
        if intent is None:
            return None

        logger.info(
            f"{symbol}: 주문 의도 {intent.side.value} {intent.quantity}주 @ {intent.price} "
            f"(시그널 {len(signals)}개)"
        )
        if report is not None:
            report.intents.append(intent)
        if not self.trading_enabled:
            return None

        trade = self.execute_intent(intent)
        if report is not None:
            report.trades.append(trade)
        return trade

    def execute_intent(self, intent: TradeIntent) -> Trade:
        """주문 의도를 실행하고 결과에 따라 거래 상태와 원장을 갱신.

        Raises:
            LedgerError: 체결은 되었으나 원장 반영 실패 (거래 기록은 남김)
        """
        trade = Trade.from_intent(intent, self.user_id)
        if self.store is not None:
            self.store.save_trade(trade)

        ledger_error: Optional[LedgerError] = None
        try:
            result = self.executor.execute(intent)
        except ExecutionError as e:
            trade.cancel(str(e))
            logger.error(f"{intent.symbol}: 주문 실행 오류, 취소 처리: {e}")
        else:
            trade.broker_order_id = result.order_id
            if result.filled:
                trade.mark_filled(result.fill_price, result.commission)
                try:
                    self.ledger.apply_fill(trade)
                except LedgerError as e:
                    trade.notes = f"원장 반영 실패: {e}"
                    ledger_error = e
            else:
                trade.reject(result.message)
                logger.warning(f"{intent.symbol}: 주문 거부: {result.message}")

        if self.store is not None:
            self.store.update_trade(trade)
        if ledger_error is not None:
            raise ledger_error
        return trade

    # ─── 요약 ──────────────────────────────────────────────────────────

    def _log_summary(self, report: CycleReport) -> None:
        summary = self.ledger.summary(self.user_id)
        logger.info(
            f"[사이클 {report.cycle}] 종료: 처리 {report.symbols_processed}종목, "
            f"시그널 {len(report.signals)}개, 주문 {len(report.trades)}건 | "
            f"현금 {summary['cash']:,.2f}, 평가 {summary['positions_value']:,.2f}, "
            f"총 {summary['total_value']:,.2f}, 평가손익 {summary['unrealized_pl']:,.2f}"
        )
