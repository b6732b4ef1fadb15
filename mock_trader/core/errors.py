"""
예외 클래스 정의.

[ 역할 ]
    시스템 전반에서 사용하는 예외 계층.
    지표 데이터 부족, 정족수 미달 등 "정상적인 무거래"는 예외가 아니라
    빈 결과 / None 으로 표현하므로 여기에 포함하지 않는다.

[ 호출하는 곳 ]
    - data/portfolio.py: 원장 갱신 실패 (미체결 거래, 수량 초과, 손상 데이터, 기록 실패)
    - data/sqlite_store.py: 저장된 Decimal 파싱 실패
    - brokers/mock_broker.py: 체결 중 오류
    - utils/config.py: 설정 검증 실패
"""


class TraderError(Exception):
    """모든 예외의 베이스."""
    pass


class ConfigError(TraderError):
    """설정 값 오류."""
    pass


class DataProviderError(TraderError):
    """시세/봉 데이터 조회 실패."""
    pass


class ExecutionError(TraderError):
    """주문 체결 중 오류 (네트워크, 타임아웃 등)."""
    pass


class LedgerError(TraderError):
    """원장 갱신 실패. 갱신은 전혀 반영되지 않은 상태로 남는다."""
    pass


class TradeNotFilledError(LedgerError):
    """FILLED 상태가 아닌 거래를 원장에 반영하려 함."""
    pass


class InsufficientPositionError(LedgerError):
    """보유 수량보다 많은 반대 방향 체결 (포지션 부호 반전 불가)."""
    pass


class CorruptRecordError(LedgerError):
    """영속화된 Decimal 필드를 파싱할 수 없음 (데이터 손상)."""
    pass


class PersistenceError(LedgerError):
    """원장 갱신을 store에 기록하지 못함. 메모리 상태는 갱신 전 그대로."""
    pass
