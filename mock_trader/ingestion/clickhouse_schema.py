"""
ClickHouse 연결 관리 및 봉 데이터 스키마 정의
"""
import logging

import clickhouse_connect
from clickhouse_connect.driver import Client

logger = logging.getLogger("mock_trader.clickhouse")

OHLCV_TABLE = "stock_ohlcv"


def get_client(
    host: str = "localhost",
    port: int = 8123,
    database: str = "default",
    user: str = "default",
    password: str = "password",
) -> Client:
    """
    ClickHouse 클라이언트 연결 생성

    Args:
        host: ClickHouse 호스트
        port: HTTP 포트 (기본값: 8123)
        database: 데이터베이스 이름
        user: 사용자 이름
        password: 비밀번호

    Returns:
        ClickHouse 클라이언트 객체
    """
    return clickhouse_connect.get_client(
        host=host,
        port=port,
        database=database,
        username=user,
        password=password,
    )


def initialize_schema(client: Client) -> None:
    """
    봉 데이터 테이블 생성 (이미 존재하면 무시)

    Args:
        client: ClickHouse 클라이언트
    """
    client.command(f"""
    CREATE TABLE IF NOT EXISTS {OHLCV_TABLE} (
        ticker String,
        date Date,
        open Float64,
        high Float64,
        low Float64,
        close Float64,
        adjusted_close Float64,
        volume UInt64,
        source String DEFAULT 'yahoo',
        ingestion_time DateTime DEFAULT now()
    )
    ENGINE = MergeTree()
    PARTITION BY toYYYYMM(date)
    ORDER BY (ticker, date)
    SETTINGS index_granularity = 8192
    """)
    logger.info(f"{OHLCV_TABLE} 테이블 확인 완료")


def verify_connection(client: Client) -> bool:
    """
    ClickHouse 연결 검증

    Returns:
        연결 성공 시 True
    """
    try:
        return client.command("SELECT 1") == 1
    except Exception as e:
        logger.error(f"ClickHouse 연결 실패: {e}")
        return False
