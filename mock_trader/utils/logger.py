"""
로깅 모듈.

[ 역할 ]
    파일 + 콘솔 로거를 설정. 사이클 진행, 주문/체결, 에러 등을 기록.
    각 모듈은 logging.getLogger("mock_trader.<영역>")을 쓰므로
    루트 "mock_trader" 로거에 핸들러를 달면 전체가 함께 기록된다.

[ 로그 파일 ]
    매매 루프는 날짜를 넘겨 계속 돌기 때문에 자정마다 파일을 교체한다.
        {log_dir}/{name}.log            ← 오늘 로그
        {log_dir}/{name}.log.YYYYMMDD   ← 지난 날짜 (backup_days 만큼 보관)

[ 외부 라이브러리 로그 ]
    yfinance / urllib3 / clickhouse_connect 의 DEBUG 출력은
    사이클 로그를 덮어버리므로 WARNING 이상만 남긴다.

[ 호출하는 곳 ]
    - run_trader.py에서 setup_logger() 호출
    - utils/config.py::Config.validate()에서 LOG_LEVELS로 log_level 검증
"""

import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from mock_trader.core.errors import ConfigError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

QUIET_LOGGERS = ("yfinance", "urllib3", "clickhouse_connect")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def resolve_level(level: str) -> int:
    """'info' 같은 레벨 이름 → logging 상수.

    Raises:
        ConfigError: LOG_LEVELS에 없는 이름
    """
    name = str(level).upper()
    if name not in LOG_LEVELS:
        raise ConfigError(f"알 수 없는 로그 레벨: {level} ({', '.join(LOG_LEVELS)} 중 하나)")
    return getattr(logging, name)


def setup_logger(
    name: str = "mock_trader",
    level: str = "INFO",
    log_dir: str | None = "logs",
    console: bool = True,
    backup_days: int = 30,
) -> logging.Logger:
    """로거 설정. 자정 교체 파일 핸들러 + 콘솔 핸들러 등록.

    다시 호출하면 기존 핸들러를 닫고 새 설정으로 교체한다.
    log_dir이 None이면 파일 기록 생략.
    """
    logger = logging.getLogger(name)
    logger.setLevel(resolve_level(level))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_dir is not None:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            log_path / f"{name}.log",
            when="midnight",
            backupCount=backup_days,
            encoding="utf-8",
        )
        file_handler.suffix = "%Y%m%d"
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
