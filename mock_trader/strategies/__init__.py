"""
전략 모듈.

[ 전략 등록 방식 ]
    @register("전략이름") 데코레이터를 붙이면 STRATEGY_REGISTRY에 자동 등록.
    config.yaml의 strategies 목록에서 이름만으로 전략을 생성할 수 있다.

[ 기본 전략 집합 ]
    sma_cross(20, 50) + rsi_momentum(14, 30, 70) + mean_reversion(20, 2.0)
    → DEFAULT_STRATEGY_SET

[ 새 전략 추가 방법 ]
    1. 이 디렉토리에 새 .py 파일 생성
    2. core/trading_strategy.py::Strategy 계약(analyze, min_history)을 구현
    3. @register("이름") 데코레이터 추가
    4. config.yaml의 strategies 목록에 이름 추가
"""

from importlib import import_module
from pathlib import Path
from typing import Any

from mock_trader.core.trading_strategy import Strategy

# 전략 이름 → 전략 클래스 매핑
STRATEGY_REGISTRY: dict[str, type] = {}

DEFAULT_STRATEGY_SET: list[dict[str, Any]] = [
    {"name": "sma_cross", "params": {"short_period": 20, "long_period": 50}},
    {"name": "rsi_momentum", "params": {"period": 14, "oversold": 30, "overbought": 70}},
    {"name": "mean_reversion", "params": {"period": 20, "num_std": 2.0}},
]


def register(name: str):
    """전략 클래스를 STRATEGY_REGISTRY에 등록하는 데코레이터."""
    def decorator(cls: type):
        STRATEGY_REGISTRY[name] = cls
        return cls
    return decorator


def create_strategy(name: str, params: dict[str, Any] | None = None) -> Strategy:
    """이름으로 전략 인스턴스를 생성.

    Args:
        name: 등록된 전략 이름 (예: "sma_cross", "rsi_momentum")
        params: 전략 파라미터 (각 전략의 DEFAULT_PARAMS를 오버라이드)

    Raises:
        ValueError: 등록되지 않은 전략 이름
    """
    if name not in STRATEGY_REGISTRY:
        available = ", ".join(sorted(STRATEGY_REGISTRY.keys()))
        raise ValueError(f"알 수 없는 전략: '{name}'. 사용 가능: {available}")
    return STRATEGY_REGISTRY[name](params=params)


def create_strategy_set(entries: list[dict[str, Any]] | None = None) -> list[Strategy]:
    """[{name, params}, ...] 목록으로 전략 집합 생성. 생략 시 기본 집합."""
    entries = DEFAULT_STRATEGY_SET if entries is None else entries
    return [create_strategy(s["name"], s.get("params")) for s in entries]


def list_strategies() -> list[str]:
    """등록된 전략 이름 목록 반환."""
    return sorted(STRATEGY_REGISTRY.keys())


def _auto_discover():
    """이 디렉토리의 모든 전략 모듈을 자동 임포트하여 @register가 실행되게 한다."""
    strategies_dir = Path(__file__).parent
    for py_file in strategies_dir.glob("*.py"):
        if py_file.name.startswith("_"):
            continue
        module_name = f"mock_trader.strategies.{py_file.stem}"
        import_module(module_name)


# 모듈 로드 시 자동 탐색
_auto_discover()
