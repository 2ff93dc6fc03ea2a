from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now(timezone.utc)


def fixed_clock(moment: datetime) -> Clock:
    """Часы, всегда возвращающие одно и то же время (для тестов границ акций)"""
    return lambda: moment
