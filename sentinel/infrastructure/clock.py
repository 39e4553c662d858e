"""
Источник времени (unix-секунды, как block.timestamp).
"""

import time


class SystemClock:
    """Текущее время системы."""

    def __call__(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Управляемые часы для тестов и симуляций.

        clock = ManualClock(1_700_000_000)
        clock.advance(7 * 24 * 3600)
    """

    def __init__(self, start: int = 1_700_000_000):
        self.now = int(start)

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("время не идёт назад")
        self.now += int(seconds)
        return self.now
