"""
Millisecond clock shared by the store and the lobby services.
"""

import time


class MonotonicMillisClock:
    """
    Wall-clock milliseconds that never repeat or go backwards within a process.

    Two joins in the same millisecond still get distinct, ordered ``joinedAt``
    values.
    """

    def __init__(self, time_fn=time.time):
        self._time_fn = time_fn
        self._last = 0

    def now_ms(self) -> int:
        now = int(self._time_fn() * 1000)
        if now <= self._last:
            now = self._last + 1
        self._last = now
        return now
