import time
from typing import Callable, Optional


class Throttle:
    """Let an action through at most once per interval (leading edge)"""

    def __init__(self, interval: float, clock: Callable[[], float] = time.monotonic):
        self.interval = interval
        self._clock = clock
        self._last: Optional[float] = None

    def ready(self) -> bool:
        if self._last is None:
            return True
        return self._clock() - self._last >= self.interval

    def try_acquire(self) -> bool:
        """True and start a new interval if ready, False otherwise"""
        if not self.ready():
            return False
        self._last = self._clock()
        return True

    def reset(self) -> None:
        self._last = None
