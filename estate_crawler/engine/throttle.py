"""Minimum-gap pacing between consecutive requests to one portal."""

from __future__ import annotations

import time
from typing import Callable


class Throttle:
    """Enforce a minimum wall-clock interval between consecutive ``wait`` calls.

    The first call never sleeps. Later calls sleep for whatever is left of
    ``min_interval`` since the previous call returned.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must be non-negative")
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None

    def wait(self) -> float:
        """Block until the interval has elapsed and return the seconds slept."""

        now = self._clock()
        slept = 0.0
        if self._last_call is not None:
            remaining = self.min_interval - (now - self._last_call)
            if remaining > 0:
                self._sleep(remaining)
                slept = remaining
        self._last_call = self._clock()
        return slept

    def reset(self) -> None:
        self._last_call = None


__all__ = ["Throttle"]
