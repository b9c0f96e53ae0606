"""
Timing utilities for the guidance loop: a monotonic clock and an elapsed-time timer.
"""

from __future__ import annotations

import time


def monotonic_time() -> float:
    """Return monotonic time in seconds."""
    return time.monotonic()


class ElapsedTimer:
    """
    Measures time since the last reset on a monotonic clock.
    The loop uses it to feed the PID channels the real elapsed time rather than
    the nominal tick period.
    """

    def __init__(self, clock=monotonic_time):
        self.clock = clock
        self._start = self.clock()

    def reset(self) -> None:
        self._start = self.clock()

    def elapsed(self) -> float:
        """Seconds since the last reset."""
        return self.clock() - self._start
