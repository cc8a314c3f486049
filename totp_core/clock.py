"""
clock.py — time sources for TOTP.

A clock is any object with a `now() -> int` method returning whole
seconds since the Unix epoch. TOTP takes one explicitly; there is no
module-level default.
"""

import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int: ...


class SystemClock:
    """Wall clock, truncated to whole seconds."""

    def now(self) -> int:
        return int(time.time())


class FrozenClock:
    """
    Clock stuck at a fixed timestamp.

    Used by tests and by `totp-cli at`. advance() moves it forward
    (or backward with a negative value).
    """

    def __init__(self, timestamp: int = 0):
        self.timestamp = timestamp

    def now(self) -> int:
        return self.timestamp

    def advance(self, seconds: int) -> None:
        self.timestamp += seconds
