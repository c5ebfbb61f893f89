"""
Time sources for the targeting pipeline.

Every component reads time through a single injected clock so that the
detector cooldown, lock duration and staleness checks share one time base.
All values are milliseconds.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic millisecond time source."""

    def now_ms(self) -> float:
        ...


class MonotonicClock:
    """Wall clock backed by time.monotonic()."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0


class ManualClock:
    """
    Clock advanced explicitly by the caller.

    Used by tests and offline replays to step through lock expiry and scan
    cooldowns without real delays.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now_ms = start_ms

    def now_ms(self) -> float:
        return self._now_ms

    def advance(self, ms: float) -> float:
        """
        Move the clock forward.

        Args:
            ms: Milliseconds to advance. Must not be negative.

        Returns:
            The new current time in milliseconds.
        """
        if ms < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now_ms += ms
        return self._now_ms

    def set(self, now_ms: float) -> None:
        """Jump to an absolute time not earlier than the current one."""
        if now_ms < self._now_ms:
            raise ValueError("ManualClock cannot move backwards")
        self._now_ms = now_ms
