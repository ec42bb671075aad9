"""
Clocks and nonce generation.

Venues reject replayed or non-monotonic nonces and signed requests whose
timestamp drifts too far from server time. NonceGenerator guarantees
strictly increasing values within a process; OffsetClock applies the
server-time offset an adapter measured once at construction.
"""

import logging
import threading
import time
from collections.abc import Callable
from typing import Literal

from src.exchange.protocols.venue import ClockProtocol

logger = logging.getLogger(__name__)


class SystemClock:
    """Wall clock satisfying ClockProtocol."""

    def now_ms(self) -> int:
        """Milliseconds since the epoch."""
        return time.time_ns() // 1_000_000

    def now_ns(self) -> int:
        """Nanoseconds since the epoch."""
        return time.time_ns()


class OffsetClock:
    """Clock shifted by a fixed offset to track venue server time."""

    def __init__(self, base: ClockProtocol, offset_ms: int = 0) -> None:
        self.base = base
        self.offset_ms = offset_ms

    def now_ms(self) -> int:
        """Venue-aligned milliseconds since the epoch."""
        return self.base.now_ms() + self.offset_ms

    def now_ns(self) -> int:
        """Venue-aligned nanoseconds since the epoch."""
        return self.base.now_ns() + self.offset_ms * 1_000_000

    @classmethod
    def synchronized(
        cls,
        base: ClockProtocol,
        fetch_server_ms: Callable[[], int],
        venue: str = "",
    ) -> "OffsetClock":
        """
        Measure the server-time offset once.

        The local reading is taken halfway through the round trip so
        network latency does not bias the offset.

        Args:
            base: Local clock
            fetch_server_ms: Callable returning venue time in milliseconds
            venue: Venue name for logging

        Returns:
            Clock carrying the measured offset

        """
        before = base.now_ms()
        server_ms = fetch_server_ms()
        after = base.now_ms()
        offset = server_ms - (before + after) // 2
        logger.info(f"Synchronized {venue or 'venue'} clock, offset {offset} ms")
        return cls(base, offset)


class NonceGenerator:
    """
    Strictly increasing nonce source.

    Uses the clock reading when it has advanced and the previous nonce
    plus one otherwise, so two calls in the same millisecond (or a clock
    stepping backwards) still yield increasing values. Thread-safe.
    """

    def __init__(
        self, clock: ClockProtocol, unit: Literal["ms", "ns"] = "ms"
    ) -> None:
        self.clock = clock
        self.unit = unit
        self._last = 0
        self._lock = threading.Lock()

    def next(self) -> int:
        """Return the next nonce."""
        reading = self.clock.now_ms() if self.unit == "ms" else self.clock.now_ns()
        with self._lock:
            self._last = max(reading, self._last + 1)
            return self._last
