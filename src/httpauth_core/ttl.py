"""Time-bounded memoization of expensive zero-argument producers.

Header values, client certificates and OAuth2 client secrets are all
produced by functions that touch the filesystem, the network or a PEM
parser. `TTLValue` runs such a producer at most once per window (one second
by default) and hands the cached result to every other caller.

Example:
    ```python
    header = TTLValue(lambda: "Bearer " + read_token())
    header.get()  # runs the producer
    header.get()  # cached until a second has passed
    ```
"""

import time
from collections.abc import Callable
from threading import Lock
from typing import Generic, TypeVar

T = TypeVar("T")

DEFAULT_TTL = 1.0


class TTLValue(Generic[T]):
    """Cache the result of a producer for a fixed time window.

    The lock is held while the producer runs, so concurrent callers that
    arrive during a refresh wait for it and return its result instead of
    starting their own. If the producer raises, the exception propagates to
    the caller that triggered the refresh and the next `get()` retries.

    Args:
        producer: Zero-argument function computing the value.
        ttl: Seconds a computed value stays fresh (default: 1.0).
        clock: Monotonic clock returning seconds (default: time.monotonic).
    """

    def __init__(
        self,
        producer: Callable[[], T],
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._producer = producer
        self._ttl = ttl
        self._clock = clock
        self._lock = Lock()
        self._value: T | None = None
        self._deadline: float | None = None

    @property
    def deadline(self) -> float | None:
        """Clock value after which the next `get()` refreshes, or None before the first refresh."""
        return self._deadline

    def get(self) -> T:
        """Return the cached value, refreshing it if the deadline has passed."""
        with self._lock:
            if self._deadline is None or self._clock() > self._deadline:
                self._value = self._producer()
                self._deadline = self._clock() + self._ttl
            return self._value  # type: ignore[return-value]

    def invalidate(self) -> None:
        """Force the next `get()` to run the producer."""
        with self._lock:
            self._deadline = None
