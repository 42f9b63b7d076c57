"""Cooperative cancellation for long-running sync runs."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class CancelToken:
    """Cancelled explicitly via ``cancel()`` or implicitly once *timeout* elapses.

    The engine polls ``cancelled`` between documents, so an in-flight
    remote write always finishes before the run stops.
    """

    def __init__(
        self,
        timeout: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._event = threading.Event()
        self._clock = clock
        self._deadline = clock() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def timed_out(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.timed_out
