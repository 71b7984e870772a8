from __future__ import annotations

import threading
from concurrent.futures import Future
from typing import Callable, Generic, Optional, Tuple, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """
    Caches one in-flight-or-settled computation.

    The first caller runs the computation; callers arriving while it runs, and
    every caller after it settles, wait on the same `Future` and see the same
    result or exception. Failures stay cached until `reset()` or a forced call.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._future: Optional[Future] = None

    def claim(self, force: bool = False) -> Tuple[Future, bool]:
        """
        Return the shared future and whether the caller must compute it.

        The boolean is True for exactly one caller per flight: that caller is
        responsible for passing the outcome to `settle()`.
        """
        with self._lock:
            if self._future is not None and not force:
                return self._future, False
            future: Future = Future()
            self._future = future
            return future, True

    def run(self, fn: Callable[[], T], force: bool = False) -> Tuple[T, bool]:
        """Compute or join. Returns (result, joined) where joined means the flight was shared."""
        future, owner = self.claim(force=force)
        if owner:
            self.settle(future, fn)
        return future.result(), not owner

    @staticmethod
    def settle(future: Future, fn: Callable[[], T]) -> None:
        try:
            result = fn()
        except BaseException as exc:
            future.set_exception(exc)
            if not isinstance(exc, Exception):
                raise
        else:
            future.set_result(result)

    def peek(self) -> Optional[Future]:
        with self._lock:
            return self._future

    def reset(self) -> None:
        with self._lock:
            self._future = None

    @property
    def settled(self) -> bool:
        future = self.peek()
        return future is not None and future.done()
