"""
Cancellation tokens for pipeline runs.

One token per run. The token is bound into the context of every step, so a
backend can find it with current_token() and register a callback that stops
its in-flight call (e.g. kill a subprocess) when the run is abandoned.
"""

import logging
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator, List, Optional

from storywriter.utils.error_handling import CancellationFailure

logger = logging.getLogger(__name__)

_current_token: ContextVar[Optional["CancellationToken"]] = ContextVar("cancellation_token", default=None)


class CancellationToken:
    """Thread-safe, one-shot cancellation signal with callbacks."""

    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "pipeline cancelled") -> None:
        """Signal cancellation and run registered callbacks once."""
        with self._lock:
            if self._event.is_set():
                return
            self.reason = reason
            self._event.set()
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        for callback in callbacks:
            self._invoke(callback)

    def register(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback to run on cancellation.

        Runs the callback immediately when the token is already cancelled.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return lambda: self._unregister(callback)

        self._invoke(callback)
        return lambda: None

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise CancellationFailure(self.reason or "pipeline cancelled")

    def _unregister(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def _invoke(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.warning(f"[Cancellation] callback {callback!r} failed: {e}")


def current_token() -> Optional[CancellationToken]:
    """Token of the run executing in the current context, if any."""
    return _current_token.get()


@contextmanager
def bind_token(token: Optional[CancellationToken]) -> Iterator[Optional[CancellationToken]]:
    """Make token the current token for the duration of the block."""
    reset = _current_token.set(token)
    try:
        yield token
    finally:
        _current_token.reset(reset)
