"""
In-flight callback registry for request coalescing.

Concurrent requests that share a cache key register their continuation here.
Only the first registrant for a key triggers a network call; when it
completes, every registered continuation receives the same outcome and the
entry is removed.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CallbackCacheStatus(Enum):
    FIRST_CALLBACK_ADDED = "first_callback_added"
    ADDED_TO_EXISTING_IN_FLIGHT = "added_to_existing_in_flight"


class CallbackCacheDesyncError(RuntimeError):
    """Raised when a key is drained without any registered callbacks.

    This is a programming error (an operation completed for a key it never
    registered, or completed twice), not a backend failure.
    """


@dataclass
class PendingCallback(Generic[T]):
    key: str
    future: Future = field(default_factory=Future)

    def resolve(self, result: T) -> None:
        """Deliver ``result`` unless the caller already cancelled its future."""
        if self.future.set_running_or_notify_cancel():
            self.future.set_result(result)

    def reject(self, error: BaseException) -> None:
        if self.future.set_running_or_notify_cancel():
            self.future.set_exception(error)


class RequestCoalescer(Generic[T]):
    """Key → ordered list of pending callbacks, guarded by one lock."""

    def __init__(self, name: str = "requests"):
        self.name = name
        self._lock = threading.Lock()
        self._callbacks: dict[str, list[PendingCallback[T]]] = {}

    def add(self, callback: PendingCallback[T]) -> CallbackCacheStatus:
        """Register ``callback`` under its key.

        Returns ``FIRST_CALLBACK_ADDED`` only for the caller that must start
        the request.
        """
        with self._lock:
            pending = self._callbacks.setdefault(callback.key, [])
            status = (
                CallbackCacheStatus.ADDED_TO_EXISTING_IN_FLIGHT
                if pending
                else CallbackCacheStatus.FIRST_CALLBACK_ADDED
            )
            pending.append(callback)
            waiting = len(pending)

        if status is CallbackCacheStatus.ADDED_TO_EXISTING_IN_FLIGHT:
            logger.debug(
                "Coalescing %s request for key '%s' (%d waiting).", self.name, callback.key, waiting
            )
        return status

    def drain(self, key: str) -> list[PendingCallback[T]]:
        """Atomically remove and return every callback registered for ``key``."""
        with self._lock:
            callbacks = self._callbacks.pop(key, None)
        if not callbacks:
            raise CallbackCacheDesyncError(
                f"No in-flight {self.name} callbacks registered for key '{key}'."
            )
        return callbacks

    def perform_on_all_and_remove(self, key: str, fn: Callable[[PendingCallback[T]], None]) -> int:
        """Drain ``key`` and apply ``fn`` to each callback outside the lock."""
        callbacks = self.drain(key)
        for callback in callbacks:
            try:
                fn(callback)
            except Exception:
                logger.exception("Delivering %s result for key '%s' failed.", self.name, key)
        return len(callbacks)

    def resolve(self, key: str, result: T) -> int:
        return self.perform_on_all_and_remove(key, lambda callback: callback.resolve(result))

    def reject(self, key: str, error: BaseException) -> int:
        return self.perform_on_all_and_remove(key, lambda callback: callback.reject(error))

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._callbacks

    @property
    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._callbacks)
