"""
Serial execution of backend operations.

A single dedicated worker thread pulls operations off an unbounded FIFO queue
and runs them one at a time, so requests reach the transport in exactly the
order they were submitted.
"""

from __future__ import annotations

import logging
import queue
import threading
from typing import Protocol

from .config import worker_name

logger = logging.getLogger(__name__)


class Runnable(Protocol):
    def run(self) -> None:
        ...


_STOP = object()


class OperationQueue:
    """Single-worker executor (max concurrency = 1)."""

    def __init__(self, *, name: str | None = None):
        self.name = name or worker_name()
        self._queue: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._worker: threading.Thread | None = None
        self._closed = False

    def submit(self, operation: Runnable) -> None:
        """Enqueue ``operation``; it runs after everything submitted before it."""
        with self._lock:
            if self._closed:
                raise RuntimeError(f"Operation queue '{self.name}' has been shut down.")
            self._ensure_worker()
            self._queue.put(operation)

    def join(self) -> None:
        """Block until every submitted operation has finished running."""
        self._queue.join()

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work; queued operations still run before the worker exits."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            worker = self._worker
            if worker is not None:
                self._queue.put(_STOP)

        if wait and worker is not None and worker is not threading.current_thread():
            worker.join()

    @property
    def is_closed(self) -> bool:
        return self._closed

    def _ensure_worker(self) -> None:
        if self._worker is None:
            self._worker = threading.Thread(target=self._drain_loop, name=self.name, daemon=True)
            self._worker.start()

    def _drain_loop(self) -> None:
        while True:
            operation = self._queue.get()
            try:
                if operation is _STOP:
                    return
                operation.run()
            except Exception:
                logger.exception("Operation %r failed in queue '%s'.", operation, self.name)
            finally:
                self._queue.task_done()
