"""Bounded background producer with a deadline on every pull."""

import logging
import queue
import threading
from typing import Generic, TypeVar

from ..exceptions import ListTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackgroundStream(Generic[T]):
    """Runs ``_produce()`` on a daemon thread feeding a bounded queue.

    Subclasses implement ``_produce`` (calling ``_emit`` for each element)
    and ``_error_item`` / ``_ended_item`` to build the in-band error and
    end-of-stream elements. ``next()`` waits at most ``timeout`` seconds.
    The producer blocks on a full queue until the consumer pulls again; an
    abandoned producer ends with the process (the thread is a daemon).
    """

    timeout_message = "Timed out waiting for the next item"

    def __init__(self, maxsize: int, timeout: float, name: str = "pybos-stream"):
        self.timeout = timeout
        self._queue: "queue.Queue[T]" = queue.Queue(maxsize=max(1, maxsize))
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> "BackgroundStream[T]":
        self._thread.start()
        return self

    def _run(self) -> None:
        try:
            self._produce()
        except Exception as e:
            logger.debug("%s: producer failed", self._thread.name, exc_info=True)
            self._emit(self._error_item(e))
            self._emit(self._ended_item())

    def _produce(self) -> None:
        raise NotImplementedError

    def _error_item(self, error: BaseException) -> T:
        raise NotImplementedError

    def _ended_item(self) -> T:
        raise NotImplementedError

    def _emit(self, item: T) -> None:
        """Put one element, blocking while the queue is full."""
        self._queue.put(item)

    def next(self) -> T:
        """Return the next element.

        Raises:
            ListTimeoutError: If nothing arrives within ``timeout`` seconds
        """
        try:
            return self._queue.get(timeout=self.timeout)
        except queue.Empty:
            raise ListTimeoutError(self.timeout_message) from None

