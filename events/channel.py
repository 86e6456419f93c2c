"""Many-producer, single-consumer event channel.

Producers hold an :class:`EventSender` each. Sending never blocks and never
raises: once the sender or the queue is closed, events are dropped. The
single consumer calls :meth:`EventQueue.receive`, which returns ``None``
once every producer has closed its sender (or the queue was closed) and
all pending events have been drained.
"""

from __future__ import annotations

import queue
import threading
from typing import Generic, Optional, TypeVar

from common.logging_setup import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Marks end of stream inside the underlying queue
_END = object()


class EventQueue(Generic[T]):
    """
    Unbounded ordered channel.

    Events from one sender are received in the order they were sent. No
    order is guaranteed between senders.
    """

    def __init__(self, name: str = "events") -> None:
        self.name = name
        self._queue: "queue.SimpleQueue[object]" = queue.SimpleQueue()
        self._lock = threading.Lock()
        self._producers = 0
        self._closed = False
        self._ended = False

    def sender(self) -> "EventSender[T]":
        """Register a producer and return its send handle."""
        with self._lock:
            active = not self._closed
            if active:
                self._producers += 1
        if not active:
            logger.debug(f"Sender requested on closed queue '{self.name}'")
        return EventSender(self, active)

    def receive(self, timeout: Optional[float] = None) -> Optional[T]:
        """
        Wait for the next event.

        Args:
            timeout: Seconds to wait, or None to wait forever

        Returns:
            The next event, or None at end of stream

        Raises:
            queue.Empty: If ``timeout`` elapsed with nothing received
        """
        if self._ended:
            return None
        item = self._queue.get(timeout=timeout)
        return self._unwrap(item)

    def try_receive(self) -> Optional[T]:
        """Return the next event without waiting, or None if there is none."""
        if self._ended:
            return None
        try:
            item = self._queue.get_nowait()
        except queue.Empty:
            return None
        return self._unwrap(item)

    def close(self) -> None:
        """Stop accepting events. Events already queued can still be received."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._queue.put(_END)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def ended(self) -> bool:
        """True once the consumer has seen end of stream."""
        return self._ended

    @property
    def producer_count(self) -> int:
        with self._lock:
            return self._producers

    def _unwrap(self, item: object) -> Optional[T]:
        if item is _END:
            self._ended = True
            return None
        return item  # type: ignore[return-value]

    def _put(self, event: T) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._queue.put(event)
            return True

    def _release(self) -> None:
        with self._lock:
            self._producers -= 1
            if self._producers > 0 or self._closed:
                return
            self._closed = True
            self._queue.put(_END)
        logger.debug(f"All producers of '{self.name}' closed")


class EventSender(Generic[T]):
    """Send handle owned by one producer."""

    def __init__(self, channel: EventQueue[T], active: bool = True) -> None:
        self._channel = channel
        self._closed = not active

    def send(self, event: T) -> bool:
        """
        Queue an event without blocking.

        Returns:
            True if the event was queued, False if it was dropped
        """
        if self._closed:
            return False
        return self._channel._put(event)

    def close(self) -> None:
        """Drop this producer. Safe to call more than once, from any thread."""
        with self._channel._lock:
            if self._closed:
                return
            self._closed = True
        self._channel._release()

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "EventSender[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
