"""Fixed-rate tick source for the dashboard."""

import threading
from typing import Optional

from common.logging_setup import get_logger
from events.channel import EventSender
from events.types import Tick

logger = get_logger(__name__)


class Clock:
    """
    Emits :class:`Tick` events at a fixed interval.

    Runs a background thread that sleeps on a stop event between ticks, so
    :meth:`stop` takes effect immediately.
    """

    def __init__(self, sender: EventSender, interval_ms: int = 150):
        """
        Initialize the clock.

        Args:
            sender: Event queue handle the ticks are sent to
            interval_ms: Tick interval in milliseconds
        """
        self.interval_ms = interval_ms
        self._sender = sender
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self.ticks_sent = 0

    @property
    def interval_s(self) -> float:
        return self.interval_ms / 1000.0

    def start(self) -> None:
        """Start the clock thread."""
        if self._running:
            return

        self._running = True
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, daemon=True, name="ui-clock")
        self._thread.start()
        logger.debug(f"Clock started (interval={self.interval_ms}ms)")

    def stop(self) -> None:
        """Stop the clock thread and drop its sender."""
        self._running = False
        self._stop_event.set()

        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None

        self._sender.close()
        logger.debug(f"Clock stopped after {self.ticks_sent} ticks")

    def _run(self) -> None:
        """Clock thread main loop."""
        interval_s = self.interval_s

        while self._running:
            # Wait for interval or stop signal
            if self._stop_event.wait(timeout=interval_s):
                break

            if not self._sender.send(Tick()):
                logger.debug("Tick dropped, event queue closed")
                break
            self.ticks_sent += 1
