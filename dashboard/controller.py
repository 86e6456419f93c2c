"""The owner loop: one event in, one state transition, one render."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Protocol

from common.logging_setup import get_logger
from dashboard.state import ApplicationState
from events.channel import EventQueue
from events.types import Event, FlightUpdate, InitDone, InitError, InitProgress, Input, Tick

logger = get_logger(__name__)


class Stoppable(Protocol):
    def stop(self) -> None: ...


class ControlLoop:
    """
    Pulls events from the queue and applies them to the state one at a time.

    The loop is the only consumer of ``events`` and the only writer of
    ``state``. It ends when the quit flag is set or every producer has gone
    away, then signals and stops the producers it was given.
    """

    def __init__(
        self,
        state: ApplicationState,
        events: EventQueue[Event],
        render: Callable[[ApplicationState], None],
        stop_event: threading.Event | None = None,
        producers: Iterable[Stoppable] = (),
    ) -> None:
        self.state = state
        self.events = events
        self.render = render
        self.stop_event = stop_event or threading.Event()
        self.producers = list(producers)
        self.events_handled = 0

    def dispatch(self, event: Event) -> None:
        match event:
            case Tick():
                self.state.on_tick()
            case Input(key=key):
                self.state.handle_key(key)
            case FlightUpdate():
                self.state.apply_flight_update(event)
            case InitProgress() | InitDone() | InitError():
                self.state.apply_init_event(event)
            case _:
                logger.warning(f"Ignoring unknown event {event!r}")
                return
        self.events_handled += 1

    def run(self) -> None:
        """Run until quit or end of stream, then shut the producers down."""
        try:
            self.render(self.state)
            while not self.state.should_quit:
                event = self.events.receive()
                if event is None:
                    logger.info("Event stream ended")
                    break
                self.dispatch(event)
                self.render(self.state)
        finally:
            self.shutdown()

    def shutdown(self) -> None:
        self.stop_event.set()
        for producer in self.producers:
            try:
                producer.stop()
            except Exception as e:
                logger.error(f"Failed to stop {type(producer).__name__}: {e}")
        self.events.close()
        logger.info(f"Control loop stopped after {self.events_handled} events")
