"""Event model and channel for the Redwood dashboard."""

from events.channel import EventQueue, EventSender
from events.clock import Clock
from events.types import (
    Event,
    FlightUpdate,
    InitDone,
    InitError,
    InitEvent,
    InitProgress,
    Input,
    Tick,
)

__all__ = [
    "Clock",
    "Event",
    "EventQueue",
    "EventSender",
    "FlightUpdate",
    "InitDone",
    "InitError",
    "InitEvent",
    "InitProgress",
    "Input",
    "Tick",
]
