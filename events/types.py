"""Event taxonomy for the dashboard control loop.

Every producer (clock, key reader, cache builder, data poller) talks to the
control loop only through these immutable values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Tuple, Union

if TYPE_CHECKING:  # pragma: no cover
    from flights.models import FlightRecord


@dataclass(frozen=True)
class Tick:
    """Fixed-interval UI refresh signal."""


@dataclass(frozen=True)
class Input:
    """A single key press, normalised to a key name such as ``"up"`` or ``"q"``."""

    key: str


@dataclass(frozen=True)
class FlightUpdate:
    """
    Result of one poll cycle.

    Attributes:
        records: Flights in the area; empty when the fetch failed
        enrichment_hits: Number of records found in the local store
        timestamp: ``time.monotonic()`` when the update was produced
        success: Whether the remote fetch succeeded
    """

    records: Tuple["FlightRecord", ...] = field(default_factory=tuple)
    enrichment_hits: int = 0
    timestamp: float = 0.0
    success: bool = False


@dataclass(frozen=True)
class InitProgress:
    """Cache build progress from 0.0 to 1.0."""

    fraction: float


@dataclass(frozen=True)
class InitDone:
    """Cache build finished and the store is in place."""


@dataclass(frozen=True)
class InitError:
    """Cache build failed; no further init events follow."""

    message: str


InitEvent = Union[InitProgress, InitDone, InitError]
Event = Union[Tick, Input, FlightUpdate, InitProgress, InitDone, InitError]
