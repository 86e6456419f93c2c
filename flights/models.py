"""Flight records and distance helpers.

A :class:`FlightRecord` is built from one OpenSky state vector and may be
enriched afterwards with registry data from the local aircraft store.
Records are immutable so they can cross thread boundaries inside events.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Any, Iterable, Optional, Sequence

EARTH_RADIUS_KM = 6371.0

# OpenSky state vector indices
# https://openskynetwork.github.io/opensky-api/rest.html#response
IDX_ICAO24 = 0
IDX_CALLSIGN = 1
IDX_ORIGIN_COUNTRY = 2
IDX_LONGITUDE = 5
IDX_LATITUDE = 6
IDX_BARO_ALTITUDE = 7
IDX_ON_GROUND = 8
IDX_VELOCITY = 9
IDX_TRUE_TRACK = 10
IDX_VERTICAL_RATE = 11
STATE_VECTOR_MIN_LEN = 12


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points in kilometres.

    Uses the haversine formula with a mean Earth radius of 6371 km.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # rounding can push a a hair past 1.0 for antipodal points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


@dataclass(frozen=True)
class FlightRecord:
    """
    One aircraft's live state plus optional registry data.

    Telemetry is in SI units as reported by OpenSky (metres, m/s, degrees).
    Enrichment fields stay None unless the local store had a match.
    """

    icao24: str
    callsign: str = ""
    origin_country: str = "Unknown"
    latitude: float = 0.0
    longitude: float = 0.0
    altitude_m: float = 0.0
    velocity_ms: float = 0.0
    true_track: float = 0.0
    vertical_rate_ms: float = 0.0
    on_ground: bool = False
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    operator: Optional[str] = None
    operator_callsign: Optional[str] = None
    registration: Optional[str] = None
    type_code: Optional[str] = None

    @property
    def is_enriched(self) -> bool:
        return any(
            value is not None
            for value in (
                self.manufacturer,
                self.model,
                self.operator,
                self.operator_callsign,
                self.registration,
                self.type_code,
            )
        )

    @property
    def display_id(self) -> str:
        """Callsign if the transponder sent one, else registration."""
        if self.callsign and self.callsign != "N/A":
            return self.callsign
        return self.registration or self.icao24 or "Unknown"

    @property
    def speed_kmh(self) -> float:
        return self.velocity_ms * 3.6

    def distance_from(self, lat: float, lon: float) -> float:
        """Great-circle distance in km from an observer at ``(lat, lon)``."""
        return haversine_km(lat, lon, self.latitude, self.longitude)

    def with_enrichment(self, **fields: Optional[str]) -> "FlightRecord":
        return replace(self, **fields)

    @classmethod
    def from_state_vector(cls, data: Sequence[Any]) -> Optional["FlightRecord"]:
        """
        Build a record from an OpenSky state vector.

        Returns None when the vector is too short, has no identity or has no
        position; any other missing value falls back to a default.
        """
        if not isinstance(data, (list, tuple)) or len(data) < STATE_VECTOR_MIN_LEN:
            return None
        icao24 = _as_str(data[IDX_ICAO24])
        latitude = _as_float(data[IDX_LATITUDE])
        longitude = _as_float(data[IDX_LONGITUDE])
        if not icao24 or latitude is None or longitude is None:
            return None
        return cls(
            icao24=icao24.lower(),
            callsign=_as_str(data[IDX_CALLSIGN]) or "N/A",
            origin_country=_as_str(data[IDX_ORIGIN_COUNTRY]) or "Unknown",
            latitude=latitude,
            longitude=longitude,
            altitude_m=_as_float(data[IDX_BARO_ALTITUDE]) or 0.0,
            velocity_ms=_as_float(data[IDX_VELOCITY]) or 0.0,
            true_track=_as_float(data[IDX_TRUE_TRACK]) or 0.0,
            vertical_rate_ms=_as_float(data[IDX_VERTICAL_RATE]) or 0.0,
            on_ground=bool(data[IDX_ON_GROUND]),
        )


def sort_by_distance(
    records: Iterable[FlightRecord], lat: float, lon: float
) -> list[FlightRecord]:
    """Nearest first. Equal distances keep their input order."""
    return sorted(records, key=lambda record: record.distance_from(lat, lon))


def _as_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)
