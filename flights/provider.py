"""OpenSky Network client.

Fetches the state vectors of every aircraft inside a bounding box around
the observer. Every request carries a timeout; a request that times out is
reported like any other failed fetch.
"""

from __future__ import annotations

from typing import Optional

import requests

from common.logging_setup import get_logger
from flights.models import FlightRecord

logger = get_logger(__name__)

OPENSKY_URL = "https://opensky-network.org/api/states/all"
USER_AGENT: dict = {"User-Agent": "redwood-dashboard/0.1"}
# 1 degree of latitude is roughly 111 km
KM_PER_DEGREE = 111.0


class FlightProviderError(Exception):
    """Raised when the remote fetch fails for any reason."""
    pass


def bounding_box(lat: float, lon: float, radius_km: float) -> dict[str, float]:
    """Query parameters for a square box of +/- ``radius_km`` around a point."""
    padding = radius_km / KM_PER_DEGREE
    return {
        "lamin": lat - padding,
        "lomin": lon - padding,
        "lamax": lat + padding,
        "lomax": lon + padding,
    }


class FlightProvider:
    """Fetches live aircraft states from OpenSky."""

    def __init__(
        self,
        timeout: float = 10.0,
        url: str = OPENSKY_URL,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self.url = url
        self._session = session or requests.Session()
        self._session.headers.update(USER_AGENT)
        self.requests_made = 0

    def fetch_overhead(self, lat: float, lon: float, radius_km: float) -> list[FlightRecord]:
        """
        Fetch every aircraft within ``radius_km`` of ``(lat, lon)``.

        An empty ``states`` list (or ``null``) is a valid empty result.

        Raises:
            FlightProviderError: On connection errors, timeouts, HTTP errors
                or a malformed response
        """
        params = bounding_box(lat, lon, radius_km)
        self.requests_made += 1
        try:
            response = self._session.get(self.url, params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.Timeout as e:
            raise FlightProviderError(f"Request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise FlightProviderError(str(e)) from e
        except ValueError as e:
            raise FlightProviderError(f"Invalid JSON from OpenSky: {e}") from e

        if not isinstance(payload, dict):
            raise FlightProviderError("Unexpected response shape from OpenSky")

        states = payload.get("states") or []
        if not isinstance(states, list):
            raise FlightProviderError("Unexpected 'states' value from OpenSky")

        records: list[FlightRecord] = []
        dropped = 0
        for vector in states:
            record = FlightRecord.from_state_vector(vector)
            if record is None:
                dropped += 1
                continue
            records.append(record)
        if dropped:
            logger.debug(f"Dropped {dropped} state vectors without identity or position")
        logger.debug(f"Fetched {len(records)} aircraft around ({lat:.3f}, {lon:.3f})")
        return records

    def close(self) -> None:
        self._session.close()
