"""Observer location resolution."""

from __future__ import annotations

from dataclasses import dataclass

import requests

from common.config import LocationConfig
from common.logging_setup import get_logger

logger = get_logger(__name__)

GEOLOCATION_URL = "http://ip-api.com/json/"
FALLBACK_COORDS = (37.7749, -122.4194)


@dataclass(frozen=True)
class Observer:
    latitude: float
    longitude: float
    region: str = "Unknown"


def locate_by_ip(timeout: float = 5.0) -> Observer:
    """
    Approximate the observer position from the public IP address.

    Falls back to San Francisco if the service is unreachable or the answer
    cannot be parsed, so the dashboard can still run.
    """
    logger.info("Requesting IP geolocation")
    try:
        response = requests.get(GEOLOCATION_URL, timeout=timeout)
        response.raise_for_status()
        data = response.json()
        if data.get("status", "success") != "success":
            raise ValueError(data.get("message", "lookup failed"))
        lat = float(data["lat"])
        lon = float(data["lon"])
    except (requests.RequestException, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.error(f"Geolocation unavailable ({e}); using fallback coordinates")
        return Observer(*FALLBACK_COORDS, region="Unknown")

    parts = [data.get("city"), data.get("regionName")]
    region = ", ".join(str(part) for part in parts if part) or "Unknown"
    logger.info(f"Geolocation resolved to {lat:.4f}, {lon:.4f} ({region})")
    return Observer(lat, lon, region)


def resolve_observer(location: LocationConfig) -> Observer:
    """Use IP geolocation or the manual coordinates, as configured."""
    if location.auto_locate:
        return locate_by_ip()
    return Observer(location.manual_lat, location.manual_lon, region="Manual")
