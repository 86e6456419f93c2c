"""Live flight data for the Redwood dashboard."""

from flights.models import FlightRecord, haversine_km, sort_by_distance
from flights.provider import FlightProvider, FlightProviderError

__all__ = [
    "FlightProvider",
    "FlightProviderError",
    "FlightRecord",
    "haversine_km",
    "sort_by_distance",
]
