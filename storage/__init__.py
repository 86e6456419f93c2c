"""Local aircraft registry store."""

from storage.aircraft_db import AircraftInfo, AircraftStore, enrich_records, store_exists

__all__ = ["AircraftInfo", "AircraftStore", "enrich_records", "store_exists"]
