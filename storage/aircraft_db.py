"""Local aircraft registry store.

All SQLite access for the dashboard: read-only point lookups for the data
poller and the schema/upsert helpers used by the cache builder.
"""

from __future__ import annotations

import sqlite3
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Iterable, Optional, Sequence

from common.logging_setup import get_logger
from flights.models import FlightRecord

logger = get_logger(__name__)

AIRCRAFT_COLUMNS = (
    "icao24",
    "manufacturername",
    "model",
    "operator",
    "operatorcallsign",
    "owner",
    "registration",
    "typecode",
)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS aircraft (
        icao24 TEXT PRIMARY KEY,
        manufacturername TEXT,
        model TEXT,
        operator TEXT,
        operatorcallsign TEXT,
        owner TEXT,
        registration TEXT,
        typecode TEXT
    );
    CREATE TABLE IF NOT EXISTS db_info (
        created_date TEXT,
        source_file TEXT,
        row_count INTEGER,
        machine TEXT
    );
"""

UPSERT_SQL = (
    "INSERT OR REPLACE INTO aircraft "
    f"({', '.join(AIRCRAFT_COLUMNS)}) VALUES ({', '.join('?' for _ in AIRCRAFT_COLUMNS)})"
)


@dataclass(frozen=True)
class AircraftInfo:
    """One registry row. Empty columns come back as ``None``."""

    icao24: str
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    operator: Optional[str] = None
    operator_callsign: Optional[str] = None
    owner: Optional[str] = None
    registration: Optional[str] = None
    type_code: Optional[str] = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "AircraftInfo":
        def clean(key: str) -> Optional[str]:
            value = row[key]
            if value is None:
                return None
            value = str(value).strip()
            return value or None

        return cls(
            icao24=row["icao24"],
            manufacturer=clean("manufacturername"),
            model=clean("model"),
            operator=clean("operator") or clean("owner"),
            operator_callsign=clean("operatorcallsign"),
            owner=clean("owner"),
            registration=clean("registration"),
            type_code=clean("typecode"),
        )

    def apply_to(self, record: FlightRecord) -> FlightRecord:
        return record.with_enrichment(
            manufacturer=self.manufacturer,
            model=self.model,
            operator=self.operator,
            operator_callsign=self.operator_callsign,
            registration=self.registration,
            type_code=self.type_code,
        )


def store_exists(database_location) -> bool:
    """
    Check whether a finished store is present.

    The cache builder only moves the file into place after its final
    commit, so existence means the store is complete.
    """
    return Path(database_location).is_file()


class AircraftStore:
    """
    Read-only lookups against the registry store.

    Call :meth:`connect` before querying and :meth:`close` when done, or use
    the store as a context manager. Lookup counts and timings are kept for
    logging.
    """

    def __init__(self, database_location, timeout: float = 5.0):
        self.database_path = Path(database_location).as_posix()
        self.queries = 0
        self.query_misses = 0
        self.query_errors = 0
        self.last_access_speed = 0.0  # ms
        self._timeout = timeout
        self._connection: Optional[sqlite3.Connection] = None
        self._access_times = deque(maxlen=50)
        self.average_speed = 0.0

    def connect(self) -> bool:
        """
        Open the store read-only.

        Returns:
            True if connected (including an existing connection), False if
            the file is missing or cannot be opened as a registry store
        """
        if self._connection is not None:
            logger.warning(f"{self.database_path} is already connected.")
            return True
        if not store_exists(self.database_path):
            logger.debug(f"{self.database_path} does not exist yet.")
            return False
        try:
            self._connection = sqlite3.connect(
                f"file:{self.database_path}?mode=ro",
                uri=True,
                timeout=self._timeout,
                check_same_thread=False,
            )
            self._connection.row_factory = sqlite3.Row
            # fail early if this isn't one of our stores
            self._connection.execute("SELECT icao24 FROM aircraft LIMIT 1").close()
            return True
        except sqlite3.Error as e:
            logger.error(f"Could not open {self.database_path}: {e}")
            if self._connection is not None:
                self._connection.close()
            self._connection = None
            return False

    def lookup(self, icao24: str) -> Optional[AircraftInfo]:
        """
        Fetch the registry row for an ICAO 24-bit address.

        Args:
            icao24: Transponder address, any case

        Returns:
            The matching row, or None on a miss, without a connection or if
            the query fails
        """
        if self._connection is None:
            logger.debug("Attempt to query database with no connection.")
            self.query_errors += 1
            return None
        key = icao24.strip().lower()
        try:
            start = perf_counter()
            cursor = self._connection.execute("SELECT * FROM aircraft WHERE icao24 = ?", (key,))
            result = cursor.fetchone()
            cursor.close()
            self.last_access_speed = (perf_counter() - start) * 1000
            self._access_times.appendleft(self.last_access_speed)
            self.average_speed = sum(self._access_times) / len(self._access_times)
            self.queries += 1
        except sqlite3.Error as e:
            logger.error(f"{e}")
            self.query_errors += 1
            return None
        if result is None:
            self.query_misses += 1
            return None
        return AircraftInfo.from_row(result)

    def info(self) -> Optional[dict]:
        """Return the ``db_info`` row written when the store was built."""
        if self._connection is None:
            return None
        try:
            cursor = self._connection.execute("SELECT * FROM db_info ORDER BY ROWID DESC LIMIT 1")
            result = cursor.fetchone()
            cursor.close()
        except sqlite3.Error as e:
            logger.error(f"{e}")
            return None
        return dict(result) if result else None

    def is_connected(self) -> bool:
        return self._connection is not None

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            logger.debug("Database successfully closed.")
            self._connection = None

    def __enter__(self) -> "AircraftStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def create_schema(connection: sqlite3.Connection) -> None:
    connection.executescript(SCHEMA)


def upsert_aircraft(connection: sqlite3.Connection, row: Sequence[str]) -> None:
    """Insert or replace one registry row; values follow ``AIRCRAFT_COLUMNS``."""
    connection.execute(UPSERT_SQL, tuple(row))


def write_info(connection: sqlite3.Connection, created_date: str, source_file: str, row_count: int,
               machine: str) -> None:
    connection.execute("DELETE FROM db_info")
    connection.execute(
        "INSERT INTO db_info (created_date, source_file, row_count, machine) VALUES (?, ?, ?, ?)",
        (created_date, source_file, row_count, machine),
    )


def enrich_records(records: Iterable[FlightRecord], database_location) -> tuple[list[FlightRecord], int]:
    """
    Look every record up in the local store.

    A missing or unusable store is not an error: the records come back
    untouched with zero hits.

    Args:
        records: Live flight records
        database_location: Path of the store

    Returns:
        The records in their original order, enriched where the registry
        has a match, and the number of hits
    """
    records = list(records)
    if not store_exists(database_location):
        return records, 0
    store = AircraftStore(database_location)
    if not store.connect():
        return records, 0
    hits = 0
    enriched: list[FlightRecord] = []
    try:
        for record in records:
            info = store.lookup(record.icao24)
            if info is None:
                enriched.append(record)
                continue
            hits += 1
            enriched.append(info.apply_to(record))
    finally:
        store.close()
    logger.debug(f"Enriched {hits}/{len(records)} records "
                          f"(avg lookup {store.average_speed:.3f} ms)")
    return enriched, hits
