"""One-shot import of the aircraft registry CSV into the local SQLite store.

The job streams the CSV instead of loading it, so memory stays flat on the
multi-hundred-megabyte OpenSky dump. Everything is written into
``<db>.partial`` in a single transaction and only moved onto the real path
after the commit, so readers never see a half-built store.

Progress, completion and failure are reported as events; nothing is raised
back to the caller.
"""

from __future__ import annotations

import csv
import os
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from platform import uname
from time import perf_counter
from typing import BinaryIO, Iterator, Optional, Sequence

from common.logging_setup import get_logger
from events.channel import EventSender
from events.types import InitDone, InitError, InitProgress
from storage.aircraft_db import AIRCRAFT_COLUMNS, create_schema, upsert_aircraft, write_info

logger = get_logger(__name__)

# Rows between progress events; keeps the event queue quiet on large files
PROGRESS_EVERY_ROWS = 2000
# The OpenSky registry dump quotes fields with single quotes
CSV_QUOTECHAR = "'"
IDENTITY_COLUMN = "icao24"


class _CountingLines:
    """Iterates decoded lines of a binary file while counting bytes consumed."""

    def __init__(self, handle: BinaryIO) -> None:
        self._handle = handle
        self.bytes_read = 0

    def __iter__(self) -> Iterator[str]:
        for raw in self._handle:
            self.bytes_read += len(raw)
            yield raw.decode("utf-8", errors="replace")


def clean_field(value: str) -> str:
    """Strip whitespace and leftover quoting from a CSV field."""
    return value.strip().strip("'\"").strip()


def resolve_columns(header: Sequence[str]) -> dict[str, int]:
    """
    Map known column names to their positions.

    Matching is case-insensitive and ignores a byte-order mark, quotes and
    surrounding whitespace. The first occurrence of a name wins.
    """
    positions: dict[str, int] = {}
    for index, name in enumerate(header):
        key = clean_field(name.lstrip("\ufeff")).lstrip("\ufeff").lower()
        if key in AIRCRAFT_COLUMNS and key not in positions:
            positions[key] = index
    return positions


def normalise_row(fields: Sequence[str], columns: dict[str, int]) -> Optional[tuple[str, ...]]:
    """
    Turn a CSV record into a row for the ``aircraft`` table.

    Returns None if the record has no identity.
    """
    values = []
    for name in AIRCRAFT_COLUMNS:
        index = columns.get(name)
        if index is None or index >= len(fields):
            values.append("")
            continue
        values.append(clean_field(fields[index]))
    values[0] = values[0].lower()
    if not values[0]:
        return None
    return tuple(values)


class CacheBuilder:
    """
    Builds the enrichment store from the registry CSV on a background thread.

    Runs at most once per process. The sender is closed when the job ends,
    whatever the outcome.
    """

    def __init__(
        self,
        csv_path,
        db_path,
        sender: EventSender,
        stop_event: Optional[threading.Event] = None,
        progress_every: int = PROGRESS_EVERY_ROWS,
    ) -> None:
        self.csv_path = Path(csv_path)
        self.db_path = Path(db_path)
        self._sender = sender
        self._stop_event = stop_event or threading.Event()
        self._progress_every = max(1, progress_every)
        self._thread: Optional[threading.Thread] = None
        self._last_fraction = 0.0
        self.rows_written = 0
        self.rows_skipped = 0

    @property
    def partial_path(self) -> Path:
        return self.db_path.with_name(self.db_path.name + ".partial")

    def start(self) -> None:
        if self._thread is not None:
            logger.warning("Cache build already started; ignoring")
            return
        self._thread = threading.Thread(target=self.run, daemon=True, name="cache-builder")
        self._thread.start()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def stop(self, timeout: float = 2.0) -> None:
        """Ask the import to abandon its work and wait for the thread."""
        self._stop_event.set()
        self.join(timeout=timeout)
        if self.is_alive():
            logger.warning("Cache builder did not stop in time")

    def is_alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run(self) -> None:
        """Run the import on the calling thread."""
        start = perf_counter()
        logger.info(f"Building aircraft store {self.db_path} from {self.csv_path}")
        try:
            self._build()
        finally:
            self._sender.close()
        logger.info(
            f"Cache build finished in {perf_counter() - start:.2f}s: "
            f"{self.rows_written} rows written, {self.rows_skipped} skipped"
        )

    def _build(self) -> None:
        try:
            handle = self.csv_path.open("rb")
        except OSError as e:
            self._fail(f"Missing CSV: {e}")
            return

        with handle:
            total_size = os.fstat(handle.fileno()).st_size
            lines = _CountingLines(handle)
            reader = csv.reader(lines, quotechar=CSV_QUOTECHAR)

            try:
                header = next(reader)
            except StopIteration:
                self._fail(f"CSV Error: {self.csv_path} is empty")
                return
            except (csv.Error, OSError) as e:
                self._fail(f"Header Error: {e}")
                return

            columns = resolve_columns(header)
            if IDENTITY_COLUMN not in columns:
                found = [clean_field(name.lstrip("\ufeff")) for name in header]
                self._fail(f"CSV Error: Could not find '{IDENTITY_COLUMN}' column. Found: {found}")
                return

            self._write_store(reader, columns, lines, total_size)

    def _write_store(self, reader, columns: dict[str, int], lines: _CountingLines,
                     total_size: int) -> None:
        partial = self.partial_path
        partial.unlink(missing_ok=True)
        connection: Optional[sqlite3.Connection] = None
        try:
            partial.parent.mkdir(parents=True, exist_ok=True)
            connection = sqlite3.connect(partial)
            create_schema(connection)

            if not self._import_rows(reader, columns, lines, total_size, connection):
                connection.rollback()
                connection.close()
                connection = None
                partial.unlink(missing_ok=True)
                logger.info("Cache build cancelled")
                return

            write_info(
                connection,
                datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
                str(self.csv_path),
                self.rows_written,
                uname().node,
            )
            connection.commit()
            connection.close()
            connection = None
            os.replace(partial, self.db_path)
        except (sqlite3.Error, OSError) as e:
            if connection is not None:
                connection.close()
            partial.unlink(missing_ok=True)
            self._fail(f"Database Error: {e}")
            return

        self._progress(1.0)
        self._sender.send(InitDone())

    def _import_rows(self, reader, columns: dict[str, int], lines: _CountingLines,
                     total_size: int, connection: sqlite3.Connection) -> bool:
        """Upsert every record. Returns False if the stop signal interrupted the import."""
        seen = 0
        while True:
            try:
                fields = next(reader)
            except StopIteration:
                break
            except csv.Error as e:
                self.rows_skipped += 1
                logger.debug(f"Skipping unparsable line {reader.line_num}: {e}")
                continue

            seen += 1
            if seen % self._progress_every == 0:
                if self._stop_event.is_set():
                    return False
                if total_size:
                    self._progress(lines.bytes_read / total_size)

            row = normalise_row(fields, columns)
            if row is None:
                self.rows_skipped += 1
                continue
            try:
                upsert_aircraft(connection, row)
            except sqlite3.Error as e:
                self.rows_skipped += 1
                logger.debug(f"Skipping row for {row[0]}: {e}")
                continue
            self.rows_written += 1
        return True

    def _progress(self, fraction: float) -> None:
        fraction = min(1.0, max(self._last_fraction, fraction))
        self._last_fraction = fraction
        self._sender.send(InitProgress(fraction))

    def _fail(self, message: str) -> None:
        logger.error(message)
        self._sender.send(InitError(message))
