"""Tests for the aircraft registry import job."""

from __future__ import annotations

import sqlite3
import sys
import threading
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from events.channel import EventQueue
from events.types import InitDone, InitError, InitProgress
from storage.aircraft_db import AircraftStore
from workers.cache_builder import CacheBuilder, clean_field, normalise_row, resolve_columns

HEADER = (
    "'icao24','registration','manufacturericao','manufacturername','model','typecode',"
    "'serialnumber','operator','operatorcallsign','owner'"
)


def _row(icao24: str, registration: str = "N123AB", operator: str = "United Airlines",
         owner: str = "United Airlines Inc") -> str:
    return (
        f"'{icao24}','{registration}','BOEING','Boeing','737-800','B738',"
        f"'29000','{operator}','UNITED','{owner}'"
    )


def _write_csv(path: Path, lines: list[str], encoding: str = "utf-8") -> Path:
    path.write_text("\n".join(lines) + "\n", encoding=encoding)
    return path


def _drain(events: EventQueue) -> list:
    received = []
    while True:
        event = events.try_receive()
        if event is None:
            return received
        received.append(event)


def _build(tmp_path: Path, csv_path: Path, **kwargs):
    events = EventQueue("init")
    db_path = tmp_path / "aircraft.db"
    builder = CacheBuilder(csv_path, db_path, events.sender(), **kwargs)
    builder.run()
    return builder, db_path, _drain(events), events


def test_successful_build(tmp_path) -> None:
    csv_path = _write_csv(tmp_path / "aircraft.csv", [HEADER, _row("a0b1c2"), _row("ABC123", "N456CD")])

    builder, db_path, events, queue = _build(tmp_path, csv_path)

    assert events[-1] == InitDone()
    assert events[-2] == InitProgress(1.0)
    assert all(isinstance(e, InitProgress) for e in events[:-1])
    assert queue.ended
    assert db_path.exists()
    assert not builder.partial_path.exists()
    assert builder.rows_written == 2

    with AircraftStore(db_path) as store:
        info = store.lookup("ABC123")
        assert info is not None
        assert info.registration == "N456CD"
        assert info.manufacturer == "Boeing"
        assert info.model == "737-800"
        assert info.type_code == "B738"
        assert info.operator == "United Airlines"
        assert info.operator_callsign == "UNITED"
        meta = store.info()
    assert meta["row_count"] == 2
    assert meta["source_file"] == str(csv_path)


def test_missing_csv_reports_error(tmp_path) -> None:
    _, db_path, events, queue = _build(tmp_path, tmp_path / "missing.csv")

    assert len(events) == 1
    assert isinstance(events[0], InitError)
    assert events[0].message.startswith("Missing CSV")
    assert queue.ended
    assert not db_path.exists()


def test_missing_identity_column(tmp_path) -> None:
    csv_path = _write_csv(tmp_path / "aircraft.csv", ["'registration','model'", "'N1','C172'"])

    _, db_path, events, _ = _build(tmp_path, csv_path)

    assert len(events) == 1
    assert isinstance(events[0], InitError)
    assert "icao24" in events[0].message
    assert "registration" in events[0].message
    assert not db_path.exists()


def test_empty_file_reports_error(tmp_path) -> None:
    csv_path = tmp_path / "aircraft.csv"
    csv_path.write_bytes(b"")

    _, db_path, events, _ = _build(tmp_path, csv_path)

    assert len(events) == 1
    assert isinstance(events[0], InitError)
    assert not db_path.exists()


def test_bom_and_header_case_are_ignored(tmp_path) -> None:
    header = "ICAO24,Registration,ManufacturerName,Model"
    csv_path = _write_csv(tmp_path / "aircraft.csv", [header, "4CA7B5,EI-DWF,Boeing,737-8AS"],
                          encoding="utf-8-sig")
    assert csv_path.read_bytes().startswith(b"\xef\xbb\xbf")

    _, db_path, events, _ = _build(tmp_path, csv_path)

    assert events[-1] == InitDone()
    with AircraftStore(db_path) as store:
        info = store.lookup("4ca7b5")
    assert info is not None
    assert info.registration == "EI-DWF"
    assert info.operator is None


def test_duplicate_rows_last_write_wins(tmp_path) -> None:
    csv_path = _write_csv(
        tmp_path / "aircraft.csv",
        [HEADER, _row("A0B1C2", "N-OLD"), _row("a0b1c2", "N-NEW")],
    )

    _, db_path, events, _ = _build(tmp_path, csv_path)

    assert events[-1] == InitDone()
    connection = sqlite3.connect(db_path)
    try:
        rows = connection.execute("SELECT icao24, registration FROM aircraft").fetchall()
    finally:
        connection.close()
    assert rows == [("a0b1c2", "N-NEW")]


def test_rows_without_identity_are_skipped(tmp_path) -> None:
    csv_path = _write_csv(tmp_path / "aircraft.csv", [HEADER, _row(""), _row("abc123"), "", "'x'"])

    builder, _, events, _ = _build(tmp_path, csv_path)

    assert events[-1] == InitDone()
    assert builder.rows_written == 2
    assert builder.rows_skipped >= 1


def test_operator_falls_back_to_owner(tmp_path) -> None:
    csv_path = _write_csv(tmp_path / "aircraft.csv", [HEADER, _row("abc123", operator="", owner="Private Owner")])

    _, db_path, _, _ = _build(tmp_path, csv_path)

    with AircraftStore(db_path) as store:
        info = store.lookup("abc123")
    assert info.operator == "Private Owner"
    assert info.owner == "Private Owner"


def test_progress_is_bounded_and_non_decreasing(tmp_path) -> None:
    lines = [HEADER] + [_row(f"{n:06x}") for n in range(25)]
    csv_path = _write_csv(tmp_path / "aircraft.csv", lines)

    _, _, events, _ = _build(tmp_path, csv_path, progress_every=5)

    fractions = [e.fraction for e in events if isinstance(e, InitProgress)]
    assert len(fractions) >= 5
    assert fractions == sorted(fractions)
    assert all(0.0 <= f <= 1.0 for f in fractions)
    assert fractions[-1] == 1.0
    assert events[-1] == InitDone()


def test_cancelled_build_leaves_nothing_behind(tmp_path) -> None:
    lines = [HEADER] + [_row(f"{n:06x}") for n in range(10)]
    csv_path = _write_csv(tmp_path / "aircraft.csv", lines)
    stop_event = threading.Event()
    stop_event.set()

    builder, db_path, events, queue = _build(tmp_path, csv_path, stop_event=stop_event, progress_every=1)

    assert events == []
    assert queue.ended
    assert not db_path.exists()
    assert not builder.partial_path.exists()


def test_stale_partial_file_is_replaced(tmp_path) -> None:
    csv_path = _write_csv(tmp_path / "aircraft.csv", [HEADER, _row("abc123")])
    (tmp_path / "aircraft.db.partial").write_bytes(b"left over from a crash")

    _, db_path, events, _ = _build(tmp_path, csv_path)

    assert events[-1] == InitDone()
    with AircraftStore(db_path) as store:
        assert store.lookup("abc123") is not None


def test_background_thread(tmp_path) -> None:
    csv_path = _write_csv(tmp_path / "aircraft.csv", [HEADER, _row("abc123")])
    events = EventQueue("init")
    builder = CacheBuilder(csv_path, tmp_path / "aircraft.db", events.sender())

    builder.start()
    builder.join(timeout=5.0)

    received = []
    while True:
        event = events.receive(timeout=1.0)
        if event is None:
            break
        received.append(event)
    assert received[-1] == InitDone()
    assert not builder.is_alive()


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("  'Boeing'  ", "Boeing"),
        ('"Airbus"', "Airbus"),
        ("", ""),
    ],
)
def test_clean_field(raw, expected) -> None:
    assert clean_field(raw) == expected


def test_resolve_columns_first_occurrence_wins() -> None:
    columns = resolve_columns(["\ufeff'icao24'", " Model ", "model", "unknown"])
    assert columns == {"icao24": 0, "model": 1}


def test_normalise_row() -> None:
    columns = {"icao24": 0, "registration": 1}
    assert normalise_row(["  'ABC123' ", "N1"], columns) == ("abc123", "", "", "", "", "", "N1", "")
    assert normalise_row(["", "N1"], columns) is None
    assert normalise_row(["abc123"], columns)[6] == ""
