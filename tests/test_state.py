"""Tests for application state transitions."""

import os
import sys
import unittest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from common.config import Config
from dashboard.state import (
    INIT_ENDED_MESSAGE,
    INIT_MESSAGE,
    ApplicationState,
    Screen,
    ViewMode,
)
from events.channel import EventQueue
from events.types import FlightUpdate, InitDone, InitError, InitProgress
from flights.models import FlightRecord
from workers.cache_builder import CacheBuilder

KM_PER_DEGREE_LAT = 111.19492664455873


def _flight(icao24, km_north=0.0):
    return FlightRecord(icao24, callsign=icao24.upper(), latitude=km_north / KM_PER_DEGREE_LAT)


def _update(records, success=True, hits=0, timestamp=100.0):
    return FlightUpdate(records=tuple(records), enrichment_hits=hits,
                        timestamp=timestamp, success=success)


def _ready_state(**kwargs):
    return ApplicationState(config=Config(), **kwargs)


class TestInitialization(unittest.TestCase):
    """Test the cache build overlay."""

    def setUp(self):
        """Set up test fixtures."""
        self.init_events = EventQueue("init")
        self.sender = self.init_events.sender()
        self.state = ApplicationState.create(Config(), 0.0, 0.0, init_events=self.init_events)

    def test_starts_on_loading_screen(self):
        self.assertTrue(self.state.is_initializing)
        self.assertEqual(self.state.current_screen, Screen.LOADING)
        self.assertEqual(self.state.init_message, INIT_MESSAGE)

    def test_tick_drains_progress(self):
        """Test progress is drained on tick and never decreases."""
        self.sender.send(InitProgress(0.3))
        self.sender.send(InitProgress(0.2))
        self.state.on_tick()

        self.assertEqual(self.state.tick_count, 1)
        self.assertAlmostEqual(self.state.init_progress, 0.3)
        self.assertTrue(self.state.is_initializing)

        self.sender.send(InitProgress(1.7))
        self.state.on_tick()
        self.assertEqual(self.state.init_progress, 1.0)

    def test_done_detaches_for_good(self):
        """Test InitDone ends initialization and later init events are ignored."""
        self.sender.send(InitProgress(0.5))
        self.sender.send(InitDone())
        self.state.on_tick()

        self.assertFalse(self.state.is_initializing)
        self.assertIsNone(self.state.init_events)
        self.assertEqual(self.state.current_screen, Screen.DASHBOARD)

        self.state.apply_init_event(InitProgress(0.1))
        self.state.apply_init_event(InitError("late"))
        self.assertFalse(self.state.is_initializing)
        self.assertIsNone(self.state.status_message)
        self.assertIsNone(self.state.init_events)
        self.assertEqual(self.state.init_progress, 1.0)
        self.assertEqual(self.state.init_message, INIT_MESSAGE)

    def test_error_detaches_and_keeps_message(self):
        self.sender.send(InitError("Missing CSV: nope"))
        self.state.on_tick()

        self.assertFalse(self.state.is_initializing)
        self.assertIsNone(self.state.init_events)
        self.assertEqual(self.state.init_message, "Missing CSV: nope")
        self.assertEqual(self.state.status_message, "Missing CSV: nope")

    def test_source_ending_without_outcome(self):
        """Test a builder that vanishes is treated as a failure."""
        self.sender.close()
        self.state.on_tick()

        self.assertFalse(self.state.is_initializing)
        self.assertEqual(self.state.init_message, INIT_ENDED_MESSAGE)
        self.assertEqual(self.state.status_message, INIT_ENDED_MESSAGE)

    def test_empty_drain_keeps_waiting(self):
        self.state.on_tick()
        self.state.on_tick()

        self.assertTrue(self.state.is_initializing)
        self.assertEqual(self.state.tick_count, 2)

    def test_only_quit_honoured_while_initializing(self):
        for key in ("2", "j", "4", "s"):
            self.state.handle_key(key)
        self.assertEqual(self.state.view_mode, ViewMode.DASHBOARD)
        self.assertFalse(self.state.should_quit)

        self.state.handle_key("q")
        self.assertTrue(self.state.should_quit)

    def test_flight_updates_ignored_while_initializing(self):
        self.state.apply_flight_update(_update([_flight("abc")]))

        self.assertEqual(self.state.flights, ())
        self.assertIsNone(self.state.last_update)
        self.assertFalse(self.state.last_update_success)

    def test_events_on_main_queue_apply_the_same_way(self):
        state = ApplicationState.create(Config(), 0.0, 0.0, init_events=EventQueue("init"))
        state.apply_init_event(InitProgress(0.4))
        self.assertAlmostEqual(state.init_progress, 0.4)
        state.apply_init_event(InitDone())
        self.assertFalse(state.is_initializing)


class TestNavigation(unittest.TestCase):
    """Test key handling outside initialization."""

    def setUp(self):
        """Set up test fixtures."""
        self.state = _ready_state()
        self.state.apply_flight_update(
            _update([_flight("aaa", 1), _flight("bbb", 2), _flight("ccc", 3)])
        )

    def test_next_wraps(self):
        self.state.selected_index = 2
        self.state.handle_key("down")
        self.assertEqual(self.state.selected_index, 0)

    def test_previous_wraps(self):
        self.state.handle_key("k")
        self.assertEqual(self.state.selected_index, 2)
        self.state.handle_key("up")
        self.assertEqual(self.state.selected_index, 1)

    def test_selection_stays_in_range(self):
        for key in ["j"] * 7 + ["k"] * 11:
            self.state.handle_key(key)
            self.assertTrue(0 <= self.state.selected_index < 3)

    def test_navigation_on_empty_set_is_noop(self):
        state = _ready_state()
        state.handle_key("j")
        state.handle_key("up")
        self.assertEqual(state.selected_index, 0)
        self.assertIsNone(state.selected_flight)

    def test_view_keys(self):
        self.state.selected_index = 1
        expected = {
            "2": (ViewMode.RADAR, Screen.RADAR),
            "3": (ViewMode.SPOTTER, Screen.SPOTTER),
            "4": (ViewMode.SETTINGS, Screen.SETTINGS),
            "1": (ViewMode.DASHBOARD, Screen.DASHBOARD),
        }
        for key, (mode, screen) in expected.items():
            self.state.handle_key(key)
            self.assertEqual(self.state.view_mode, mode)
            self.assertEqual(self.state.current_screen, screen)
            self.assertEqual(self.state.selected_index, 1)
            self.assertEqual(len(self.state.flights), 3)

    def test_quit(self):
        self.state.handle_key("q")
        self.assertTrue(self.state.should_quit)

    def test_quit_from_settings(self):
        self.state.handle_key("4")
        self.state.handle_key("q")
        self.assertTrue(self.state.should_quit)

    def test_navigation_keys_edit_settings_on_settings_screen(self):
        self.state.handle_key("4")
        self.state.handle_key("j")
        self.assertEqual(self.state.settings_index, 1)
        self.assertEqual(self.state.selected_index, 0)

    def test_unknown_key_ignored(self):
        self.state.handle_key("x")
        self.assertEqual(self.state.selected_index, 0)
        self.assertFalse(self.state.should_quit)


class TestFlightUpdates(unittest.TestCase):
    """Test FlightUpdate handling."""

    def test_records_sorted_by_distance(self):
        state = _ready_state()
        state.apply_flight_update(_update([_flight("far", 50), _flight("near", 5), _flight("mid", 20)]))

        self.assertEqual([f.icao24 for f in state.flights], ["near", "mid", "far"])
        distances = [f.distance_from(0.0, 0.0) for f in state.flights]
        self.assertAlmostEqual(distances[0], 5.0, places=2)
        self.assertAlmostEqual(distances[1], 20.0, places=2)
        self.assertAlmostEqual(distances[2], 50.0, places=2)

    def test_success_replaces_data(self):
        state = _ready_state()
        state.apply_flight_update(_update([_flight("abc", 1)], hits=1, timestamp=42.0))

        self.assertTrue(state.last_update_success)
        self.assertEqual(state.enrichment_hits, 1)
        self.assertEqual(state.last_update, 42.0)
        self.assertEqual(state.selected_flight.icao24, "abc")

    def test_failure_keeps_previous_data(self):
        state = _ready_state()
        state.apply_flight_update(_update([_flight("abc", 1)], hits=1, timestamp=42.0))
        state.apply_flight_update(_update([], success=False, timestamp=99.0))

        self.assertFalse(state.last_update_success)
        self.assertEqual([f.icao24 for f in state.flights], ["abc"])
        self.assertEqual(state.enrichment_hits, 1)
        self.assertEqual(state.last_update, 42.0)

    def test_failure_then_success_keeps_only_success(self):
        state = _ready_state()
        state.apply_flight_update(_update([_flight("stale", 1)], success=False))
        state.apply_flight_update(_update([_flight("fresh", 1)]))

        self.assertEqual([f.icao24 for f in state.flights], ["fresh"])
        self.assertTrue(state.last_update_success)

    def test_selection_clamped_when_set_shrinks(self):
        state = _ready_state()
        state.apply_flight_update(_update([_flight(name, n) for n, name in enumerate("abcde")]))
        state.selected_index = 4
        state.apply_flight_update(_update([_flight("x", 1), _flight("y", 2)]))
        self.assertEqual(state.selected_index, 1)

        state.apply_flight_update(_update([]))
        self.assertEqual(state.selected_index, 0)
        self.assertIsNone(state.selected_flight)

    def test_seconds_since_update(self):
        state = _ready_state()
        self.assertIsNone(state.seconds_since_update(10.0))
        state.apply_flight_update(_update([], timestamp=10.0))
        self.assertEqual(state.seconds_since_update(12.5), 2.5)


class TestStartup(unittest.TestCase):
    """Test initial state construction."""

    def test_default_view_from_config(self):
        config = Config()
        config.ui.default_view = "Radar"
        state = ApplicationState.create(config, 1.0, 2.0, tracking_region="Somewhere")

        self.assertFalse(state.is_initializing)
        self.assertEqual(state.current_screen, Screen.RADAR)
        self.assertEqual(state.tracking_region, "Somewhere")

    def test_unknown_default_view_falls_back(self):
        config = Config()
        config.ui.default_view = "Map"
        state = ApplicationState.create(config, 0.0, 0.0)
        self.assertEqual(state.view_mode, ViewMode.DASHBOARD)

    def test_view_mode_from_name(self):
        self.assertEqual(ViewMode.from_name("spotter"), ViewMode.SPOTTER)
        self.assertEqual(ViewMode.from_name(" Settings "), ViewMode.SETTINGS)
        self.assertEqual(ViewMode.from_name(""), ViewMode.DASHBOARD)


def test_missing_bulk_file_scenario(tmp_path) -> None:
    """A missing registry CSV ends initialization and flights still flow, unenriched."""
    init_events = EventQueue("init")
    builder = CacheBuilder(tmp_path / "missing.csv", tmp_path / "aircraft.db", init_events.sender())
    state = ApplicationState.create(Config(), 0.0, 0.0, init_events=init_events)

    builder.run()
    first = init_events.try_receive()
    assert isinstance(first, InitError)
    state.apply_init_event(first)

    assert state.is_initializing is False
    assert state.init_events is None
    assert state.init_message.startswith("Missing CSV")

    state.apply_flight_update(_update([_flight("abc", 3)]))
    assert len(state.flights) == 1
    assert not state.flights[0].is_enriched
    assert state.enrichment_hits == 0


if __name__ == "__main__":
    unittest.main()
