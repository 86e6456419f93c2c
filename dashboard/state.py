"""Application state for the flight dashboard.

Only the control loop mutates an :class:`ApplicationState`; background jobs
reach it through events. Every transition is a plain method so the whole
state machine can be driven synchronously in tests.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from common.config import CONFIG_PATH, Config, ConfigError
from common.logging_setup import get_logger
from dashboard import settings
from events.channel import EventQueue
from events.types import FlightUpdate, InitDone, InitError, InitProgress
from flights.models import FlightRecord, sort_by_distance

logger = get_logger(__name__)

INIT_MESSAGE = "Initializing database..."
INIT_ENDED_MESSAGE = "Cache build ended unexpectedly"
QUIT_KEY = "q"
NEXT_KEYS = frozenset({"down", "j"})
PREVIOUS_KEYS = frozenset({"up", "k"})


class ViewMode(Enum):
    DASHBOARD = "Dashboard"
    RADAR = "Radar"
    SPOTTER = "Spotter"
    SETTINGS = "Settings"

    @classmethod
    def from_name(cls, name: str) -> "ViewMode":
        """Look a view up by its config name; unknown names give the dashboard."""
        for mode in cls:
            if mode.value.lower() == str(name).strip().lower():
                return mode
        return cls.DASHBOARD


class Screen(Enum):
    LOADING = "loading"
    DASHBOARD = "dashboard"
    RADAR = "radar"
    SPOTTER = "spotter"
    SETTINGS = "settings"


VIEW_KEYS = {
    "1": ViewMode.DASHBOARD,
    "2": ViewMode.RADAR,
    "3": ViewMode.SPOTTER,
    "4": ViewMode.SETTINGS,
}

_SCREEN_FOR_VIEW = {
    ViewMode.DASHBOARD: Screen.DASHBOARD,
    ViewMode.RADAR: Screen.RADAR,
    ViewMode.SPOTTER: Screen.SPOTTER,
    ViewMode.SETTINGS: Screen.SETTINGS,
}


@dataclass
class ApplicationState:
    config: Config = field(default_factory=Config)
    config_path: Path = CONFIG_PATH
    observer_lat: float = 0.0
    observer_lon: float = 0.0
    tracking_region: str = "Unknown"
    view_mode: ViewMode = ViewMode.DASHBOARD
    flights: tuple[FlightRecord, ...] = ()
    selected_index: int = 0
    tick_count: int = 0
    should_quit: bool = False
    is_initializing: bool = False
    init_progress: float = 0.0
    init_message: str = INIT_MESSAGE
    init_events: EventQueue | None = None
    last_update: float | None = None
    last_update_success: bool = False
    enrichment_hits: int = 0
    settings_index: int = 0
    settings_message: str | None = None
    status_message: str | None = None

    @classmethod
    def create(
        cls,
        config: Config,
        observer_lat: float,
        observer_lon: float,
        tracking_region: str = "Unknown",
        init_events: EventQueue | None = None,
        config_path: Path | str = CONFIG_PATH,
    ) -> "ApplicationState":
        """
        Build the startup state.

        Passing ``init_events`` means the cache build is running: the state
        starts on the loading screen and drains that queue on every tick.
        """
        return cls(
            config=config,
            config_path=Path(config_path),
            observer_lat=observer_lat,
            observer_lon=observer_lon,
            tracking_region=tracking_region,
            view_mode=ViewMode.from_name(config.ui.default_view),
            is_initializing=init_events is not None,
            init_events=init_events,
        )

    @property
    def current_screen(self) -> Screen:
        if self.is_initializing:
            return Screen.LOADING
        return _SCREEN_FOR_VIEW[self.view_mode]

    @property
    def selected_flight(self) -> FlightRecord | None:
        if not self.flights:
            return None
        return self.flights[self.selected_index]

    def seconds_since_update(self, now: float | None = None) -> float | None:
        if self.last_update is None:
            return None
        now = time.monotonic() if now is None else now
        return max(0.0, now - self.last_update)

    def on_tick(self) -> None:
        self.tick_count += 1
        self.drain_init_events()

    def drain_init_events(self) -> None:
        """Apply every queued init event without waiting."""
        while self.init_events is not None:
            source = self.init_events
            event = source.try_receive()
            if event is None:
                if source.ended:
                    # builder went away without reporting an outcome
                    self.apply_init_event(InitError(INIT_ENDED_MESSAGE))
                break
            self.apply_init_event(event)

    def apply_init_event(self, event: InitProgress | InitDone | InitError) -> None:
        """
        Apply one cache build event.

        Once the build has finished or failed the overlay is detached for
        good and later init events are ignored.
        """
        if not self.is_initializing:
            return
        match event:
            case InitProgress(fraction=fraction):
                fraction = max(0.0, min(1.0, fraction))
                self.init_progress = max(self.init_progress, fraction)
            case InitDone():
                self.init_progress = 1.0
                logger.info("Aircraft store ready")
                self._detach_init()
            case InitError(message=message):
                self.init_message = message
                self.status_message = message
                logger.error(f"Aircraft store unavailable: {message}")
                self._detach_init()

    def _detach_init(self) -> None:
        self.is_initializing = False
        self.init_events = None

    def handle_key(self, key: str) -> None:
        if self.is_initializing:
            if key == QUIT_KEY:
                self.should_quit = True
            return

        if key == QUIT_KEY:
            self.should_quit = True
            return
        if key in VIEW_KEYS:
            self.view_mode = VIEW_KEYS[key]
            return
        if self.view_mode is ViewMode.SETTINGS:
            self._handle_settings_key(key)
            return
        if key in NEXT_KEYS:
            self.select_next()
        elif key in PREVIOUS_KEYS:
            self.select_previous()

    def select_next(self) -> None:
        if self.flights:
            self.selected_index = (self.selected_index + 1) % len(self.flights)

    def select_previous(self) -> None:
        if self.flights:
            self.selected_index = (self.selected_index - 1) % len(self.flights)

    def apply_flight_update(self, update: FlightUpdate) -> None:
        if self.is_initializing:
            return
        self.last_update_success = update.success
        if not update.success:
            return
        self.flights = tuple(sort_by_distance(update.records, self.observer_lat, self.observer_lon))
        self.enrichment_hits = update.enrichment_hits
        self.last_update = update.timestamp
        if self.flights:
            self.selected_index = min(self.selected_index, len(self.flights) - 1)
        else:
            self.selected_index = 0

    def _handle_settings_key(self, key: str) -> None:
        self.settings_message = None
        match key:
            case "up" | "k":
                self.settings_index = settings.move_cursor(self.settings_index, -1)
            case "down" | "j":
                self.settings_index = settings.move_cursor(self.settings_index, 1)
            case "enter" | " ":
                settings.activate(self.config, self.settings_index)
            case "+" | "=":
                settings.increment(self.config, self.settings_index)
            case "-":
                settings.decrement(self.config, self.settings_index)
            case "s":
                self.save_settings()

    def save_settings(self) -> bool:
        """Write the config back to disk and report the outcome on the Settings screen."""
        try:
            self.config.save(self.config_path)
        except ConfigError as e:
            self.settings_message = f"Save failed: {e}"
            logger.error(self.settings_message)
            return False
        self.settings_message = settings.SAVED_MESSAGE
        if not self.config.location.auto_locate:
            self.observer_lat = self.config.location.manual_lat
            self.observer_lon = self.config.location.manual_lon
            self.tracking_region = "Manual"
        return True
