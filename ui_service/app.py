"""Terminal entry point for the Redwood flight dashboard."""

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path

from rich.console import Console
from rich.live import Live

from common.config import CONFIG_PATH, Config
from common.logging_setup import get_logger, setup_logging
from dashboard.controller import ControlLoop
from dashboard.state import ApplicationState
from events.channel import EventQueue
from events.clock import Clock
from events.types import Event, InitEvent
from flights.location import resolve_observer
from flights.provider import FlightProvider
from storage.aircraft_db import store_exists
from ui_service.keys import KeyReader
from ui_service.render import render
from ui_service.terminal import TerminalSession
from workers.cache_builder import CacheBuilder
from workers.poller import DataPoller

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="redwood",
        description="Live terminal dashboard of the aircraft flying near you.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=CONFIG_PATH,
        help=f"Path to the YAML config file (default: {CONFIG_PATH})",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log at DEBUG level",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    config = Config.load(args.config)
    setup_logging("DEBUG" if args.verbose else config.logging.level, config.logging.file)
    logger.info("Starting Redwood flight dashboard")

    observer = resolve_observer(config.location)
    stop_event = threading.Event()
    events: EventQueue[Event] = EventQueue("events")

    builder = None
    init_events: EventQueue[InitEvent] | None = None
    if not store_exists(config.data.db_path):
        logger.info(f"No aircraft store at {config.data.db_path}; building one")
        init_events = EventQueue("init")
        builder = CacheBuilder(
            config.data.csv_path,
            config.data.db_path,
            init_events.sender(),
            stop_event,
        )

    state = ApplicationState.create(
        config,
        observer.latitude,
        observer.longitude,
        tracking_region=observer.region,
        init_events=init_events,
        config_path=args.config,
    )

    clock = Clock(events.sender(), interval_ms=config.ui.tick_rate_ms)
    key_reader = KeyReader(events.sender(), poll_timeout=clock.interval_s)
    provider = FlightProvider(timeout=config.api.request_timeout_seconds)
    poller = DataPoller(
        provider,
        config.data.db_path,
        events.sender(),
        stop_event,
        latitude=observer.latitude,
        longitude=observer.longitude,
        radius_km=config.location.detection_radius_km,
        interval_s=config.api.poll_interval_seconds,
    )
    producers = [key_reader, clock, poller]
    if builder is not None:
        producers.append(builder)

    console = Console()
    try:
        with TerminalSession(console, on_thread_crash=events.close) as terminal:
            with Live(render(state), console=console, screen=True, auto_refresh=False) as live:

                def draw(current: ApplicationState) -> None:
                    if terminal.active:
                        live.update(render(current), refresh=True)

                loop = ControlLoop(state, events, draw, stop_event, producers)
                if builder is not None:
                    builder.start()
                poller.start()
                clock.start()
                key_reader.start()
                loop.run()
    except KeyboardInterrupt:
        pass
    finally:
        stop_event.set()
        provider.close()
    logger.info("Redwood stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
