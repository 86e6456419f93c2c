"""Recurring flight fetch and enrichment job."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from common.logging_setup import get_logger
from events.channel import EventSender
from events.types import FlightUpdate
from flights.provider import FlightProvider, FlightProviderError
from storage.aircraft_db import enrich_records

logger = get_logger(__name__)


class DataPoller:
    """
    Polls the flight provider on a background thread.

    Every cycle produces exactly one :class:`FlightUpdate`, successful or
    not, then waits ``interval_s`` on the stop event. Store lookups run on a
    single-worker pool so a slow disk never holds up the next fetch.
    """

    def __init__(
        self,
        provider: FlightProvider,
        db_path,
        sender: EventSender,
        stop_event: Optional[threading.Event] = None,
        latitude: float = 0.0,
        longitude: float = 0.0,
        radius_km: float = 50.0,
        interval_s: float = 30.0,
    ) -> None:
        self.provider = provider
        self.db_path = db_path
        self.latitude = latitude
        self.longitude = longitude
        self.radius_km = radius_km
        self.interval_s = interval_s
        self._sender = sender
        self._stop_event = stop_event or threading.Event()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="enrich")
        self._thread: Optional[threading.Thread] = None
        self.cycles = 0
        self.failures = 0

    def start(self) -> None:
        if self._thread is not None:
            logger.warning("Data poller already started; ignoring")
            return
        self._thread = threading.Thread(target=self._run, daemon=True, name="data-poller")
        self._thread.start()
        logger.info(
            f"Polling every {self.interval_s}s within {self.radius_km} km of "
            f"({self.latitude:.4f}, {self.longitude:.4f})"
        )

    def stop(self, timeout: float = 2.0) -> None:
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.warning("Data poller did not stop in time")
            self._thread = None
        self._sender.close()

    def poll_once(self) -> FlightUpdate:
        """Run one fetch and enrichment cycle and send its result."""
        self.cycles += 1
        try:
            records = self.provider.fetch_overhead(self.latitude, self.longitude, self.radius_km)
        except FlightProviderError as e:
            logger.warning(f"Flight fetch failed: {e}")
            return self._send_failure()
        except Exception as e:
            logger.exception(f"Unexpected error while fetching flights: {e}")
            return self._send_failure()

        try:
            enriched, hits = self._executor.submit(enrich_records, records, self.db_path).result()
        except Exception as e:
            # live data still goes out, unenriched
            logger.exception(f"Enrichment failed, showing raw records: {e}")
            enriched, hits = list(records), 0
        update = FlightUpdate(records=tuple(enriched), enrichment_hits=hits,
                              timestamp=time.monotonic(), success=True)
        logger.debug(f"Poll cycle {self.cycles}: {len(enriched)} flights, {hits} enriched")
        self._sender.send(update)
        return update

    def _send_failure(self) -> FlightUpdate:
        self.failures += 1
        update = FlightUpdate(records=(), enrichment_hits=0,
                              timestamp=time.monotonic(), success=False)
        self._sender.send(update)
        return update

    def _run(self) -> None:
        try:
            while not self._stop_event.is_set():
                self.poll_once()
                if self._stop_event.wait(self.interval_s):
                    break
        finally:
            self._executor.shutdown(wait=False)
            self._sender.close()
            logger.debug(f"Data poller exited after {self.cycles} cycles")
