"""Keyboard input source for the terminal dashboard."""

from __future__ import annotations

import os
import sys
import threading
import time

from common.logging_setup import get_logger
from events.channel import EventSender
from events.types import Input

logger = get_logger(__name__)

# Raw mode swallows SIGINT, so Ctrl+C arrives as a byte and is read as quit
CTRL_C = "\x03"


class KeyReader:
    """
    Reads key presses on a background thread and sends them as :class:`Input`.

    Each wait for input is bounded by ``poll_timeout`` so the thread notices
    :meth:`stop` within one clock interval. The terminal must already be in
    raw mode (see :class:`ui_service.terminal.TerminalSession`).
    """

    def __init__(self, sender: EventSender, poll_timeout: float = 0.15) -> None:
        self._sender = sender
        self.poll_timeout = poll_timeout
        self._stop_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run,
            daemon=True,
            name="ui-key-reader",
        )

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread.is_alive():
            self._thread.join(timeout=1.0)
        self._sender.close()

    def _emit(self, key: str | None) -> None:
        if not key:
            return
        if not self._sender.send(Input(key)):
            self._stop_event.set()

    def _run(self) -> None:
        try:
            if os.name == "nt":
                self._run_windows()
            else:
                self._run_posix()
        except (OSError, ValueError) as e:
            logger.error(f"Key reader stopped: {e}")
        finally:
            self._sender.close()

    def _run_windows(self) -> None:
        import msvcrt

        while not self._stop_event.is_set():
            if not msvcrt.kbhit():
                time.sleep(min(0.05, self.poll_timeout))
                continue
            self._emit(_read_key_windows())

    def _run_posix(self) -> None:
        import select

        fd = sys.stdin.fileno()
        while not self._stop_event.is_set():
            readable, _, _ = select.select([fd], [], [], self.poll_timeout)
            if not readable:
                continue
            self._emit(_read_key_posix(fd))


def _read_key_windows() -> str | None:
    import msvcrt

    ch = msvcrt.getwch()
    if ch in ("\x00", "\xe0"):
        ch2 = msvcrt.getwch()
        mapping = {
            "H": "up",
            "P": "down",
            "K": "left",
            "M": "right",
        }
        return mapping.get(ch2)
    return _normalise(ch)


def _read_key_posix(fd: int | None = None) -> str | None:
    import select

    # unbuffered, so select and read agree on what is still pending
    if fd is None:
        fd = sys.stdin.fileno()
    data = os.read(fd, 1)
    if data == b"\x1b":
        # a lone Esc has nothing queued behind it
        readable, _, _ = select.select([fd], [], [], 0.01)
        if not readable:
            return "esc"
        nxt = os.read(fd, 2)
        mapping = {b"[A": "up", b"[B": "down", b"[C": "right", b"[D": "left"}
        return mapping.get(nxt, "esc")
    return _normalise(data.decode("utf-8", errors="ignore"))


def _normalise(ch: str) -> str | None:
    if not ch:
        return None
    if ch == CTRL_C:
        return "q"
    if ch in ("\r", "\n"):
        return "enter"
    if ch in ("\x7f", "\x08"):
        return "backspace"
    if ch == "\x1b":
        return "esc"
    if ch == "\t":
        return "tab"
    return ch.lower() if ch.isalpha() else ch
