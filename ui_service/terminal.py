"""Terminal session handling for the dashboard.

The dashboard owns the terminal while it runs: raw key input, alternate
screen, hidden cursor. :class:`TerminalSession` puts all of that in place
and undoes it exactly once, whether the program exits normally or dies on
an uncaught exception in any thread.
"""

from __future__ import annotations

import os
import sys
import threading
from typing import Any, Callable, Optional

from rich.console import Console

from common.logging_setup import get_logger

logger = get_logger(__name__)


class TerminalSession:
    """
    Raw mode plus alternate screen, restored on exit.

    Usable as a context manager. Setup failures propagate to the caller;
    :meth:`restore` is idempotent and safe to call from any thread.
    ``on_thread_crash`` runs after the terminal is restored for an uncaught
    exception in a background thread.
    """

    def __init__(
        self,
        console: Console,
        stream: Any = None,
        on_thread_crash: Optional[Callable[[], None]] = None,
    ) -> None:
        self.console = console
        self.on_thread_crash = on_thread_crash
        self._stream = stream if stream is not None else sys.stdin
        self._saved_attrs: list | None = None
        self._active = False
        self._lock = threading.Lock()
        self._previous_excepthook = None
        self._previous_thread_hook = None

    @property
    def active(self) -> bool:
        return self._active

    def enter(self) -> None:
        if self._active:
            return
        if os.name != "nt" and self._stream.isatty():
            self._enter_raw_mode()
        self.console.set_alt_screen(True)
        self.console.show_cursor(False)
        self._active = True
        logger.debug("Terminal session started")

    def _enter_raw_mode(self) -> None:
        import termios
        import tty

        fd = self._stream.fileno()
        self._saved_attrs = termios.tcgetattr(fd)
        tty.setraw(fd, termios.TCSANOW)
        # keep output post-processing so rich's newlines still return the carriage
        attrs = termios.tcgetattr(fd)
        attrs[1] |= termios.OPOST | termios.ONLCR
        termios.tcsetattr(fd, termios.TCSANOW, attrs)

    def restore(self) -> None:
        """Put the terminal back the way it was found."""
        with self._lock:
            if not self._active:
                return
            self._active = False
            try:
                self.console.show_cursor(True)
                self.console.set_alt_screen(False)
            finally:
                if self._saved_attrs is not None:
                    import termios

                    termios.tcsetattr(self._stream.fileno(), termios.TCSADRAIN, self._saved_attrs)
                    self._saved_attrs = None
        logger.debug("Terminal restored")

    def install_crash_hook(self) -> None:
        """Restore the terminal before any uncaught exception is reported."""
        if self._previous_excepthook is not None:
            return
        self._previous_excepthook = sys.excepthook
        self._previous_thread_hook = threading.excepthook

        def excepthook(exc_type, exc, tb):
            self.restore()
            self._previous_excepthook(exc_type, exc, tb)

        def thread_excepthook(args):
            self.restore()
            logger.critical(
                f"Uncaught exception in thread {args.thread.name if args.thread else '?'}",
                exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
            )
            self._previous_thread_hook(args)
            if self.on_thread_crash is not None:
                # the terminal is gone, so the owner loop has to end too
                self.on_thread_crash()

        sys.excepthook = excepthook
        threading.excepthook = thread_excepthook

    def remove_crash_hook(self) -> None:
        if self._previous_excepthook is None:
            return
        sys.excepthook = self._previous_excepthook
        threading.excepthook = self._previous_thread_hook
        self._previous_excepthook = None
        self._previous_thread_hook = None

    def __enter__(self) -> "TerminalSession":
        self.install_crash_hook()
        self.enter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.restore()
        finally:
            self.remove_crash_hook()
