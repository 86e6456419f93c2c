"""Structured logging setup for the Redwood flight dashboard."""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = False,
) -> None:
    """
    Set up structured logging for the application.

    The terminal belongs to the dashboard while it runs, so records go to a
    daily rotating file and only reach stdout when ``console`` is set.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path to write logs to
        console: Also write logs to stdout
    """
    log_format = (
        "%(asctime)s | %(levelname)-8s | %(name)s | %(threadName)s | %(message)s"
    )
    date_format = "%Y-%m-%d %H:%M:%S"

    handlers: list[logging.Handler] = []

    if console:
        handlers.append(logging.StreamHandler(sys.stdout))

    if log_file:
        path = Path(log_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(
                logging.handlers.TimedRotatingFileHandler(
                    path, when="midnight", backupCount=7, encoding="utf-8"
                )
            )
        except OSError as e:
            print(f"Could not open log file {path}: {e}", file=sys.stderr)

    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        datefmt=date_format,
        handlers=handlers,
        force=True,
    )

    # requests logs every OpenSky poll at DEBUG
    logging.getLogger("urllib3.connectionpool").setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
