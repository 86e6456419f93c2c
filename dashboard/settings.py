"""Editable fields of the Settings screen.

Each field maps a row on the screen to one attribute of :class:`Config`.
Numbers move in fixed steps and are clamped to their bounds; the default
view cycles through the screen names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from common.config import Config

VIEW_CHOICES = ("Dashboard", "Radar", "Spotter", "Settings")

SAVED_MESSAGE = "Config saved. Restart for poll/radius changes."


@dataclass(frozen=True)
class SettingField:
    label: str
    section: str
    name: str
    kind: str  # "toggle", "number" or "choice"
    step: float = 0.0
    minimum: float = 0.0
    maximum: float = 0.0


SETTING_FIELDS = (
    SettingField("Auto-locate (IP lookup)", "location", "auto_locate", "toggle"),
    SettingField("Manual latitude", "location", "manual_lat", "number", 0.1, -90.0, 90.0),
    SettingField("Manual longitude", "location", "manual_lon", "number", 0.1, -180.0, 180.0),
    SettingField("Detection radius (km)", "location", "detection_radius_km", "number", 5.0, 1.0, 500.0),
    SettingField("Poll interval (s)", "api", "poll_interval_seconds", "number", 5, 5, 600),
    SettingField("Default view", "ui", "default_view", "choice"),
)

FIELD_COUNT = len(SETTING_FIELDS)


def get_value(config: Config, index: int) -> Any:
    item = SETTING_FIELDS[index]
    return getattr(getattr(config, item.section), item.name)


def _set_value(config: Config, index: int, value: Any) -> None:
    item = SETTING_FIELDS[index]
    setattr(getattr(config, item.section), item.name, value)


def format_value(config: Config, index: int) -> str:
    """Text shown for a field on the Settings screen."""
    item = SETTING_FIELDS[index]
    value = get_value(config, index)
    if item.kind == "toggle":
        return "ON" if value else "OFF"
    if item.name in ("manual_lat", "manual_lon"):
        return f"{value:.4f}"
    if isinstance(value, float):
        return f"{value:.1f}"
    return str(value)


def _step(config: Config, index: int, direction: int) -> None:
    item = SETTING_FIELDS[index]
    if item.kind != "number":
        return
    value = get_value(config, index) + direction * item.step
    value = max(item.minimum, min(item.maximum, value))
    if isinstance(item.step, int):
        _set_value(config, index, int(value))
    else:
        # keep repeated 0.1 steps from drifting
        _set_value(config, index, round(float(value), 6))


def increment(config: Config, index: int) -> None:
    _step(config, index, 1)


def decrement(config: Config, index: int) -> None:
    _step(config, index, -1)


def activate(config: Config, index: int) -> None:
    """Toggle a switch or advance a choice. Numbers ignore it."""
    item = SETTING_FIELDS[index]
    if item.kind == "toggle":
        _set_value(config, index, not get_value(config, index))
    elif item.kind == "choice":
        _set_value(config, index, next_view_name(get_value(config, index)))


def next_view_name(current: str) -> str:
    try:
        position = VIEW_CHOICES.index(current)
    except ValueError:
        return VIEW_CHOICES[0]
    return VIEW_CHOICES[(position + 1) % len(VIEW_CHOICES)]


def move_cursor(index: int, delta: int) -> int:
    return (index + delta) % FIELD_COUNT
