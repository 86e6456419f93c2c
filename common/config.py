"""Configuration management for the Redwood flight dashboard.

Settings live in ``config.yaml`` in the working directory. The file is read
once at startup and written back only when the user saves from the
Settings screen. ``ruamel.yaml`` is used in round-trip mode so comments a
user added to the file survive a save.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap
from ruamel.yaml.error import YAMLError

from common.logging_setup import get_logger

logger = get_logger(__name__)

CONFIG_PATH = Path("config.yaml")


class ConfigError(Exception):
    """Raised when the configuration file cannot be written."""
    pass


@dataclass
class LocationConfig:
    """Observer position and search radius."""

    # Resolve the observer position by IP geolocation at startup
    auto_locate: bool = True
    manual_lat: float = 37.7749
    manual_lon: float = -122.4194
    # Radius of the OpenSky bounding box in kilometres
    detection_radius_km: float = 50.0


@dataclass
class ApiConfig:
    """Remote data source settings."""

    poll_interval_seconds: int = 30
    request_timeout_seconds: float = 10.0


@dataclass
class UiConfig:
    """Terminal UI settings."""

    default_view: str = "Dashboard"
    tick_rate_ms: int = 150


@dataclass
class DataConfig:
    """Locations of the registry dump and the SQLite cache built from it."""

    csv_path: str = "data/aircraft-database.csv"
    db_path: str = "opensky_aircraft.db"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = "logs/redwood.log"


@dataclass
class Config:
    """Configuration settings for the Redwood flight dashboard."""

    location: LocationConfig = field(default_factory=LocationConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    ui: UiConfig = field(default_factory=UiConfig)
    data: DataConfig = field(default_factory=DataConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "Config":
        """
        Build a config from parsed YAML.

        Unknown keys are ignored. A value of the wrong type falls back to
        the default for that field only.

        Args:
            data: Mapping loaded from the config file

        Returns:
            Config instance
        """
        config = cls()
        if not isinstance(data, dict):
            return config
        for section_field in fields(cls):
            section = getattr(config, section_field.name)
            values = data.get(section_field.name)
            if not isinstance(values, dict):
                continue
            for item in fields(section):
                if item.name not in values:
                    continue
                default = getattr(section, item.name)
                if values[item.name] is None and "Optional" in str(item.type):
                    setattr(section, item.name, None)
                    continue
                value = _coerce(values[item.name], default)
                if value is None and default is not None:
                    logger.warning(
                        f"Ignoring invalid value for {section_field.name}.{item.name}: "
                        f"{values[item.name]!r}"
                    )
                    continue
                setattr(section, item.name, value)
        return config

    @classmethod
    def load(cls, path: Path | str = CONFIG_PATH) -> "Config":
        """
        Load configuration from ``path``.

        A missing or unparsable file yields the defaults, and a default file
        is written so the user has something to edit. Never raises.
        """
        path = Path(path)
        yaml = YAML()
        if path.exists():
            try:
                with path.open("r", encoding="utf-8") as handle:
                    data = yaml.load(handle)
                logger.info(f"Loaded configuration from {path}")
                return cls.from_dict(data)
            except (OSError, YAMLError) as e:
                logger.warning(f"Failed to parse {path}: {e}. Using defaults.")

        config = cls()
        try:
            config.save(path)
        except ConfigError as e:
            logger.warning(f"Could not write default config: {e}")
        logger.info("Loaded default configuration.")
        return config

    def save(self, path: Path | str = CONFIG_PATH) -> None:
        """
        Write the configuration to ``path``, keeping comments already there.

        Raises:
            ConfigError: If the file cannot be written
        """
        path = Path(path)
        yaml = YAML()
        document: Any = None
        if path.exists():
            try:
                with path.open("r", encoding="utf-8") as handle:
                    document = yaml.load(handle)
            except (OSError, YAMLError):
                document = None
        if not isinstance(document, dict):
            document = CommentedMap()

        for section, values in self.to_dict().items():
            target = document.get(section)
            if not isinstance(target, dict):
                target = CommentedMap()
                document[section] = target
            for key, value in values.items():
                target[key] = value

        try:
            if path.parent != Path(""):
                path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                yaml.dump(document, handle)
        except (OSError, YAMLError) as e:
            raise ConfigError(str(e)) from e
        logger.info(f"Configuration saved to {path}")


def _coerce(value: Any, default: Any) -> Any:
    """Return ``value`` converted to the type of ``default``, or None."""
    if default is None:
        return value if value is None or isinstance(value, str) else None
    if isinstance(default, bool):
        return value if isinstance(value, bool) else None
    if isinstance(value, bool):
        return None
    if isinstance(default, int):
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        return None
    if isinstance(default, float):
        return float(value) if isinstance(value, (int, float)) else None
    if isinstance(default, str):
        return value if isinstance(value, str) else None
    return None

