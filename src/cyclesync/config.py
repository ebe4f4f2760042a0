"""
Configuration loading and validation.

Settings live in a YAML file with ``app``, ``ble``, ``speed`` and ``video``
sections. Values missing from the file fall back to DEFAULT_CONFIG.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Union

import yaml

from .core import SPEED_CONVERSION
from .errors import ConfigError

logger = logging.getLogger(__name__)

LOG_LEVELS = ("debug", "info", "warning", "error")

DEFAULT_CONFIG: dict[str, Any] = {
    "app": {
        "log_level": "info",
    },
    "ble": {
        "sensor_address": "",
        "scan_timeout_secs": 30,
        "connect_timeout_secs": 10.0,
    },
    "speed": {
        "smoothing_window": 5,
        "speed_threshold": 0.25,
        "wheel_circumference_mm": 1932,
        "speed_units": "km/h",
    },
    "video": {
        "file_path": "",
        "update_interval_secs": 1.0,
        "speed_multiplier": 1.0,
        "reference_speed": 10.0,
        "osd": {
            "display_cycle_speed": True,
            "display_playback_speed": True,
        },
    },
}


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _require_positive(section: str, name: str, value: Any) -> None:
    if not _is_number(value) or value <= 0:
        raise ConfigError(f"{section}.{name} must be a positive number, got {value!r}")


@dataclass(slots=True)
class AppConfig:
    log_level: str

    def __post_init__(self) -> None:
        if str(self.log_level).lower() not in LOG_LEVELS:
            raise ConfigError(
                f"app.log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level!r}"
            )
        self.log_level = str(self.log_level).lower()


@dataclass(slots=True)
class BLEConfig:
    sensor_address: str
    scan_timeout_secs: int
    connect_timeout_secs: float

    def __post_init__(self) -> None:
        if not isinstance(self.sensor_address, str):
            raise ConfigError(
                f"ble.sensor_address must be a string (quote it in YAML), "
                f"got {self.sensor_address!r}"
            )
        if not self.sensor_address.strip():
            raise ConfigError("ble.sensor_address must be set to the sensor's address")
        self.sensor_address = self.sensor_address.strip()
        if (
            not isinstance(self.scan_timeout_secs, int)
            or isinstance(self.scan_timeout_secs, bool)
            or self.scan_timeout_secs <= 0
        ):
            raise ConfigError(
                f"ble.scan_timeout_secs must be an integer > 0, got {self.scan_timeout_secs!r}"
            )
        _require_positive("ble", "connect_timeout_secs", self.connect_timeout_secs)


@dataclass(slots=True)
class SpeedConfig:
    smoothing_window: int
    speed_threshold: float
    wheel_circumference_mm: float
    speed_units: str

    def __post_init__(self) -> None:
        if (
            not isinstance(self.smoothing_window, int)
            or isinstance(self.smoothing_window, bool)
            or self.smoothing_window < 1
        ):
            raise ConfigError(
                f"speed.smoothing_window must be an integer >= 1, got {self.smoothing_window!r}"
            )
        if not _is_number(self.speed_threshold) or self.speed_threshold < 0:
            raise ConfigError(
                f"speed.speed_threshold must be >= 0, got {self.speed_threshold!r}"
            )
        _require_positive("speed", "wheel_circumference_mm", self.wheel_circumference_mm)
        if self.speed_units not in SPEED_CONVERSION:
            raise ConfigError(
                f"speed.speed_units must be one of {', '.join(SPEED_CONVERSION)}, "
                f"got {self.speed_units!r}"
            )


@dataclass(slots=True)
class OSDConfig:
    display_cycle_speed: bool
    display_playback_speed: bool


@dataclass(slots=True)
class VideoConfig:
    file_path: str
    update_interval_secs: float
    speed_multiplier: float
    reference_speed: float
    osd: OSDConfig

    def __post_init__(self) -> None:
        _require_positive("video", "update_interval_secs", self.update_interval_secs)
        _require_positive("video", "speed_multiplier", self.speed_multiplier)
        _require_positive("video", "reference_speed", self.reference_speed)


@dataclass(slots=True)
class Config:
    app: AppConfig
    ble: BLEConfig
    speed: SpeedConfig
    video: VideoConfig

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Config":
        """Build a validated Config from a (partial) settings mapping.

        Args:
            raw: Nested settings, merged over DEFAULT_CONFIG

        Returns:
            Validated Config

        Raises:
            ConfigError: If a section is malformed or a value is out of range
        """
        merged = _deep_merge(DEFAULT_CONFIG, raw)
        for section in DEFAULT_CONFIG:
            if not isinstance(merged[section], dict):
                raise ConfigError(f"{section} must be a mapping, got {merged[section]!r}")
        video = dict(merged["video"])
        if not isinstance(video["osd"], dict):
            raise ConfigError(f"video.osd must be a mapping, got {video['osd']!r}")

        try:
            osd = OSDConfig(**video.pop("osd"))
            return cls(
                app=AppConfig(**merged["app"]),
                ble=BLEConfig(**merged["ble"]),
                speed=SpeedConfig(**merged["speed"]),
                video=VideoConfig(osd=osd, **video),
            )
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(path: Union[str, Path]) -> Config:
    """Load and validate a YAML configuration file.

    Args:
        path: Location of the YAML file

    Returns:
        Validated Config

    Raises:
        ConfigError: If the file cannot be read, parsed or validated
    """
    config_path = Path(path)
    try:
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse configuration file {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration file {config_path} must contain a mapping")

    config = Config.from_dict(raw)
    logger.debug(f"Loaded configuration from {config_path}")
    return config
