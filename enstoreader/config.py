"""Configuration loading from YAML and command line overrides."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml

from .exceptions import UsageError
from .models import (
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_UNREADABLE_WARNING_THRESHOLD,
    Mode,
    SessionConfig,
)

logger = logging.getLogger(__name__)

DEFAULTS: dict[str, Any] = {
    "pairing_dir": Path("."),
    "poll_interval": DEFAULT_POLL_INTERVAL,
    "scan_timeout": None,
    "connect_timeout": DEFAULT_CONNECT_TIMEOUT,
    "unreadable_warning_threshold": DEFAULT_UNREADABLE_WARNING_THRESHOLD,
}


def _directory(value: Any) -> Path:
    return Path(str(value)).expanduser()


def _positive_float(value: Any) -> float:
    number = float(value)
    if number <= 0:
        raise ValueError(f"must be positive, got {value}")
    return number


def _positive_int(value: Any) -> int:
    number = int(value)
    if number <= 0:
        raise ValueError(f"must be positive, got {value}")
    return number


_PARSERS = {
    "pairing_dir": _directory,
    "poll_interval": _positive_float,
    "scan_timeout": _positive_float,
    "connect_timeout": _positive_float,
    "unreadable_warning_threshold": _positive_int,
}


def load_config(config_path: Optional[Path]) -> dict[str, Any]:
    """Load settings from a YAML file, falling back to defaults.

    Invalid values are logged and replaced by their default.
    """
    settings = dict(DEFAULTS)
    if config_path is None:
        return settings

    if not config_path.exists():
        raise UsageError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise UsageError(f"Cannot read configuration file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise UsageError(f"Invalid configuration file {config_path}: {e}") from e

    if not data:
        data = {}
    if not isinstance(data, dict):
        raise UsageError(f"Configuration file {config_path} must contain a mapping")

    for key, value in data.items():
        parser = _PARSERS.get(key)
        if parser is None:
            logger.warning("Unknown configuration key: %s", key)
            continue
        if value is None:
            continue
        try:
            settings[key] = parser(value)
            logger.debug("Config %s = %s", key, settings[key])
        except (TypeError, ValueError) as e:
            logger.warning("Invalid value for %s: %s - %s", key, value, e)

    logger.debug("Loaded configuration from %s", config_path)
    return settings


def build_session_config(
    mode: Mode,
    target_address: Optional[str] = None,
    keep_reading: bool = False,
    verbosity: int = 0,
    config_path: Optional[Path] = None,
    pairing_dir: Optional[Path] = None,
) -> SessionConfig:
    """Merge file settings and command line options into a SessionConfig.

    Raises:
        UsageError: missing or invalid address, or unusable config file
    """
    settings = load_config(config_path)
    if pairing_dir is not None:
        settings["pairing_dir"] = pairing_dir

    return SessionConfig(
        mode=mode,
        target_address=target_address,
        keep_reading=keep_reading,
        verbosity=verbosity,
        **settings,
    )
