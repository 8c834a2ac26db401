"""Configuration loading utilities for YAML-based vault manager settings."""

from dataclasses import dataclass
import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from .logging_config import get_logger


logger = get_logger(__name__)
_BASE_DIR = Path(__file__).resolve().parent.parent
_CONFIG_PATH = _BASE_DIR / "config.yml"
CONFIG_PATH_ENV = "VAULT_MANAGER_CONFIG"

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


@dataclass(frozen=True)
class AppSettings:
    """Vault manager settings loaded from YAML configuration file."""

    app_name: str
    log_level: int
    native_token: str
    safe_confirmations: int
    environment_poll_interval_sec: float
    price_debounce_sec: float
    allow_state_override: bool


def _to_bool(value: Any, default: bool = False) -> bool:
    """Convert value to bool with a default fallback."""
    try:
        if isinstance(value, bool):
            return value
        return value.strip().lower() in {"1", "true", "yes", "on"}
    except (AttributeError, ValueError):
        logger.warning("Invalid boolean value '%s'. Using default=%s", value, default)
        return default


def _to_int(value: Any, default: int) -> int:
    """Convert value to a non-negative int with a default fallback."""
    try:
        result = int(value)
        if result < 0:
            raise ValueError(value)
        return result
    except (TypeError, ValueError):
        logger.warning("Invalid integer value '%s'. Using default=%s", value, default)
        return default


def _to_float(value: Any, default: float) -> float:
    """Convert value to a non-negative float with a default fallback."""
    try:
        result = float(value)
        if result < 0:
            raise ValueError(value)
        return result
    except (TypeError, ValueError):
        logger.warning("Invalid float value '%s'. Using default=%s", value, default)
        return default


def _to_log_level(value: Any, default: int = logging.INFO) -> int:
    """Map a level name such as ``"debug"`` to a logging level constant."""
    level = _LOG_LEVELS.get(str(value).strip().upper())
    if level is None:
        logger.warning("Invalid log level '%s'. Using default=%s", value, logging.getLevelName(default))
        return default
    return level


def _resolve_config_path(path: Optional[Union[str, Path]]) -> Path:
    """Pick explicit path, then environment override, then the bundled file."""
    if path is not None:
        return Path(path)
    env_path = os.environ.get(CONFIG_PATH_ENV)
    if env_path:
        return Path(env_path)
    return _CONFIG_PATH


def _read_config(config_path: Path) -> dict:
    """Read and parse YAML configuration."""
    try:
        with config_path.open("r", encoding="utf-8") as config_file:
            config_data = yaml.safe_load(config_file) or {}
        if not isinstance(config_data, dict):
            logger.warning("Config file %s is not a mapping. Falling back to defaults.", config_path)
            return {}
        logger.info("Configuration loaded from %s", config_path)
        return config_data
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Falling back to defaults.", config_path)
        return {}
    except (OSError, yaml.YAMLError):
        logger.exception("Failed to load config file from %s", config_path)
        return {}


def load_settings(path: Optional[Union[str, Path]] = None) -> AppSettings:
    """Load application settings from YAML.

    Args:
        path: Optional explicit config path. Defaults to ``$VAULT_MANAGER_CONFIG``
            and then to the ``config.yml`` bundled with the package.

    Returns:
        AppSettings: Parsed settings with defaults for missing or invalid keys.
    """
    config = _read_config(_resolve_config_path(path))
    app_cfg = config.get("app", {}) or {}
    vault_cfg = config.get("vault", {}) or {}
    environment_cfg = config.get("environment", {}) or {}
    testing_cfg = config.get("testing", {}) or {}

    return AppSettings(
        app_name=str(app_cfg.get("name", "Vault Manager")),
        log_level=_to_log_level(app_cfg.get("log_level", "INFO")),
        native_token=str(vault_cfg.get("native_token", "ETH")).strip().upper(),
        safe_confirmations=_to_int(vault_cfg.get("safe_confirmations", 10), 10),
        environment_poll_interval_sec=_to_float(environment_cfg.get("poll_interval_sec", 5), 5.0),
        price_debounce_sec=_to_float(environment_cfg.get("price_debounce_sec", 1), 1.0),
        allow_state_override=_to_bool(testing_cfg.get("allow_state_override", False), False),
    )
