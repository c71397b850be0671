"""
Configuration loader for Remote Display.
YAML file over built-in defaults, validated before anything starts polling.
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# Points at a single config file and disables the search below
CONFIG_ENV = "REMOTE_DISPLAY_CONFIG"

SCHEMES = ("http", "https")

DEFAULT_CONFIG = {
    "server": {
        "port": 8080,
        "host": "0.0.0.0",
    },
    "poller": {
        "scheme": "http",
        "retry_delay_ms": 100,
        "timeout_seconds": 5.0,
    },
    "storage": {
        "address_file": "~/.config/remote-display/address",
    },
    "ui": {
        "title": "Remote Display",
        "idle_hide_seconds": 2.0,
    },
    "logging": {
        "level": "INFO",
    },
}


class ConfigError(ValueError):
    """A setting has a value the viewer cannot run with."""


def get_config_paths() -> list[Path]:
    """Config file candidates, highest priority first."""
    explicit = os.environ.get(CONFIG_ENV, "")
    if explicit:
        return [Path(explicit).expanduser()]

    xdg_config = os.environ.get("XDG_CONFIG_HOME", "")
    config_home = Path(xdg_config) if xdg_config else Path.home() / ".config"
    return [
        Path.cwd() / "config.yaml",
        config_home / "remote-display" / "config.yaml",
        Path.home() / ".remote-display.yaml",
    ]


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Return ``base`` with ``override`` merged in, section by section."""
    result = base.copy()
    for key, value in override.items():
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load config from %s: %s", path, e)
        return None

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: expected a mapping of sections, got %s", path, type(data).__name__)
        return None
    return data


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load configuration from the first readable file.

    Args:
        config_path: Explicit config file path. If None, searches default locations.

    Returns:
        Configuration dictionary with defaults filled in.
    """
    paths = [config_path] if config_path else get_config_paths()

    for path in paths:
        if not path.exists():
            continue
        file_config = _read_yaml(path)
        if file_config is not None:
            logger.debug("Using config file %s", path)
            return deep_merge(copy.deepcopy(DEFAULT_CONFIG), file_config)

    return copy.deepcopy(DEFAULT_CONFIG)


def validate_config(config: Dict[str, Any]) -> None:
    """
    Reject settings that would break the viewer or the poller.

    Raises:
        ConfigError: naming the offending setting.
    """
    try:
        port = int(config["server"]["port"])
        retry_delay_ms = float(config["poller"]["retry_delay_ms"])
        timeout = float(config["poller"]["timeout_seconds"])
        float(config["ui"]["idle_hide_seconds"])
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"invalid setting: {e}") from e

    # The state feed needs port + 1 as well
    if not 0 < port < 65535:
        raise ConfigError(f"server.port must be between 1 and 65534, got {port}")
    if config["poller"]["scheme"] not in SCHEMES:
        raise ConfigError(f"poller.scheme must be one of {', '.join(SCHEMES)}")
    if retry_delay_ms < 0:
        raise ConfigError("poller.retry_delay_ms must not be negative")
    if timeout <= 0:
        raise ConfigError("poller.timeout_seconds must be positive")


class Config:
    """Validated settings with typed accessors."""

    def __init__(self, config_path: Optional[Path] = None):
        self._config = load_config(config_path)
        validate_config(self._config)

    @classmethod
    def from_dict(cls, overrides: Dict[str, Any]) -> "Config":
        """Build a config from defaults plus an in-memory override dict."""
        config = cls.__new__(cls)
        config._config = deep_merge(copy.deepcopy(DEFAULT_CONFIG), overrides)
        validate_config(config._config)
        return config

    @property
    def host(self) -> str:
        return self._config["server"]["host"]

    @property
    def port(self) -> int:
        return int(self._config["server"]["port"])

    @property
    def ws_port(self) -> int:
        """State feed websocket port (always next to the HTTP port)."""
        return self.port + 1

    @property
    def scheme(self) -> str:
        return self._config["poller"]["scheme"]

    @property
    def retry_delay(self) -> float:
        """Delay between retries of a failing target, in seconds."""
        return float(self._config["poller"]["retry_delay_ms"]) / 1000.0

    @property
    def timeout_seconds(self) -> float:
        return float(self._config["poller"]["timeout_seconds"])

    @property
    def address_file(self) -> Path:
        return Path(self._config["storage"]["address_file"]).expanduser()

    @property
    def title(self) -> str:
        return self._config["ui"]["title"]

    @property
    def idle_hide_seconds(self) -> float:
        return float(self._config["ui"]["idle_hide_seconds"])

    @property
    def log_level(self) -> str:
        return str(self._config["logging"]["level"]).upper()

    def set(self, section: str, key: str, value: Any) -> None:
        """Override a single setting (used for CLI flags) and re-validate."""
        updated = deep_merge(self._config, {section: {key: value}})
        validate_config(updated)
        self._config = updated


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create the global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config(config_path: Optional[Path] = None) -> Config:
    """Reload configuration from file."""
    global _config
    _config = Config(config_path)
    return _config
