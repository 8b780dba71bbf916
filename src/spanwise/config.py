"""
spanwise Configuration
======================

YAML-based configuration with sensible defaults.
Loads from spanwise_config.yaml if present, otherwise uses built-in defaults.
"""

from __future__ import annotations

from pathlib import Path

import yaml


class ConfigError(ValueError):
    """Raised when a configuration value cannot be used."""


_DEFAULTS = {
    "logging": {
        "level": "info",
        "format": "%(asctime)s [%(name)s] %(levelname)s %(message)s",
        "datefmt": "%H:%M:%S",
    },
    "observation": {
        # Handler names, in notification order: "tag_logging", "tracing"
        "handlers": ["tag_logging", "tracing"],
        "tag_key": "userType",
        "tag_default": "UNKNOWN",
        "common_tags": {"application": "spanwise"},
        # Observation names that are never recorded
        "ignored_names": [],
    },
    "service": {
        "max_delay_ms": 200,
        "user_name": "foo",
    },
    "users": {
        "seed": [
            {"id": 1, "name": "alice"},
            {"id": 2, "name": "bob"},
        ],
    },
    "web": {
        "host": "127.0.0.1",
        "port": 8080,
        "exchange_capacity": 100,
        "exchange_exclude": ["actuator"],
    },
}

KNOWN_HANDLERS = ("tag_logging", "tracing")


def load_config(path: str | Path = "spanwise_config.yaml") -> dict:
    """Load configuration from YAML file, merging with defaults.

    Args:
        path: Path to YAML config file. If relative, resolved from CWD.

    Returns:
        Merged config dict with all sections populated.

    Raises:
        ConfigError: If the merged configuration is invalid.
    """
    config = {k: dict(v) for k, v in _DEFAULTS.items()}
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            user = yaml.safe_load(f) or {}
        for section, values in user.items():
            if section in config and isinstance(values, dict):
                config[section].update(values)
            else:
                config[section] = values
    validate_config(config)
    return config


def validate_config(config: dict) -> None:
    """Check the values the application cannot start without."""
    for name in config["observation"].get("handlers", []):
        if name not in KNOWN_HANDLERS:
            raise ConfigError(
                f"Unknown observation handler '{name}', expected one of {KNOWN_HANDLERS}"
            )

    max_delay = config["service"].get("max_delay_ms")
    if not isinstance(max_delay, int) or isinstance(max_delay, bool) or max_delay < 1:
        raise ConfigError(f"service.max_delay_ms must be a positive integer, got {max_delay!r}")

    capacity = config["web"].get("exchange_capacity")
    if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 1:
        raise ConfigError(f"web.exchange_capacity must be a positive integer, got {capacity!r}")
