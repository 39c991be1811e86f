"""Configuration management for Pomidoras."""

import copy
from pathlib import Path
from typing import Any, Optional

import yaml  # type: ignore[import-untyped]
from jsonschema import ValidationError, validate  # type: ignore[import-untyped]

from pomidoras.constants import (
    APP_NAME,
    CLIENT_TIMEOUT,
    CONNECTION_TIMEOUT,
    DEFAULT_SOCKET_PATH,
)


class ConfigManager:
    """Manage application configuration."""

    DEFAULT_CONFIG = {
        "version": "1.0",
        "ipc": {
            "socket_path": DEFAULT_SOCKET_PATH,
            "client_timeout": CLIENT_TIMEOUT,
            "connection_timeout": CONNECTION_TIMEOUT,
        },
        "timer": {
            "default_duration": "0s",
        },
        "notifications": {
            "enabled": True,
            "backend": "auto",
            "title": APP_NAME,
            "message": "Time's up!",
            "timeout": 5,
        },
        "logging": {
            "level": "INFO",
            "file": None,
        },
    }

    CONFIG_SCHEMA = {
        "type": "object",
        "properties": {
            "version": {"type": "string"},
            "ipc": {
                "type": "object",
                "properties": {
                    "socket_path": {"type": "string", "minLength": 1},
                    "client_timeout": {"type": "number", "exclusiveMinimum": 0},
                    "connection_timeout": {"type": "number", "exclusiveMinimum": 0},
                },
            },
            "timer": {
                "type": "object",
                "properties": {
                    "default_duration": {"type": "string"},
                },
            },
            "notifications": {
                "type": "object",
                "properties": {
                    "enabled": {"type": "boolean"},
                    "backend": {"type": "string", "enum": ["auto", "plyer", "notify-send"]},
                    "title": {"type": "string"},
                    "message": {"type": "string"},
                    "timeout": {"type": "integer", "minimum": 1, "maximum": 60},
                },
            },
            "logging": {
                "type": "object",
                "properties": {
                    "level": {
                        "type": "string",
                        "enum": ["DEBUG", "INFO", "WARNING", "ERROR"],
                    },
                    "file": {"type": ["string", "null"]},
                },
            },
        },
        "required": ["version"],
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to config file. Defaults to ~/.pomidoras/config.yml
        """
        if config_path is None:
            config_path = Path.home() / ".pomidoras" / "config.yml"
        self.config_path = config_path
        self._config: dict[str, Any] = {}
        self._load_or_create()

    def _load_or_create(self) -> None:
        """Load existing config or create default."""
        if self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f) or {}
            self._config = self._merge_with_defaults(loaded_config)
            try:
                self._validate()
            except ValueError as e:
                # Keep the broken file around for the user, continue on defaults
                backup_path = self.config_path.with_suffix(".yml.backup")
                self.config_path.rename(backup_path)
                self._config = copy.deepcopy(self.DEFAULT_CONFIG)
                self._save()
                raise ValueError(
                    f"Config validation failed, backed up to {backup_path}. "
                    f"Using defaults. Error: {e}"
                )
        else:
            self._config = copy.deepcopy(self.DEFAULT_CONFIG)
            self._save()

    def _merge_with_defaults(self, config: dict[str, Any]) -> dict[str, Any]:
        """Merge config with defaults to ensure all keys exist."""
        result = copy.deepcopy(self.DEFAULT_CONFIG)
        if isinstance(config, dict):
            self._deep_merge(result, config)
        return result

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> None:
        """Deep merge override into base dictionary (in-place)."""
        for key, value in override.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value using dot notation.

        Args:
            key: Configuration key in dot notation (e.g., 'ipc.socket_path')
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get('notifications.enabled')
            True
            >>> config.get('nonexistent.key', 'default')
            'default'
        """
        keys = key.split(".")
        value: Any = self._config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default
        return value

    @property
    def socket_path(self) -> Path:
        """Configured daemon socket path, with ``~`` expanded."""
        return Path(self.get("ipc.socket_path", DEFAULT_SOCKET_PATH)).expanduser()

    @property
    def log_file(self) -> Optional[Path]:
        """Configured daemon log file, or None to log to stderr only."""
        log_file = self.get("logging.file")
        return Path(log_file).expanduser() if log_file else None

    def _validate(self) -> None:
        """Validate configuration against schema.

        Raises:
            ValueError: If configuration is invalid
        """
        try:
            validate(instance=self._config, schema=self.CONFIG_SCHEMA)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e.message}")

    def _save(self) -> None:
        """Write the configuration file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self._config, f, default_flow_style=False, sort_keys=False, allow_unicode=True
            )
