"""Configuration management for framelog."""

import copy
from dataclasses import dataclass
from datetime import timedelta, tzinfo
from pathlib import Path
from typing import Any, Optional

import yaml  # type: ignore[import-untyped]
from jsonschema import ValidationError, validate  # type: ignore[import-untyped]

from framelog.core.timefmt import (
    DEFAULT_DATE_FORMAT,
    DEFAULT_DURATION_FORMAT,
    DEFAULT_TIME_FORMAT,
    format_duration,
    format_instant,
    get_timezone,
    utcnow,
)

INSTANT_FORMAT_KEYS = ("general.date_format", "general.time_format")
DURATION_FORMAT_KEYS = ("general.duration_format", "display.duration_format")


class ConfigManager:
    """Manage application configuration."""

    DEFAULT_CONFIG = {
        "version": "1.0",
        "general": {
            "data_dir": "~/.framelog/data",
            "timezone": "UTC",
            "date_format": DEFAULT_DATE_FORMAT,
            "time_format": DEFAULT_TIME_FORMAT,
            "duration_format": DEFAULT_DURATION_FORMAT,
        },
        "display": {
            "duration_format": None,
            "table_style": "box",
        },
        "report": {
            "default_format": "table",
        },
        "advanced": {
            "log_level": "WARNING",
        },
    }

    CONFIG_SCHEMA = {
        "type": "object",
        "properties": {
            "version": {"type": "string"},
            "general": {
                "type": "object",
                "properties": {
                    "data_dir": {"type": "string"},
                    "timezone": {"type": "string"},
                    "date_format": {"type": "string", "minLength": 1},
                    "time_format": {"type": "string", "minLength": 1},
                    "duration_format": {"type": "string", "minLength": 1},
                },
            },
            "display": {
                "type": "object",
                "properties": {
                    "duration_format": {"type": ["string", "null"]},
                    "table_style": {"type": "string", "enum": ["box", "plain"]},
                },
            },
            "report": {
                "type": "object",
                "properties": {
                    "default_format": {"type": "string", "enum": ["table", "csv", "json"]},
                },
            },
            "advanced": {
                "type": "object",
                "properties": {
                    "log_level": {
                        "type": "string",
                        "enum": ["DEBUG", "INFO", "WARNING", "ERROR"],
                    },
                },
            },
        },
        "required": ["version"],
    }

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to config file. Defaults to ~/.framelog/config.yml
        """
        if config_path is None:
            config_path = Path.home() / ".framelog" / "config.yml"
        self.config_path = Path(config_path)
        self._config: dict[str, Any] = {}
        self._load_or_create()

    def _load_or_create(self) -> None:
        """Load existing config or create default."""
        if self.config_path.exists():
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f) or {}
            self._config = self._merge_with_defaults(loaded_config)
            try:
                self.validate()
            except ValueError as e:
                # Keep the broken file around and start over from defaults
                backup_path = self.config_path.with_suffix(".yml.backup")
                self.config_path.rename(backup_path)
                self._config = copy.deepcopy(self.DEFAULT_CONFIG)
                self.save()
                raise ValueError(
                    f"Config validation failed, backed up to {backup_path}. "
                    f"Using defaults. Error: {e}"
                )
        else:
            self._config = copy.deepcopy(self.DEFAULT_CONFIG)
            self.save()

    def _merge_with_defaults(self, config: dict[str, Any]) -> dict[str, Any]:
        """Merge config with defaults to ensure all keys exist."""
        result = copy.deepcopy(self.DEFAULT_CONFIG)
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
            key: Configuration key in dot notation (e.g., 'general.timezone')
            default: Default value if key not found

        Returns:
            Configuration value or default

        Example:
            >>> config.get('general.timezone')
            'UTC'
            >>> config.get('nonexistent.key', 'default')
            'default'
        """
        value: Any = self._config
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
            if value is None:
                return default
        return value

    def set(self, key: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key: Configuration key in dot notation
            value: Value to set

        Raises:
            ValueError: If configuration is invalid after setting
        """
        keys = key.split(".")
        candidate = copy.deepcopy(self._config)
        config = candidate
        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value

        self._validate_config(candidate)
        self._check_value(key, value)
        self._config = candidate
        self.save()

    def _check_value(self, key: str, value: Any) -> None:
        """Render a sample with a new timezone or pattern so bad values are never saved."""
        if value is None:
            return
        if key == "general.timezone":
            get_timezone(value)
        elif key in INSTANT_FORMAT_KEYS:
            format_instant(utcnow(), value, "UTC")
        elif key in DURATION_FORMAT_KEYS:
            format_duration(timedelta(0), value)

    def _validate_config(self, config: dict[str, Any]) -> None:
        try:
            validate(instance=config, schema=self.CONFIG_SCHEMA)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e.message}")

    def validate(self) -> bool:
        """Validate configuration against schema.

        Returns:
            True if valid

        Raises:
            ValueError: If configuration is invalid
        """
        self._validate_config(self._config)
        return True

    def save(self) -> None:
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, "w", encoding="utf-8") as f:
            yaml.dump(
                self._config, f, default_flow_style=False, sort_keys=False, allow_unicode=True
            )

    def reset(self) -> None:
        """Reset to default configuration."""
        self._config = copy.deepcopy(self.DEFAULT_CONFIG)
        self.save()

    def to_dict(self) -> dict[str, Any]:
        """Get full configuration as dictionary."""
        return copy.deepcopy(self._config)

    @property
    def data_dir(self) -> Path:
        """Data directory with ``~`` expanded."""
        return Path(self.get("general.data_dir")).expanduser()


@dataclass(frozen=True)
class ReportConfig:
    """Display settings handed explicitly to report building and rendering.

    Attributes:
        timezone: Display timezone name
        date_format: Date template
        time_format: Time template
        duration_format: Duration template shared by all renderers
        table_duration_format: Duration template for the table renderer only
        table_style: Table border style ('box' or 'plain')

    Raises:
        ValueError: If the timezone is unknown or a pattern does not render
    """

    timezone: str = "UTC"
    date_format: str = DEFAULT_DATE_FORMAT
    time_format: str = DEFAULT_TIME_FORMAT
    duration_format: str = DEFAULT_DURATION_FORMAT
    table_duration_format: Optional[str] = None
    table_style: str = "box"

    def __post_init__(self) -> None:
        get_timezone(self.timezone)
        sample = utcnow()
        format_instant(sample, self.date_format, "UTC")
        format_instant(sample, self.time_format, "UTC")
        format_duration(timedelta(0), self.duration_format)
        if self.table_duration_format is not None:
            format_duration(timedelta(0), self.table_duration_format)

    @property
    def tz(self) -> tzinfo:
        return get_timezone(self.timezone)

    @classmethod
    def from_manager(cls, config: ConfigManager) -> "ReportConfig":
        """Build report settings from the loaded configuration file.

        Raises:
            ValueError: If the configured timezone is unknown or a pattern does not render
        """
        return cls(
            timezone=config.get("general.timezone", "UTC"),
            date_format=config.get("general.date_format", DEFAULT_DATE_FORMAT),
            time_format=config.get("general.time_format", DEFAULT_TIME_FORMAT),
            duration_format=config.get("general.duration_format", DEFAULT_DURATION_FORMAT),
            table_duration_format=config.get("display.duration_format"),
            table_style=config.get("display.table_style", "box"),
        )
