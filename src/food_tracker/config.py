"""Configuration management for Food Tracker."""

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .backup import DEFAULT_ARCHIVE_NAME
from .models import MergePolicy


@dataclass
class DataConfig:
    """Data storage configuration."""

    storage_dir: Path
    backend: str = "json"
    photos_dir: Path | None = None

    @property
    def effective_photos_dir(self) -> Path:
        return self.photos_dir or self.storage_dir / "photos"


@dataclass
class BackupConfig:
    """Export/import configuration."""

    archive_name: str = DEFAULT_ARCHIVE_NAME
    merge_policy: MergePolicy = MergePolicy.KEEP_EXISTING


@dataclass
class Config:
    """Complete application configuration."""

    data: DataConfig
    backup: BackupConfig


class ConfigManager:
    """Manages application configuration from TOML files."""

    def __init__(self, config_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional explicit path to config file.
                        If not provided, searches standard locations.
        """
        self.config_path = config_path or self._find_config()
        self._config = self._load_config()

    @property
    def data(self) -> DataConfig:
        """Get data configuration."""
        return self._config.data

    @property
    def backup(self) -> BackupConfig:
        """Get backup configuration."""
        return self._config.backup

    def _find_config(self) -> Path:
        """Find config file in standard locations."""
        locations = [
            Path.cwd() / "config.toml",
            Path.home() / ".config" / "food-tracker" / "config.toml",
            Path.home() / ".food-tracker" / "config.toml",
        ]

        for loc in locations:
            if loc.exists():
                return loc

        # Return default location if none found
        return Path.home() / ".config" / "food-tracker" / "config.toml"

    def _load_config(self) -> Config:
        """Load configuration from TOML file."""
        if not self.config_path.exists():
            return self._default_config()

        with open(self.config_path, "rb") as f:
            data = tomllib.load(f)

        data_section = data.get("data", {})
        backup_section = data.get("backup", {})
        photos_dir = data_section.get("photos_dir")

        return Config(
            data=DataConfig(
                storage_dir=Path(
                    data_section.get("storage_dir", "~/food-tracker/data")
                ).expanduser(),
                backend=data_section.get("backend", "json"),
                photos_dir=Path(photos_dir).expanduser() if photos_dir else None,
            ),
            backup=BackupConfig(
                archive_name=backup_section.get("archive_name", DEFAULT_ARCHIVE_NAME),
                merge_policy=MergePolicy(
                    backup_section.get("merge_policy", MergePolicy.KEEP_EXISTING.value)
                ),
            ),
        )

    def _default_config(self) -> Config:
        """Return default configuration."""
        return Config(
            data=DataConfig(storage_dir=Path.home() / "food-tracker" / "data"),
            backup=BackupConfig(),
        )

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get config value by dot-notation path.

        Args:
            key_path: Dot-separated path like 'data.storage_dir'
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        value: Any = self._config

        for key in keys:
            if hasattr(value, key):
                value = getattr(value, key)
            elif isinstance(value, dict):
                value = value.get(key)
                if value is None:
                    return default
            else:
                return default

        return value if value is not None else default
