"""Application settings and configuration management."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


def _default_config_dir() -> Path:
    """Return the default configuration directory."""
    return Path.home() / ".dietcoach"


def _default_db_path() -> Path:
    """Return the default database path."""
    return _default_config_dir() / "dietcoach.db"


@dataclass
class DatabaseConfig:
    """Database configuration."""

    path: Path = field(default_factory=_default_db_path)


@dataclass
class GeneratorConfigDefaults:
    """Generator limits used when storage has no settings row."""

    max_ingredients: int = 10
    max_flavor_items: int = 2
    protein_repeat_cap_7d: int = 2
    template_repeat_cap_7d: int = 3
    signature_retry_limit: int = 8


@dataclass
class DefaultsConfig:
    """Default values for various operations."""

    output_format: str = "table"  # "table", "json", "markdown"
    meal_slots: list[str] = field(
        default_factory=lambda: ["breakfast", "lunch", "dinner"]
    )


@dataclass
class LoggingConfig:
    """Logging configuration for the CLI."""

    level: str = "WARNING"


@dataclass
class Settings:
    """Main application settings."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    generator: GeneratorConfigDefaults = field(default_factory=GeneratorConfigDefaults)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from YAML file or return defaults.

        Args:
            config_path: Path to config.yaml. If None, uses ~/.dietcoach/config.yaml

        Returns:
            Settings instance
        """
        if config_path is None:
            config_path = _default_config_dir() / "config.yaml"

        if not config_path.exists():
            return cls()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        settings = cls()

        if "database" in data:
            db_data = data["database"] or {}
            if "path" in db_data:
                settings.database.path = Path(db_data["path"]).expanduser()

        if "generator" in data:
            gen_data = data["generator"] or {}
            for key in (
                "max_ingredients",
                "max_flavor_items",
                "protein_repeat_cap_7d",
                "template_repeat_cap_7d",
                "signature_retry_limit",
            ):
                if key in gen_data:
                    setattr(settings.generator, key, int(gen_data[key]))

        if "defaults" in data:
            def_data = data["defaults"] or {}
            if "output_format" in def_data:
                settings.defaults.output_format = def_data["output_format"]
            if "meal_slots" in def_data:
                settings.defaults.meal_slots = [str(s) for s in def_data["meal_slots"]]

        if "logging" in data:
            log_data = data["logging"] or {}
            if "level" in log_data:
                settings.logging.level = str(log_data["level"]).upper()

        return settings

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save current settings to YAML file.

        Args:
            config_path: Path to save config.yaml. If None, uses ~/.dietcoach/config.yaml
        """
        if config_path is None:
            config_path = _default_config_dir() / "config.yaml"

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "database": {
                "path": str(self.database.path),
            },
            "generator": {
                "max_ingredients": self.generator.max_ingredients,
                "max_flavor_items": self.generator.max_flavor_items,
                "protein_repeat_cap_7d": self.generator.protein_repeat_cap_7d,
                "template_repeat_cap_7d": self.generator.template_repeat_cap_7d,
                "signature_retry_limit": self.generator.signature_retry_limit,
            },
            "defaults": {
                "output_format": self.defaults.output_format,
                "meal_slots": list(self.defaults.meal_slots),
            },
            "logging": {
                "level": self.logging.level,
            },
        }

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, loading from disk if needed."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings(config_path: Optional[Path] = None) -> Settings:
    """Force reload settings from disk."""
    global _settings
    _settings = Settings.load(config_path)
    return _settings
