"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

MOCK_DATA_FILE = Path(__file__).parent / "adapters" / "mock_salon_data.json"


class StoreConfig(BaseModel):
    """Where appointments, hours and blackout windows are stored."""
    url: Optional[str] = None
    api_key: str = ""
    timeout_seconds: int = 30
    mock_data_file: Path = MOCK_DATA_FILE

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: Optional[str]) -> Optional[str]:
        """Require an http(s) URL when one is set."""
        if value is None:
            return value
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"store.url must start with http:// or https://, got {value!r}")
        return value.rstrip("/")

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("timeout_seconds must be greater than zero")
        return value


class BookingConfig(BaseModel):
    """Booking policy."""
    advance_days: int = 30
    default_duration_minutes: int = 60

    @field_validator("advance_days")
    @classmethod
    def validate_advance_days(cls, value: int) -> int:
        if value < 0:
            raise ValueError("advance_days cannot be negative")
        return value

    @field_validator("default_duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure the default service duration is positive."""
        if value <= 0:
            raise ValueError("default_duration_minutes must be greater than zero")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    salon_name: str = "Nail Salon"
    log_level: str = "WARNING"
    store: StoreConfig = Field(default_factory=StoreConfig)
    booking: BookingConfig = Field(default_factory=BookingConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
