"""
Configuration Management for MonthWise

Uses pydantic-settings for type-safe configuration from environment variables.
Every variable carries the MONTHWISE_ prefix and may also come from a .env file.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """On-device database configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONTHWISE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    database_path: Path = Field(
        default=Path("monthwise.db"),
        description="Path of the SQLite database file"
    )

    @field_validator('database_path')
    @classmethod
    def expand_database_path(cls, v: Path) -> Path:
        """Resolve ~ so the engine always receives a usable path."""
        return v.expanduser()


class LoggingSettings(BaseSettings):
    """structlog configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONTHWISE_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    json_output: bool = Field(
        default=True,
        description="Render log lines as JSON instead of console text"
    )

    @field_validator('level')
    @classmethod
    def normalize_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="MONTHWISE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_version: str = Field(
        default="1.0.0",
        description="Version string written into backup documents"
    )
    max_profiles: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum number of profiles per installation"
    )
    default_currency: str = Field(
        default="USD",
        min_length=3,
        max_length=3,
        description="Currency code used until the user picks one"
    )

    @field_validator('default_currency')
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.upper()


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def logging(self) -> LoggingSettings:
        return LoggingSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()
