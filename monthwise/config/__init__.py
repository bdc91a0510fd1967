"""Configuration package."""

from monthwise.config.settings import (
    AppSettings,
    LoggingSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "LoggingSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
