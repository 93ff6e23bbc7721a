"""
Configuration package for the Dish Scan Backend.
"""

from .settings import (
    Settings,
    Environment,
    LogLevel,
    ScanSettings,
    InferenceSettings,
    ThumbnailSettings,
    settings,
    get_settings,
    reload_settings,
)

__all__ = [
    "Settings",
    "Environment",
    "LogLevel",
    "ScanSettings",
    "InferenceSettings",
    "ThumbnailSettings",
    "settings",
    "get_settings",
    "reload_settings",
]
