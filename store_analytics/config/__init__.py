"""
Store Analytics Reporting Pipeline
Configuration Module
"""
from .settings import (
    CleaningSettings,
    DataLakeSettings,
    LifecycleSettings,
    RiskSettings,
    Settings,
    WindowSettings,
    get_settings,
)

__all__ = [
    "CleaningSettings",
    "DataLakeSettings",
    "LifecycleSettings",
    "RiskSettings",
    "Settings",
    "WindowSettings",
    "get_settings",
]
