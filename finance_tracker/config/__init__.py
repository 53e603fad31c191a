"""Configuration package."""

from finance_tracker.config.settings import (
    AppSettings,
    DebtSettings,
    ProcessorSettings,
    ProjectionSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "DebtSettings",
    "ProcessorSettings",
    "ProjectionSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
