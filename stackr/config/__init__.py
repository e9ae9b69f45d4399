"""Configuration package."""

from stackr.config.settings import (
    AppSettings,
    ChallengeSettings,
    GoogleSheetsSettings,
    GuardrailSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ChallengeSettings",
    "GoogleSheetsSettings",
    "GuardrailSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
