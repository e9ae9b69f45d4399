"""
Configuration Management for Stackr

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Thresholds that shape guardrail classification live next to the storage
settings so a deployment can see every tunable in one place.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GuardrailSettings(BaseSettings):
    """Spending guardrail classification settings."""

    model_config = SettingsConfigDict(
        env_prefix="GUARDRAIL_",
        extra="ignore"
    )

    warning_threshold: float = Field(
        default=80.0,
        gt=0.0,
        description="Percentage of a limit at which a warning is raised"
    )
    over_threshold: float = Field(
        default=100.0,
        gt=0.0,
        description="Percentage of a limit at which spending is over"
    )
    reflection_history_size: int = Field(
        default=4,
        ge=1,
        le=52,
        description="Default number of weekly reflections returned in history"
    )

    @model_validator(mode='after')
    def validate_thresholds(self) -> 'GuardrailSettings':
        """Warning must trigger before overage."""
        if self.warning_threshold >= self.over_threshold:
            raise ValueError("Warning threshold must be below the over threshold")
        return self


class ChallengeSettings(BaseSettings):
    """Savings challenge generation settings."""

    model_config = SettingsConfigDict(
        env_prefix="CHALLENGE_",
        extra="ignore"
    )

    random_seed: Optional[int] = Field(
        default=None,
        description="Seed for type/theme/tip selection (unset = nondeterministic)"
    )
    common_tip_count: int = Field(
        default=2,
        ge=0,
        le=4,
        description="Number of general tips attached to a challenge"
    )
    specific_tip_count: int = Field(
        default=3,
        ge=0,
        le=3,
        description="Number of type-specific tips attached to a challenge"
    )


class StorageSettings(BaseSettings):
    """Retry policy for storage backends."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for idempotent storage calls"
    )
    retry_min_wait_seconds: float = Field(
        default=2.0,
        ge=0.0,
        description="Minimum exponential backoff between attempts"
    )
    retry_max_wait_seconds: float = Field(
        default=10.0,
        ge=0.0,
        description="Maximum exponential backoff between attempts"
    )


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    limits_sheet_name: str = Field(
        default="SpendingLimits",
        description="Name of the sheet for spending limits"
    )
    spending_sheet_name: str = Field(
        default="SpendingLog",
        description="Name of the sheet for the spending ledger"
    )
    reflections_sheet_name: str = Field(
        default="Reflections",
        description="Name of the sheet for weekly reflections"
    )
    challenges_sheet_name: str = Field(
        default="Challenges",
        description="Name of the sheet for savings challenges"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    storage_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which storage backend the flows are wired to"
    )

    # Profile defaults used when a user has not shared their finances yet
    default_monthly_income: float = Field(
        default=3000.0,
        ge=0.0,
        description="Monthly income assumed for an empty profile"
    )
    default_savings_rate: float = Field(
        default=10.0,
        ge=0.0,
        le=100.0,
        description="Savings rate (%) assumed for an empty profile"
    )


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def guardrails(self) -> GuardrailSettings:
        return GuardrailSettings()

    @property
    def challenges(self) -> ChallengeSettings:
        return ChallengeSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "guardrails": lambda: settings.guardrails,
        "challenges": lambda: settings.challenges,
        "storage": lambda: settings.storage,
        "google_sheets": lambda: settings.google_sheets,
        "app": lambda: settings.app,
    }

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
