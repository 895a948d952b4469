"""
Configuration Management for Statement Reconciliation

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Each external collaborator gets its own settings class with its own
environment prefix; the root Settings object hands them out lazily.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerApiSettings(BaseSettings):
    """Ledger / extraction backend HTTP API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_API_",
        extra="ignore"
    )

    base_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the backend serving /ai and /capital routes"
    )
    api_token: Optional[str] = Field(
        default=None,
        description="Bearer token sent with every request, if set"
    )
    timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Overall request timeout (extraction can take a minute)"
    )
    connect_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Connection timeout"
    )
    read_retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for idempotent reads (run history only)"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URL so paths can be joined with a leading slash."""
        return v.rstrip("/")


class ExtractionSettings(BaseSettings):
    """Defaults for the AI extraction request."""

    model_config = SettingsConfigDict(
        env_prefix="EXTRACTION_",
        extra="ignore"
    )

    default_model: str = Field(
        default="gpt-4o-mini",
        description="Model used when the prompt record names none"
    )
    default_prompt_version: str = Field(
        default="1",
        description="Prompt version used when the prompt record has none"
    )
    assistant_suffix: str = Field(
        default="extractor",
        description="Suffix for assistant names: <namespace>_<kind>_<suffix>"
    )


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

    # Reconciliation
    reconciliation_tolerance: float = Field(
        default=0.01,
        ge=0.0,
        description="Diff at or below this is shown as balanced"
    )

    # Import
    refresh_in_background: bool = Field(
        default=True,
        description="Schedule the ledger refresh as a background task after import"
    )

    # Audit
    audit_history_size: int = Field(
        default=1000,
        ge=1,
        description="Most recent audit events kept in memory per session"
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

    @property
    def ledger_api(self) -> LedgerApiSettings:
        return LedgerApiSettings()

    @property
    def extraction(self) -> ExtractionSettings:
        return ExtractionSettings()

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


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    "<setting_name>_error" entries for the ones that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger_api", "extraction", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
