"""Configuration package."""

from statement_recon.config.settings import (
    AppSettings,
    ExtractionSettings,
    LedgerApiSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ExtractionSettings",
    "LedgerApiSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
