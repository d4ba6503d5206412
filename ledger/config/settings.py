"""
Ledger Configuration

Every tunable the ledger reads comes from environment variables (or a
local .env file) through pydantic-settings.

DESIGN DECISION: The Google Sheets section is only loaded when something
asks for it. An in-memory ledger must start on a machine that has never
heard of a service account.
"""

import warnings
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GoogleSheetsSettings(BaseSettings):
    """Where the persistent ledger lives when STORAGE_BACKEND=google_sheets."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account JSON key file"
    )
    spreadsheet_id: str = Field(
        ...,
        min_length=1,
        description="Key of the spreadsheet holding the ledger"
    )

    borrowings_sheet_name: str = Field(
        default="Borrowings",
        description="Worksheet with one row per ledger entry"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Append-only worksheet of audit events"
    )

    @field_validator('credentials_path')
    @classmethod
    def warn_if_key_file_missing(cls, v: str) -> str:
        # A mounted secret may appear after start-up, so only warn
        if not Path(v).exists():
            warnings.warn(
                f"Service account key not found at {v}; "
                "Google Sheets storage will fail to connect until it exists."
            )
        return v


class AppSettings(BaseSettings):
    """Ledger behaviour and backend selection (no env prefix)."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="development, staging or production"
    )
    debug_mode: bool = False

    storage_backend: Literal["memory", "google_sheets"] = Field(
        default="memory",
        description="Where ledger entries are persisted"
    )

    default_reminder_days: int = Field(
        default=3,
        ge=0,
        description="Reminder window used when a new entry doesn't specify one"
    )
    max_principal_amount: float = Field(
        default=100_000_000.0,
        gt=0,
        description="Largest principal accepted for a new entry"
    )
    list_page_size: int = Field(
        default=6,
        ge=1,
        le=100,
        description="Entries per page in filtered listings"
    )


class Settings(BaseSettings):
    """
    Entry point for all configuration.

    Each section is built on access, so a missing GOOGLE_SHEETS_* variable
    only matters to code that actually touches the spreadsheet.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


@lru_cache()
def get_settings() -> Settings:
    """Shared Settings instance. Tests reset it with get_settings.cache_clear()."""
    return Settings()


def validate_all_settings() -> dict[str, bool | str]:
    """
    Try to load every configuration section.

    Returns {section: loaded_ok}, plus "<section>_error" holding the
    reason for each section that failed. Meant for start-up diagnostics.
    """
    settings = get_settings()
    results: dict[str, bool | str] = {}

    for section in ("app", "google_sheets"):
        try:
            getattr(settings, section)
            results[section] = True
        except Exception as e:
            results[section] = False
            results[f"{section}_error"] = str(e)

    return results
