"""
Configuration Management for Pocket Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

All configuration is centralized here, one settings class per concern,
each with its own environment prefix.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Document store backend configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_STORAGE_",
        extra="ignore"
    )

    backend: Literal["memory", "sqlite"] = Field(
        default="memory",
        description="Which document store backend to use"
    )
    sqlite_path: str = Field(
        default="pocketledger.db",
        description="Path to the SQLite database file (sqlite backend only)"
    )
    retry_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts for a storage call that hits a locked database"
    )

    @field_validator('sqlite_path')
    @classmethod
    def validate_sqlite_path(cls, v: str) -> str:
        """The parent directory must exist unless this is an in-memory database."""
        if v != ":memory:":
            parent = Path(v).expanduser().parent
            if not parent.exists():
                raise ValueError(f"Directory for SQLite database does not exist: {parent}")
        return v


class ImportSettings(BaseSettings):
    """CSV import configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_IMPORT_",
        extra="ignore"
    )

    default_category: str = Field(
        default="Other",
        min_length=1,
        description="Category used when a row has none"
    )
    default_type: Literal["income", "expense", "subscription"] = Field(
        default="expense",
        description="Transaction type used when a row has none or an unknown one"
    )
    date_formats: str = Field(
        default="%Y/%m/%d,%m/%d/%Y,%d/%m/%Y,%d-%m-%Y,%d.%m.%Y",
        description="Comma-separated strptime formats tried after ISO dates"
    )
    max_rows: int = Field(
        default=5000,
        ge=1,
        description="Maximum number of data rows accepted in one file"
    )

    @property
    def date_formats_list(self) -> list[str]:
        """Get date formats as a list."""
        return [fmt.strip() for fmt in self.date_formats.split(",") if fmt.strip()]


class BudgetSettings(BaseSettings):
    """Budget status thresholds (percent of limit spent)."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_BUDGET_",
        extra="ignore"
    )

    warning_threshold_percent: float = Field(
        default=80.0,
        gt=0,
        description="At or above this percentage a budget is in warning"
    )
    exceeded_threshold_percent: float = Field(
        default=100.0,
        gt=0,
        description="Above this percentage a budget is exceeded"
    )

    @model_validator(mode='after')
    def validate_order(self) -> 'BudgetSettings':
        if self.warning_threshold_percent > self.exceeded_threshold_percent:
            raise ValueError("Warning threshold cannot be above the exceeded threshold")
        return self


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
    log_level: str = Field(
        default="INFO",
        description="Level for the structured local log"
    )

    # Money display
    currency_code: str = Field(
        default="INR",
        min_length=3,
        max_length=3,
        description="ISO currency code all amounts are recorded in"
    )
    currency_symbol: str = Field(
        default="₹",
        description="Symbol used when formatting amounts"
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
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def imports(self) -> ImportSettings:
        return ImportSettings()

    @property
    def budgets(self) -> BudgetSettings:
        return BudgetSettings()

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
    {setting_name}_error entries for the ones that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "imports", "budgets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
