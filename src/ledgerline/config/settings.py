"""Configuration settings for Ledgerline."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings read from environment variables or a .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Backend API
    api_url: str = Field(
        default="http://localhost:5000", validation_alias="LEDGERLINE_API_URL"
    )
    api_token: SecretStr | None = Field(default=None, validation_alias="LEDGERLINE_API_TOKEN")
    username: str | None = Field(default=None, validation_alias="LEDGERLINE_USERNAME")
    password: SecretStr | None = Field(default=None, validation_alias="LEDGERLINE_PASSWORD")
    timeout: float = Field(default=30.0, validation_alias="LEDGERLINE_TIMEOUT")
    max_retries: int = Field(default=3, validation_alias="LEDGERLINE_MAX_RETRIES")

    # Fallback fiscal year end, used when a client has none configured
    fiscal_year_end_month: int = Field(
        default=12, ge=1, le=12, validation_alias="FISCAL_YEAR_END_MONTH"
    )
    fiscal_year_end_day: int = Field(
        default=31, ge=1, le=31, validation_alias="FISCAL_YEAR_END_DAY"
    )

    # Exports
    firm_name: str = Field(default="Ledgerline", validation_alias="FIRM_NAME")
    export_dir: str = Field(default="exports", validation_alias="EXPORT_DIR")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
