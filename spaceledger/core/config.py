from datetime import date
from functools import lru_cache
from typing import List, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global SpaceLedger settings.
    Values are read from the environment and from a local .env file.
    """

    # Base configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Project
    project_name: str = "SpaceLedger API"
    api_v1_str: str = "/api/v1"
    debug: bool = False

    # Ledger store
    database_url: str = "sqlite:///./spaceledger.db"
    sqlite_busy_timeout_seconds: float = 15.0
    storage_retry_attempts: int = 3
    storage_retry_backoff_seconds: float = 0.05

    # CORS
    allowed_origins: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Fiscal year / invoice numbering
    fiscal_year_start_month: int = 4
    fiscal_year_start_day: int = 1
    invoice_number_prefix: str = "KS"
    invoice_number_padding: int = 4
    invoice_number_allow_gaps: bool = False
    invoice_default_due_days: int = 7

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @model_validator(mode="after")
    def _check_fiscal_year_start(self) -> "Settings":
        # 2001 is not a leap year: the start day must exist in every calendar year.
        try:
            date(2001, self.fiscal_year_start_month, self.fiscal_year_start_day)
        except ValueError as exc:
            raise ValueError(
                f"fiscal year cannot start on month {self.fiscal_year_start_month} "
                f"day {self.fiscal_year_start_day}: {exc}"
            ) from exc
        return self

    def fiscal_year_start(self, year: int) -> date:
        """Return the first day of the fiscal year that starts in ``year``."""
        return date(year, self.fiscal_year_start_month, self.fiscal_year_start_day)


@lru_cache
def get_settings() -> Settings:
    """Return the cached global settings instance."""
    return Settings()


settings = get_settings()
