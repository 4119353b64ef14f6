"""
config.py — pydantic-settings Settings class.

All environment variables for the agriprice engine are declared here.
The engine, the CLI, and the API import `settings` from this module.

Usage:
    from agriprice_shared.config import settings
    print(settings.duckdb_path)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # DuckDB
    # -------------------------------------------------------------------------
    duckdb_path: str = Field(default="./data/agriprice.duckdb")

    # -------------------------------------------------------------------------
    # Entity matching
    # -------------------------------------------------------------------------
    match_threshold: float = Field(default=0.8, ge=0.0, le=1.0)

    # -------------------------------------------------------------------------
    # Conversion pivot
    # -------------------------------------------------------------------------
    base_currency: str = Field(default="USD")
    base_unit: str = Field(default="kg")

    # -------------------------------------------------------------------------
    # Aggregation
    # -------------------------------------------------------------------------
    aggregate_retry_attempts: int = Field(default=3, ge=1)
    aggregate_retry_delay: float = Field(default=0.5, ge=0.0)
    # ISO2 of the canonical country whose observations are aggregated;
    # empty = every linked observation
    aggregate_country_code: str | None = Field(default=None)

    # -------------------------------------------------------------------------
    # API server
    # -------------------------------------------------------------------------
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000)
    cors_origins: str = Field(default="http://localhost:3000,http://localhost:3001")

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    # -------------------------------------------------------------------------
    # Derived / computed
    # -------------------------------------------------------------------------
    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @field_validator("base_currency", mode="before")
    @classmethod
    def upper_currency(cls, v: str) -> str:
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("aggregate_country_code", mode="before")
    @classmethod
    def blank_country_is_none(cls, v: str | None) -> str | None:
        if isinstance(v, str):
            v = v.strip().upper()
            return v or None
        return v


# ---------------------------------------------------------------------------
# Module-level singleton, imported everywhere
# ---------------------------------------------------------------------------
settings = Settings()
