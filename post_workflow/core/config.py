"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = "Post Workflow"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database
    database_url: str = Field(default="sqlite:///./post_workflow.db")
    database_echo: bool = False  # Log SQL queries

    # Writes that lose a compare-and-swap race are reloaded and re-applied
    max_write_retries: int = Field(default=3, ge=1, le=20)

    # Posts one author may submit per rolling window
    post_rate_limit: int = Field(default=10, ge=1)
    post_rate_window_minutes: int = Field(default=60, ge=1)

    # Escalation / notification scheduling
    notification_timezone: str = Field(default="UTC")
    week_start_day: int = Field(
        default=0,
        ge=0,
        le=6,
        description="Weekday starting a notification week (0 = Monday)",
    )

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        return v.upper()

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
