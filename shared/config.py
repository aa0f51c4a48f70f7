"""
Registrar Configuration

Settings for the academic policy engines and their Entity Store, read from
environment variables or a local .env file. Engines take explicit arguments
that fall back to these values.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Registrar settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = Field(default=False, description="Enable debug mode")

    # Academic policy
    max_failed_exam_attempts: int = Field(
        default=3, ge=1, description="Failed exams allowed per course before the student must switch"
    )
    passing_grade: int = Field(default=5, ge=1, le=10, description="Lowest passing exam grade")
    failed_exam_refund_ratio: Decimal = Field(
        default=Decimal("0.5"),
        ge=0,
        le=1,
        description="Share of the current amount paid refunded after a failed exam",
    )
    min_prerequisite_semester: int = Field(
        default=2, ge=1, description="Lowest semester number a course with prerequisites may run in"
    )

    # Entity Store (PostgreSQL)
    postgres_user: str = "registrar"
    postgres_password: str = "registrar"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "registrar"
    database_url_override: str | None = Field(
        default=None,
        description="Full async SQLAlchemy URL, wins over the postgres_* parts",
    )
    database_echo: bool = False
    database_pool_size: int = 10
    database_max_overflow: int = 20

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "text"] = "json"

    def _postgres_url(self, scheme: str) -> str:
        return (
            f"{scheme}://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url(self) -> str:
        """Plain PostgreSQL URL, for tools outside SQLAlchemy's async engine."""
        return self._postgres_url("postgresql")

    @property
    def async_database_url(self) -> str:
        """URL handed to ``create_async_engine``."""
        return self.database_url_override or self._postgres_url("postgresql+psycopg")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, built on first use."""
    return Settings()


settings = get_settings()
