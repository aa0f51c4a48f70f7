"""Tests for shared/config.py and shared/logging_config.py"""

from decimal import Decimal

import pytest
import structlog

from shared.config import Settings
from shared.logging_config import configure_logging


class TestSettings:
    def test_policy_defaults(self):
        settings = Settings()

        assert settings.max_failed_exam_attempts == 3
        assert settings.passing_grade == 5
        assert settings.failed_exam_refund_ratio == Decimal("0.5")
        assert settings.min_prerequisite_semester == 2

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("MAX_FAILED_EXAM_ATTEMPTS", "5")
        monkeypatch.setenv("POSTGRES_HOST", "db.internal")

        settings = Settings()

        assert settings.max_failed_exam_attempts == 5
        assert settings.async_database_url.startswith("postgresql+psycopg://")
        assert "@db.internal:5432/" in settings.async_database_url

    def test_url_override_wins(self):
        settings = Settings(database_url_override="sqlite+aiosqlite:///:memory:")
        assert settings.async_database_url == "sqlite+aiosqlite:///:memory:"

    def test_invalid_passing_grade(self):
        with pytest.raises(ValueError):
            Settings(passing_grade=11)


class TestConfigureLogging:
    def test_json_renderer_selected(self):
        configure_logging(Settings(log_format="json"), force=True)
        try:
            processors = structlog.get_config()["processors"]
            assert isinstance(processors[-1], structlog.processors.JSONRenderer)
        finally:
            configure_logging(Settings(log_format="text", log_level="WARNING"), force=True)

    def test_second_call_is_noop_without_force(self):
        configure_logging(Settings(log_format="text", log_level="WARNING"), force=True)
        configure_logging(Settings(log_format="json"))

        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)
