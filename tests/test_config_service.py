"""
Tests for ConfigService.
"""
from datetime import datetime

from app.services.config_service import ConfigService


class TestConfigService:
    """Test environment-backed settings."""

    def test_environment_and_default(self, monkeypatch):
        monkeypatch.setenv("IMPORT_LIST_LIMIT", "25")
        service = ConfigService()

        assert service.get_setting("IMPORT_LIST_LIMIT") == "25"
        assert service.get_int("IMPORT_LIST_LIMIT", 50) == 25
        assert service.get_setting("NOT_SET_ANYWHERE", "fallback") == "fallback"

    def test_invalid_integer_falls_back(self, monkeypatch):
        monkeypatch.setenv("IMPORT_REQUEUE_AFTER_SECONDS", "soon")

        assert ConfigService().get_int("IMPORT_REQUEUE_AFTER_SECONDS", 300) == 300

    def test_booleans(self, monkeypatch):
        monkeypatch.setenv("DB_ECHO", "yes")
        service = ConfigService()

        assert service.get_bool("DB_ECHO") is True
        assert service.get_bool("SOMETHING_ELSE") is False

    def test_override_and_reset(self, monkeypatch):
        monkeypatch.setenv("RABBITMQ_URL", "amqp://env//")
        service = ConfigService()

        service.set_setting("RABBITMQ_URL", "amqp://override//")
        assert service.get_setting("RABBITMQ_URL") == "amqp://override//"

        service.reset()
        assert service.get_setting("RABBITMQ_URL") == "amqp://env//"

    def test_fake_time(self, monkeypatch):
        monkeypatch.setenv("APP_NOW_MODE", "fake")
        monkeypatch.setenv("APP_FAKE_NOW", "2026-03-01")
        service = ConfigService()

        assert service.is_fake_time_enabled() is True
        assert service.now() == datetime(2026, 3, 1)
        assert service.get_fake_time() == datetime(2026, 3, 1)

    def test_real_time_is_naive_utc(self, monkeypatch):
        monkeypatch.delenv("APP_NOW_MODE", raising=False)
        service = ConfigService()

        assert service.now().tzinfo is None
        assert service.get_fake_time() is None
