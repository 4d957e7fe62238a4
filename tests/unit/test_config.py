"""Tests for environment-driven settings."""
import pytest
from pydantic import ValidationError

from app.core.config import Settings
from conftest import make_settings


class TestAllowedOrigins:
    def test_defaults_outside_production(self):
        cfg = make_settings()
        assert cfg.ALLOWED_ORIGINS == ["http://localhost:3000", "http://127.0.0.1:3000"]

    def test_csv_from_environment(self, monkeypatch):
        monkeypatch.setenv(
            "ALLOWED_ORIGINS", "https://example.com, https://www.example.com"
        )
        cfg = Settings(_env_file=None)
        assert cfg.ALLOWED_ORIGINS == ["https://example.com", "https://www.example.com"]

    def test_json_list_from_environment(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_ORIGINS", '["https://example.com"]')
        cfg = Settings(_env_file=None)
        assert cfg.ALLOWED_ORIGINS == ["https://example.com"]

    def test_production_requires_origins(self):
        with pytest.raises(ValidationError, match="ALLOWED_ORIGINS"):
            make_settings(ENVIRONMENT="production", ALLOWED_ORIGINS="")

    def test_production_with_origins(self):
        cfg = make_settings(ENVIRONMENT="production", ALLOWED_ORIGINS="https://example.com")
        assert cfg.ALLOWED_ORIGINS == ["https://example.com"]

    def test_no_wildcard_methods_or_headers(self):
        cfg = make_settings()
        assert "*" not in cfg.ALLOWED_METHODS
        assert "*" not in cfg.ALLOWED_HEADERS
        assert "POST" in cfg.ALLOWED_METHODS


class TestDefaults:
    def test_rate_limit_defaults(self):
        cfg = make_settings()
        assert cfg.RATE_LIMIT_WINDOW_SECONDS == 3600
        assert cfg.RATE_LIMIT_MAX_REQUESTS == 5
        assert cfg.RATE_LIMIT_RETRY_AFTER == 3600

    def test_server_defaults(self):
        cfg = Settings(_env_file=None, ENVIRONMENT="test")
        assert cfg.PORT == 3001
        assert cfg.SMTP_PORT == 587
        assert cfg.SMTP_SECURE is False

    def test_log_level_is_upper_cased(self):
        assert make_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_trusted_proxies_csv(self):
        cfg = make_settings(TRUSTED_PROXIES="10.0.0.0/8,172.16.0.0/12")
        assert cfg.TRUSTED_PROXIES == ["10.0.0.0/8", "172.16.0.0/12"]

    def test_password_is_secret(self):
        cfg = make_settings(SMTP_PASSWORD="hunter2")
        assert "hunter2" not in repr(cfg)
        assert cfg.SMTP_PASSWORD.get_secret_value() == "hunter2"


class TestDerived:
    def test_email_configured(self):
        assert make_settings().email_configured is True
        assert make_settings(SMTP_HOST=None).email_configured is False
        assert make_settings(ADMIN_EMAIL=None).email_configured is False

    def test_sender_address(self):
        assert make_settings().sender_address == "noreply@example.com"
        assert make_settings(FROM_EMAIL=None).sender_address == "mailer@example.com"


class TestLengthBounds:
    def test_min_above_max_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(MESSAGE_MIN_LENGTH=50, MESSAGE_MAX_LENGTH=20)

    def test_non_positive_rate_limit_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(RATE_LIMIT_MAX_REQUESTS=0)
