"""
Tests fuer Settings aus Umgebungsvariablen.
"""
import pytest
from interchange.settings import ENV_KEYS, CodecSettings, get_settings


class TestGetSettings:
    def test_defaults(self, monkeypatch):
        for key in ENV_KEYS.values():
            monkeypatch.delenv(key, raising=False)

        settings = get_settings()

        assert settings == CodecSettings()
        assert settings.feed_max_bytes == 5 * 1024 * 1024

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("INTERCHANGE_UID_DOMAIN", "example.com")
        monkeypatch.setenv("INTERCHANGE_FEED_TIMEOUT", "15")
        monkeypatch.setenv("INTERCHANGE_USER_AGENT", "Test/2.0")

        settings = get_settings()

        assert settings.uid_domain == "example.com"
        assert settings.feed_timeout == 15
        assert settings.feed_user_agent == "Test/2.0"

    def test_argument_wins(self, monkeypatch):
        monkeypatch.setenv("INTERCHANGE_UID_DOMAIN", "example.com")
        assert get_settings(uid_domain="direct.org").uid_domain == "direct.org"

    def test_invalid_integer(self, monkeypatch):
        monkeypatch.setenv("INTERCHANGE_FEED_MAX_BYTES", "lots")
        with pytest.raises(ValueError, match="INTERCHANGE_FEED_MAX_BYTES"):
            get_settings()

    def test_frozen(self):
        with pytest.raises(Exception):
            CodecSettings().uid_domain = "other"
