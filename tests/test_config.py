"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from sessionbridge.config import (
    TOKEN_ISSUER,
    OAuthStateMode,
    Settings,
    StoreBackend,
    get_settings,
    reset_settings_cache,
)


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.jwt_issuer == TOKEN_ISSUER
        assert settings.access_token_ttl_seconds == 900
        assert settings.refresh_token_ttl_seconds == 30 * 24 * 3600
        assert settings.session_ttl_seconds == 30 * 24 * 3600
        assert settings.store_backend == StoreBackend.UPSTASH
        assert settings.oauth_state_mode == OAuthStateMode.STORED
        assert settings.store_timeout_seconds == 10.0
        assert settings.oauth_timeout_seconds == 30.0

    def test_from_env_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ACCESS_TOKEN_TTL_MINUTES", "5")
        monkeypatch.setenv("STORE_BACKEND", "redis")
        monkeypatch.setenv("OAUTH_STATE_MODE", "presence")
        settings = Settings.from_env()
        assert settings.access_token_ttl_seconds == 300
        assert settings.store_backend == StoreBackend.REDIS
        assert settings.oauth_state_mode == OAuthStateMode.PRESENCE

    def test_blank_secret_is_none(self):
        assert Settings(jwt_secret="   ").jwt_secret is None

    def test_non_positive_ttl_rejected(self):
        with pytest.raises(ValidationError):
            Settings(access_token_ttl_minutes=0)

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValidationError):
            Settings(store_backend="dynamo")

    def test_cache_reset(self, monkeypatch):
        first = get_settings()
        assert get_settings() is first
        monkeypatch.setenv("SESSION_TTL_DAYS", "7")
        reset_settings_cache()
        assert get_settings().session_ttl_days == 7
        monkeypatch.delenv("SESSION_TTL_DAYS")
        reset_settings_cache()
