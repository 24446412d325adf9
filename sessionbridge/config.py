from __future__ import annotations

import os
from enum import Enum
from typing import Any

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator


TOKEN_ISSUER = "github-project-status-viewer"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_GRAPHQL_URL = "https://api.github.com/graphql"


class StoreBackend(str, Enum):
    """Key-value backends able to hold sessions and refresh-token mappings."""

    UPSTASH = "upstash"
    REDIS = "redis"
    MEMORY = "memory"


class OAuthStateMode(str, Enum):
    """How the callback treats the OAuth ``state`` parameter.

    - STORED: state must have been issued by ``/api/auth/state`` and is
      consumed on first use.
    - PRESENCE: state only has to be non-empty. Kept for extension builds that
      generate state client-side; offers no server-side CSRF protection.
    """

    STORED = "stored"
    PRESENCE = "presence"


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings read once at startup."""

    jwt_secret: str | None = env_field(None, "JWT_SECRET")
    jwt_issuer: str = env_field(TOKEN_ISSUER, "JWT_ISSUER")
    access_token_ttl_minutes: int = env_field(
        15,
        "ACCESS_TOKEN_TTL_MINUTES",
        description="Lifetime of signed access tokens; checked on every call",
    )
    refresh_token_ttl_days: int = env_field(
        30,
        "REFRESH_TOKEN_TTL_DAYS",
        description="Lifetime of refresh tokens and their store entries",
    )
    session_ttl_days: int = env_field(
        30,
        "SESSION_TTL_DAYS",
        description="Lifetime of the session -> upstream credential entry",
    )
    store_backend: StoreBackend = env_field(StoreBackend.UPSTASH, "STORE_BACKEND")
    kv_rest_api_url: str | None = env_field(None, "KV_REST_API_URL")
    kv_rest_api_token: str | None = env_field(None, "KV_REST_API_TOKEN")
    redis_url: str | None = env_field(None, "REDIS_URL")
    store_timeout_seconds: float = env_field(10.0, "STORE_TIMEOUT_SECONDS")
    github_client_id: str | None = env_field(None, "GITHUB_CLIENT_ID")
    github_client_secret: str | None = env_field(None, "GITHUB_CLIENT_SECRET")
    github_token_url: str = env_field(GITHUB_TOKEN_URL, "GITHUB_TOKEN_URL")
    github_graphql_url: str = env_field(GITHUB_GRAPHQL_URL, "GITHUB_GRAPHQL_URL")
    oauth_timeout_seconds: float = env_field(30.0, "OAUTH_TIMEOUT_SECONDS")
    oauth_state_mode: OAuthStateMode = env_field(
        OAuthStateMode.STORED,
        "OAUTH_STATE_MODE",
        description="stored: server-issued single-use state; presence: non-empty check only",
    )
    oauth_state_ttl_seconds: int = env_field(600, "OAUTH_STATE_TTL_SECONDS")
    chrome_extension_id: str | None = env_field(None, "CHROME_EXTENSION_ID")
    test_mode: bool = env_field(
        False,
        "TEST_MODE",
        description="Allow the in-memory store and skip backend connectivity checks",
    )

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator("store_backend")
    @classmethod
    def _validate_backend(cls, value: StoreBackend) -> StoreBackend:
        return StoreBackend(value)

    @field_validator("oauth_state_mode")
    @classmethod
    def _validate_state_mode(cls, value: OAuthStateMode) -> OAuthStateMode:
        return OAuthStateMode(value)

    @field_validator("jwt_secret", "github_client_id", "github_client_secret", "chrome_extension_id")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @field_validator("access_token_ttl_minutes", "refresh_token_ttl_days", "session_ttl_days")
    @classmethod
    def _positive_ttl(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("token and session lifetimes must be positive")
        return value

    @property
    def access_token_ttl_seconds(self) -> int:
        return self.access_token_ttl_minutes * 60

    @property
    def refresh_token_ttl_seconds(self) -> int:
        return self.refresh_token_ttl_days * 24 * 60 * 60

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_days * 24 * 60 * 60


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
