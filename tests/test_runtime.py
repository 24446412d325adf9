"""Tests for runtime assembly from settings."""

import pytest

from sessionbridge.config import Settings
from sessionbridge.service.errors import MissingCredentialSource, TokenSigningFailed
from sessionbridge.service.runtime import Runtime, _mask_url_password, build_store, get_runtime
from sessionbridge.storage.memory import MemoryStore
from sessionbridge.storage.redis_store import RedisStore
from sessionbridge.storage.upstash import UpstashStore


def _settings(**overrides):
    base = dict(
        jwt_secret="secret",
        store_backend="memory",
        test_mode=True,
        github_client_id="id",
        github_client_secret="secret",
    )
    base.update(overrides)
    return Settings(**base)


class TestBuildStore:
    def test_memory_requires_test_mode(self):
        with pytest.raises(RuntimeError):
            build_store(_settings(test_mode=False))
        assert isinstance(build_store(_settings()), MemoryStore)

    def test_upstash_requires_url_and_token(self):
        with pytest.raises(MissingCredentialSource):
            build_store(_settings(store_backend="upstash"))

    def test_upstash(self):
        store = build_store(
            _settings(
                store_backend="upstash",
                kv_rest_api_url="https://kv.example",
                kv_rest_api_token="tok",
            )
        )
        assert isinstance(store, UpstashStore)

    def test_redis_requires_url(self):
        with pytest.raises(MissingCredentialSource):
            build_store(_settings(store_backend="redis"))

    def test_redis_in_test_mode_skips_ping(self):
        store = build_store(_settings(store_backend="redis", redis_url="redis://localhost:6399/0"))
        assert isinstance(store, RedisStore)

    def test_startup_ping_uses_store_timeout(self, monkeypatch):
        seen = {}

        class FakeSyncRedis:
            @classmethod
            def from_url(cls, url, **kwargs):
                seen.update(kwargs, url=url)
                return cls()

            def ping(self):
                seen["pinged"] = True

            def close(self):
                seen["closed"] = True

        monkeypatch.setattr("sessionbridge.storage.redis_store.Redis", FakeSyncRedis)
        store = RedisStore("redis://localhost:6399/0", socket_timeout=2.5)
        store.verify_connection()
        assert seen["socket_timeout"] == 2.5
        assert seen["socket_connect_timeout"] == 2.5
        assert seen["pinged"] and seen["closed"]


class TestRuntime:
    def test_missing_jwt_secret(self):
        with pytest.raises(TokenSigningFailed):
            Runtime(_settings(jwt_secret=None))

    def test_missing_oauth_credentials(self):
        with pytest.raises(MissingCredentialSource):
            Runtime(_settings(github_client_id=None))

    def test_singleton(self):
        assert get_runtime() is get_runtime()

    def test_wires_shared_collaborators(self):
        runtime = Runtime(_settings())
        assert runtime.sessions.store is runtime.store
        assert runtime.sessions.codec is runtime.codec


class TestMaskUrlPassword:
    def test_masks_password(self):
        assert _mask_url_password("redis://:hunter2@localhost:6379/0") == "redis://:***@localhost:6379/0"

    def test_passthrough_without_password(self):
        assert _mask_url_password("redis://localhost:6379") == "redis://localhost:6379"
        assert _mask_url_password(None) is None
