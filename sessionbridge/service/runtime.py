from __future__ import annotations

import asyncio
import threading
from typing import Optional
from urllib.parse import urlparse, urlunparse

from sessionbridge.config import Settings, StoreBackend, get_settings, reset_settings_cache
from sessionbridge.logging import get_logger
from sessionbridge.service.errors import MissingCredentialSource
from sessionbridge.service.github import GitHubProjectsClient
from sessionbridge.service.oauth import GitHubOAuthClient
from sessionbridge.service.sessions import SessionManager
from sessionbridge.service.tokens import TokenCodec
from sessionbridge.storage.base import SessionStore
from sessionbridge.storage.memory import MemoryStore
from sessionbridge.storage.redis_store import RedisStore
from sessionbridge.storage.upstash import UpstashStore

logger = get_logger(__name__)


def _mask_url_password(url: Optional[str]) -> Optional[str]:
    """Mask the password component of a URL for logging.

    Example: redis://:secret@localhost:6379 -> redis://:***@localhost:6379
    """
    if not url:
        return url
    try:
        parsed = urlparse(url)
        if parsed.password:
            netloc = parsed.hostname or ""
            if parsed.port:
                netloc = f"{netloc}:{parsed.port}"
            if parsed.username:
                netloc = f"{parsed.username}:***@{netloc}"
            else:
                netloc = f":***@{netloc}"
            return urlunparse((
                parsed.scheme,
                netloc,
                parsed.path,
                parsed.params,
                parsed.query,
                parsed.fragment,
            ))
        return url
    except ValueError:
        return "***url_parse_error***"


def build_store(settings: Settings) -> SessionStore:
    backend = settings.store_backend
    if backend == StoreBackend.MEMORY:
        if not settings.test_mode:
            raise RuntimeError(
                "STORE_BACKEND=memory loses sessions on restart; set TEST_MODE=true to use it"
            )
        return MemoryStore()
    if backend == StoreBackend.REDIS:
        if not settings.redis_url:
            raise MissingCredentialSource("REDIS_URL not configured")
        store = RedisStore(settings.redis_url, socket_timeout=settings.store_timeout_seconds)
        if not settings.test_mode:
            store.verify_connection()
        return store
    return UpstashStore(
        settings.kv_rest_api_url,
        settings.kv_rest_api_token,
        timeout=settings.store_timeout_seconds,
    )


class Runtime:
    """Holds the shared store, codec and session manager for the FastAPI app.

    Built once per process; nothing here is mutated after construction.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        logger.info(
            "runtime_init_started",
            store_backend=self.settings.store_backend.value,
            oauth_state_mode=self.settings.oauth_state_mode.value,
            test_mode=self.settings.test_mode,
        )

        self.codec = TokenCodec(self.settings.jwt_secret, issuer=self.settings.jwt_issuer)

        try:
            self.store = build_store(self.settings)
        except Exception as exc:
            logger.error(
                "runtime_store_init_failed",
                store_backend=self.settings.store_backend.value,
                redis_url=_mask_url_password(self.settings.redis_url),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        self.oauth = GitHubOAuthClient(
            self.settings.github_client_id,
            self.settings.github_client_secret,
            token_url=self.settings.github_token_url,
            timeout=self.settings.oauth_timeout_seconds,
        )
        self.sessions = SessionManager(self.store, self.codec, self.oauth, self.settings)
        logger.info("runtime_init_completed", store_type=type(self.store).__name__)

    def projects_client(self, access_token: str) -> GitHubProjectsClient:
        return GitHubProjectsClient(
            access_token,
            graphql_url=self.settings.github_graphql_url,
            timeout=self.settings.oauth_timeout_seconds,
        )

    async def close(self) -> None:
        await self.store.close()


runtime: Runtime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    """Get or create the Runtime singleton in a thread-safe manner.

    Construction failures (missing secret or credentials) propagate to the
    caller and are classified like any other request error.
    """
    global runtime
    if runtime is not None:
        return runtime
    with _runtime_lock:
        if runtime is None:
            runtime = Runtime()
        return runtime


def reset_runtime_for_tests() -> Runtime:
    """Reinitialize the runtime singleton for isolated test runs."""
    global runtime

    with _runtime_lock:
        if runtime is not None:
            try:
                loop = asyncio.get_running_loop()
                loop.create_task(runtime.close())
            except RuntimeError:
                asyncio.run(runtime.close())

        reset_settings_cache()
        settings = get_settings()
        if not settings.test_mode:
            raise RuntimeError("runtime reset is only allowed in TEST_MODE")
        runtime = Runtime(settings)
        return runtime
