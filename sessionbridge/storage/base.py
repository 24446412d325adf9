from __future__ import annotations

from typing import Protocol, runtime_checkable

SESSION_KEY_PREFIX = "session:"
REFRESH_TOKEN_KEY_PREFIX = "refresh_token:"
OAUTH_STATE_KEY_PREFIX = "oauth_state:"


def session_key(session_id: str) -> str:
    return f"{SESSION_KEY_PREFIX}{session_id}"


def refresh_token_key(refresh_token_id: str) -> str:
    return f"{REFRESH_TOKEN_KEY_PREFIX}{refresh_token_id}"


def oauth_state_key(state: str) -> str:
    return f"{OAUTH_STATE_KEY_PREFIX}{state}"


@runtime_checkable
class SessionStore(Protocol):
    """Async TTL key-value store holding sessions and refresh-token mappings.

    Implementations never cache locally; every call reaches the backend.
    ``get`` raises ``KeyNotFound`` for absent keys and ``StoreUnavailable``
    for transport or authentication failures. ``delete`` is idempotent and
    returns whether a key was actually removed.
    """

    async def set(self, key: str, value: str, ttl_seconds: int) -> None: ...

    async def get(self, key: str) -> str: ...

    async def delete(self, key: str) -> bool: ...

    async def exists(self, key: str) -> bool: ...

    async def close(self) -> None: ...
