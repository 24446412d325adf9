from __future__ import annotations

import redis.asyncio as aioredis
from redis import Redis
from redis.exceptions import RedisError

from sessionbridge.logging import get_logger
from sessionbridge.storage.errors import KeyNotFound, StoreUnavailable

logger = get_logger(__name__)


class RedisStore:
    """Session store speaking the native Redis protocol."""

    DEFAULT_OPERATION_TIMEOUT = 10.0

    def __init__(self, redis_url: str, *, socket_timeout: float = DEFAULT_OPERATION_TIMEOUT):
        self.redis_url = redis_url
        self.socket_timeout = socket_timeout
        self.client = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )

    def verify_connection(self) -> None:
        """Assert Redis connectivity before serving requests."""
        # Short-lived sync client so the async pool is not bound to a startup loop
        sync_client = Redis.from_url(
            self.redis_url,
            decode_responses=True,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
        )
        try:
            sync_client.ping()
        finally:
            sync_client.close()

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        try:
            await self.client.set(key, value, ex=int(ttl_seconds))
        except RedisError as exc:
            logger.error("redis_set_failed", error=str(exc))
            raise StoreUnavailable("redis SET failed", detail={"error": str(exc)}) from exc

    async def get(self, key: str) -> str:
        try:
            value = await self.client.get(key)
        except RedisError as exc:
            logger.error("redis_get_failed", error=str(exc))
            raise StoreUnavailable("redis GET failed", detail={"error": str(exc)}) from exc
        if value is None:
            raise KeyNotFound(key)
        return value

    async def delete(self, key: str) -> bool:
        try:
            removed = await self.client.delete(key)
        except RedisError as exc:
            logger.error("redis_delete_failed", error=str(exc))
            raise StoreUnavailable("redis DEL failed", detail={"error": str(exc)}) from exc
        return int(removed) > 0

    async def exists(self, key: str) -> bool:
        try:
            count = await self.client.exists(key)
        except RedisError as exc:
            logger.error("redis_exists_failed", error=str(exc))
            raise StoreUnavailable("redis EXISTS failed", detail={"error": str(exc)}) from exc
        return int(count) > 0

    async def close(self) -> None:
        """Close the connection pool. Call when shutting down or resetting runtime."""
        await self.client.aclose()
        await self.client.connection_pool.disconnect()
