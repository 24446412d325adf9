from __future__ import annotations

from typing import Any, List, Optional

import httpx

from sessionbridge.logging import get_logger
from sessionbridge.service.errors import MissingCredentialSource
from sessionbridge.storage.errors import KeyNotFound, StoreUnavailable

logger = get_logger(__name__)


class UpstashStore:
    """Session store over the Upstash REST protocol.

    Each command is POSTed to the base URL as a JSON array, e.g.
    ``["SET", key, value, "EX", 900]``. The reply is ``{"result": ...}`` on
    success or ``{"error": "..."}`` when Redis rejected the command.
    """

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        base_url: Optional[str],
        token: Optional[str],
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not base_url or not token:
            raise MissingCredentialSource("upstash redis configuration missing")
        self.base_url = base_url
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
        )

    async def _execute(self, command: List[Any]) -> Any:
        op = command[0]
        try:
            resp = await self._client.post(self.base_url, json=command)
        except httpx.HTTPError as exc:
            logger.error("upstash_request_failed", op=op, error=str(exc))
            raise StoreUnavailable("store request failed", detail={"op": op, "error": str(exc)}) from exc

        if resp.status_code != 200:
            logger.error(
                "upstash_http_error", op=op, status=resp.status_code, body=resp.text[:200]
            )
            raise StoreUnavailable(
                f"store request failed with status {resp.status_code}",
                detail={"op": op, "status": resp.status_code},
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise StoreUnavailable("undecodable store response", detail={"op": op}) from exc
        if not isinstance(payload, dict):
            raise StoreUnavailable("unexpected store response", detail={"op": op})
        if payload.get("error"):
            logger.error("upstash_command_error", op=op, error=payload["error"])
            raise StoreUnavailable("store rejected command", detail={"op": op, "error": payload["error"]})
        return payload.get("result")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        await self._execute(["SET", key, value, "EX", int(ttl_seconds)])

    async def get(self, key: str) -> str:
        result = await self._execute(["GET", key])
        if result is None:
            raise KeyNotFound(key)
        if not isinstance(result, str):
            raise StoreUnavailable("unexpected response type", detail={"op": "GET"})
        return result

    async def delete(self, key: str) -> bool:
        result = await self._execute(["DEL", key])
        return _as_count(result, "DEL") > 0

    async def exists(self, key: str) -> bool:
        result = await self._execute(["EXISTS", key])
        return _as_count(result, "EXISTS") > 0

    async def close(self) -> None:
        await self._client.aclose()


def _as_count(result: Any, op: str) -> int:
    if isinstance(result, bool) or not isinstance(result, (int, float)):
        raise StoreUnavailable("unexpected response type", detail={"op": op})
    return int(result)
