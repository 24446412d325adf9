from __future__ import annotations

from typing import Optional, Protocol

import httpx

from sessionbridge.config import GITHUB_TOKEN_URL
from sessionbridge.logging import get_logger
from sessionbridge.service.errors import (
    ExchangeFailed,
    MissingCredentialSource,
    OAuthRequestFailed,
)

logger = get_logger(__name__)


class OAuthExchangeClient(Protocol):
    async def exchange_code(self, code: str) -> str: ...


class GitHubOAuthClient:
    """Exchanges a GitHub authorization code for a user access token.

    GitHub answers failed exchanges with HTTP 200 and an
    ``{"error", "error_description"}`` body, so a missing ``access_token`` is
    treated as a rejected code regardless of status. Network failures and 5xx
    answers mean the provider is down, not that the code was bad, and raise
    ``OAuthRequestFailed`` instead.
    """

    DEFAULT_TIMEOUT = 30.0

    def __init__(
        self,
        client_id: Optional[str],
        client_secret: Optional[str],
        *,
        token_url: str = GITHUB_TOKEN_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not client_id or not client_secret:
            raise MissingCredentialSource("GitHub OAuth client credentials missing")
        self.client_id = client_id
        self._client_secret = client_secret
        self.token_url = token_url
        self.timeout = timeout
        self._transport = transport

    async def exchange_code(self, code: str) -> str:
        form = {
            "client_id": self.client_id,
            "client_secret": self._client_secret,
            "code": code,
        }
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, follow_redirects=False, transport=self._transport
            ) as client:
                response = await client.post(
                    self.token_url,
                    data=form,
                    headers={"Accept": "application/json"},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            logger.error("oauth_exchange_http_error", status_code=status_code, error=str(exc))
            if status_code >= 500:
                raise OAuthRequestFailed(
                    "token endpoint failed", detail={"status_code": status_code}
                ) from exc
            raise ExchangeFailed(
                "token endpoint rejected the exchange", detail={"status_code": status_code}
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("oauth_exchange_error", error_type=type(exc).__name__, error=str(exc))
            raise OAuthRequestFailed(
                "token endpoint unreachable", detail={"error": str(exc)}
            ) from exc

        try:
            result = response.json()
        except ValueError as exc:
            logger.error("oauth_token_parse_error", error=str(exc))
            raise ExchangeFailed("token response is not JSON") from exc

        access_token = result.get("access_token") if isinstance(result, dict) else None
        if not access_token:
            provider_error = result.get("error") if isinstance(result, dict) else None
            provider_description = (
                result.get("error_description") if isinstance(result, dict) else None
            )
            logger.error(
                "oauth_no_access_token",
                provider_error=provider_error,
                provider_error_description=provider_description,
            )
            raise ExchangeFailed(
                "no access token in exchange response",
                detail={"error": provider_error, "error_description": provider_description},
            )

        logger.info("oauth_exchange_success", scope=result.get("scope"))
        return access_token
