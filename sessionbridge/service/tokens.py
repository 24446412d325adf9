from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from sessionbridge.config import TOKEN_ISSUER
from sessionbridge.logging import get_logger
from sessionbridge.service.errors import (
    TokenExpired,
    TokenMalformed,
    TokenSigningFailed,
    UnexpectedSigningAlgorithm,
    WrongClaimsShape,
)

logger = get_logger(__name__)

SIGNING_ALGORITHM = "HS256"
ACCESS_TOKEN_TTL_SECONDS = 15 * 60
REFRESH_TOKEN_TTL_SECONDS = 30 * 24 * 60 * 60


@dataclass(frozen=True)
class AccessClaims:
    session_id: str
    issuer: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class RefreshClaims:
    refresh_token_id: str
    session_id: str
    issuer: str
    issued_at: int
    expires_at: int


def _encode_segment(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")


def _decode_segment(segment: str) -> bytes:
    padding = "=" * ((4 - len(segment) % 4) % 4)
    return base64.urlsafe_b64decode(segment + padding)


class TokenCodec:
    """Issues and validates compact HS256 tokens.

    Stateless apart from the secret, so a single instance is shared by every
    request. Expiry is enforced here; callers never compare timestamps.
    """

    def __init__(
        self,
        secret: Optional[str],
        *,
        issuer: str = TOKEN_ISSUER,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret:
            raise TokenSigningFailed("JWT_SECRET not configured")
        self._secret = secret.encode("utf-8")
        self.issuer = issuer
        self._clock = clock

    def _sign(self, signing_input: str) -> str:
        digest = hmac.new(self._secret, signing_input.encode("ascii"), hashlib.sha256).digest()
        return _encode_segment(digest)

    def issue(self, claims: dict[str, Any], ttl_seconds: int) -> str:
        """Sign ``claims`` with ``iss``, ``iat`` and ``exp`` filled in."""
        now = int(self._clock())
        payload = {
            **claims,
            "iss": self.issuer,
            "iat": now,
            "exp": now + int(ttl_seconds),
        }
        header = {"alg": SIGNING_ALGORITHM, "typ": "JWT"}
        try:
            header_enc = _encode_segment(json.dumps(header, separators=(",", ":")).encode())
            payload_enc = _encode_segment(
                json.dumps(payload, separators=(",", ":"), sort_keys=True).encode()
            )
        except (TypeError, ValueError) as exc:
            raise TokenSigningFailed("claims not serializable", detail={"error": str(exc)}) from exc
        signing_input = f"{header_enc}.{payload_enc}"
        return f"{signing_input}.{self._sign(signing_input)}"

    def decode(self, token: str) -> dict[str, Any]:
        """Validate structure, algorithm, signature, issuer and expiry.

        The header algorithm is checked before the signature so a token that
        advertises ``none`` or an asymmetric algorithm is never verified with
        the HMAC key.
        """
        if not isinstance(token, str) or not token.isascii():
            raise TokenMalformed("token is not an ascii string")
        if token.count(".") != 2:
            raise TokenMalformed("token must have three segments")
        header_b64, payload_b64, sig_b64 = token.split(".")

        try:
            header = json.loads(_decode_segment(header_b64))
        except (binascii.Error, ValueError, UnicodeDecodeError) as exc:
            raise TokenMalformed("undecodable header", detail={"error": str(exc)}) from exc
        if not isinstance(header, dict):
            raise TokenMalformed("header is not an object")
        alg = header.get("alg")
        if alg != SIGNING_ALGORITHM:
            logger.warning("jwt_invalid_algorithm", alg=alg)
            raise UnexpectedSigningAlgorithm(
                "unexpected signing method", detail={"alg": alg}
            )

        expected_sig = self._sign(f"{header_b64}.{payload_b64}")
        if not hmac.compare_digest(expected_sig.encode("ascii"), sig_b64.encode("ascii")):
            raise TokenMalformed("signature mismatch")

        try:
            payload = json.loads(_decode_segment(payload_b64))
        except (binascii.Error, ValueError, UnicodeDecodeError) as exc:
            raise TokenMalformed("undecodable payload", detail={"error": str(exc)}) from exc
        if not isinstance(payload, dict):
            raise TokenMalformed("payload is not an object")
        if payload.get("iss") != self.issuer:
            raise TokenMalformed("unexpected issuer", detail={"iss": payload.get("iss")})

        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            raise TokenMalformed("missing expiry")
        if exp <= self._clock():
            raise TokenExpired("token expired", detail={"exp": exp})
        return payload

    def issue_access_token(
        self, session_id: str, ttl_seconds: int = ACCESS_TOKEN_TTL_SECONDS
    ) -> str:
        return self.issue({"session_id": session_id}, ttl_seconds)

    def issue_refresh_token(
        self,
        refresh_token_id: str,
        session_id: str,
        ttl_seconds: int = REFRESH_TOKEN_TTL_SECONDS,
    ) -> str:
        return self.issue(
            {"refresh_token_id": refresh_token_id, "session_id": session_id},
            ttl_seconds,
        )

    def verify_access_token(self, token: str) -> AccessClaims:
        payload = self.decode(token)
        session_id = _required_str(payload, "session_id")
        if "refresh_token_id" in payload:
            raise WrongClaimsShape("refresh token presented as access token")
        return AccessClaims(
            session_id=session_id,
            issuer=payload["iss"],
            issued_at=int(payload.get("iat", 0)),
            expires_at=int(payload["exp"]),
        )

    def verify_refresh_token(self, token: str) -> RefreshClaims:
        payload = self.decode(token)
        return RefreshClaims(
            refresh_token_id=_required_str(payload, "refresh_token_id"),
            session_id=_required_str(payload, "session_id"),
            issuer=payload["iss"],
            issued_at=int(payload.get("iat", 0)),
            expires_at=int(payload["exp"]),
        )


def _required_str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise WrongClaimsShape(f"claim {key!r} missing", detail={"claim": key})
    return value
