from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds raised below the HTTP layer.

    Every kind has exactly one public classification in
    ``sessionbridge.api.error_handling.classify``.
    """

    # Configuration
    MISSING_CREDENTIAL_SOURCE = "missing_credential_source"
    TOKEN_SIGNING_FAILED = "token_signing_failed"
    # Transport
    EXCHANGE_FAILED = "exchange_failed"
    OAUTH_REQUEST_FAILED = "oauth_request_failed"
    STORE_UNAVAILABLE = "store_unavailable"
    UPSTREAM_REQUEST_FAILED = "upstream_request_failed"
    ID_GENERATION_FAILED = "id_generation_failed"
    # Token validation
    TOKEN_MALFORMED = "token_malformed"
    TOKEN_EXPIRED = "token_expired"
    UNEXPECTED_SIGNING_ALGORITHM = "unexpected_signing_algorithm"
    WRONG_CLAIMS_SHAPE = "wrong_claims_shape"
    # Session state
    SESSION_NOT_FOUND = "session_not_found"
    REFRESH_TOKEN_REVOKED = "refresh_token_revoked"
    SESSION_MISMATCH = "session_mismatch"
    # Request shape
    BEARER_TOKEN_REQUIRED = "bearer_token_required"
    MISSING_CODE = "missing_code"
    MISSING_STATE = "missing_state"
    INVALID_STATE = "invalid_state"
    MISSING_REFRESH_TOKEN = "missing_refresh_token"


class SessionBridgeError(Exception):
    """Base class for errors carrying an ``ErrorKind``.

    ``message`` and ``detail`` are for logs only; the client sees the
    classified public message. Only the concrete subclasses are raised.
    """

    kind: ErrorKind

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        detail: Optional[dict] = None,
    ) -> None:
        self.message = message or self.kind.value.replace("_", " ")
        super().__init__(self.message)
        self.detail = detail or {}


class MissingCredentialSource(SessionBridgeError):
    """Required secret or client credential is not configured."""
    kind = ErrorKind.MISSING_CREDENTIAL_SOURCE


class TokenSigningFailed(SessionBridgeError):
    """Signing key unavailable or a token could not be produced."""
    kind = ErrorKind.TOKEN_SIGNING_FAILED


class ExchangeFailed(SessionBridgeError):
    """The identity provider rejected or failed the code exchange."""
    kind = ErrorKind.EXCHANGE_FAILED


class OAuthRequestFailed(SessionBridgeError):
    """The identity provider could not be reached or failed on its side."""
    kind = ErrorKind.OAUTH_REQUEST_FAILED


class StoreUnavailable(SessionBridgeError):
    """Key-value store could not be reached or refused the command."""
    kind = ErrorKind.STORE_UNAVAILABLE


class UpstreamRequestFailed(SessionBridgeError):
    """The upstream project API call failed."""
    kind = ErrorKind.UPSTREAM_REQUEST_FAILED


class IDGenerationFailed(SessionBridgeError):
    kind = ErrorKind.ID_GENERATION_FAILED


class TokenValidationError(SessionBridgeError):
    """Any reason a presented token is not acceptable."""
    kind = ErrorKind.TOKEN_MALFORMED


class TokenMalformed(TokenValidationError):
    kind = ErrorKind.TOKEN_MALFORMED


class TokenExpired(TokenValidationError):
    kind = ErrorKind.TOKEN_EXPIRED


class UnexpectedSigningAlgorithm(TokenValidationError):
    kind = ErrorKind.UNEXPECTED_SIGNING_ALGORITHM


class WrongClaimsShape(TokenValidationError):
    kind = ErrorKind.WRONG_CLAIMS_SHAPE


class SessionNotFound(SessionBridgeError):
    kind = ErrorKind.SESSION_NOT_FOUND


class RefreshTokenRevoked(SessionBridgeError):
    """Refresh token already rotated, never issued, or expired in the store."""
    kind = ErrorKind.REFRESH_TOKEN_REVOKED


class SessionMismatch(SessionBridgeError):
    """Signed session id disagrees with the one recorded for the refresh token."""
    kind = ErrorKind.SESSION_MISMATCH


class BearerTokenRequired(SessionBridgeError):
    kind = ErrorKind.BEARER_TOKEN_REQUIRED


class MissingCode(SessionBridgeError):
    kind = ErrorKind.MISSING_CODE


class MissingState(SessionBridgeError):
    kind = ErrorKind.MISSING_STATE


class InvalidState(SessionBridgeError):
    """OAuth state was not issued by this service or was already used."""
    kind = ErrorKind.INVALID_STATE


class MissingRefreshToken(SessionBridgeError):
    kind = ErrorKind.MISSING_REFRESH_TOKEN


__all__ = [
    "ErrorKind",
    "SessionBridgeError",
    "MissingCredentialSource",
    "TokenSigningFailed",
    "ExchangeFailed",
    "OAuthRequestFailed",
    "StoreUnavailable",
    "UpstreamRequestFailed",
    "IDGenerationFailed",
    "TokenValidationError",
    "TokenMalformed",
    "TokenExpired",
    "UnexpectedSigningAlgorithm",
    "WrongClaimsShape",
    "SessionNotFound",
    "RefreshTokenRevoked",
    "SessionMismatch",
    "BearerTokenRequired",
    "MissingCode",
    "MissingState",
    "InvalidState",
    "MissingRefreshToken",
]
