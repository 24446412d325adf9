from __future__ import annotations

from dataclasses import dataclass

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sessionbridge.api.schemas import ErrorBody
from sessionbridge.logging import get_logger
from sessionbridge.service.errors import ErrorKind, SessionBridgeError

logger = get_logger(__name__)


@dataclass(frozen=True)
class PublicError:
    status: int
    code: str
    message: str


SERVER_ERROR = PublicError(500, "server_error", "Internal server error")
_CONFIG_ERROR = PublicError(500, "server_error", "Service configuration error")
_INVALID_TOKEN = PublicError(401, "invalid_token", "Invalid or expired token")

# One entry per ErrorKind. Token validation causes share a single response
# so callers cannot probe which check failed.
_PUBLIC_ERRORS: dict[ErrorKind, PublicError] = {
    ErrorKind.MISSING_CREDENTIAL_SOURCE: _CONFIG_ERROR,
    ErrorKind.TOKEN_SIGNING_FAILED: _CONFIG_ERROR,
    ErrorKind.EXCHANGE_FAILED: PublicError(
        400, "exchange_failed", "Failed to exchange authorization code"
    ),
    ErrorKind.OAUTH_REQUEST_FAILED: PublicError(502, "oauth_error", "OAuth service unavailable"),
    ErrorKind.STORE_UNAVAILABLE: PublicError(500, "server_error", "Storage service error"),
    ErrorKind.UPSTREAM_REQUEST_FAILED: PublicError(
        502, "github_error", "GitHub request failed"
    ),
    ErrorKind.ID_GENERATION_FAILED: SERVER_ERROR,
    ErrorKind.TOKEN_MALFORMED: _INVALID_TOKEN,
    ErrorKind.TOKEN_EXPIRED: _INVALID_TOKEN,
    ErrorKind.UNEXPECTED_SIGNING_ALGORITHM: _INVALID_TOKEN,
    ErrorKind.WRONG_CLAIMS_SHAPE: _INVALID_TOKEN,
    ErrorKind.SESSION_NOT_FOUND: PublicError(
        401, "session_not_found", "Session expired or invalid"
    ),
    ErrorKind.REFRESH_TOKEN_REVOKED: PublicError(
        401, "refresh_token_revoked", "Refresh token has been revoked or expired"
    ),
    ErrorKind.SESSION_MISMATCH: PublicError(401, "session_mismatch", "Session mismatch detected"),
    ErrorKind.BEARER_TOKEN_REQUIRED: PublicError(401, "invalid_token", "Bearer token required"),
    ErrorKind.MISSING_CODE: PublicError(400, "missing_code", "Authorization code is required"),
    ErrorKind.MISSING_STATE: PublicError(
        400, "missing_state", "State parameter is required for CSRF protection"
    ),
    ErrorKind.INVALID_STATE: PublicError(400, "invalid_state", "State parameter is invalid or expired"),
    ErrorKind.MISSING_REFRESH_TOKEN: PublicError(
        400, "missing_refresh_token", "Refresh token is required"
    ),
}

_unmapped = set(ErrorKind) - set(_PUBLIC_ERRORS)
if _unmapped:
    raise RuntimeError(f"error kinds without a public classification: {sorted(k.value for k in _unmapped)}")

# Kinds that indicate tampering or replay; always logged at error level.
_SECURITY_KINDS = frozenset({ErrorKind.SESSION_MISMATCH, ErrorKind.UNEXPECTED_SIGNING_ALGORITHM})

_STATUS_TO_CODE = {
    400: "invalid_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    500: "server_error",
}


def classify(kind: ErrorKind) -> PublicError:
    """Map an internal error kind to the status, code and message a client sees."""
    return _PUBLIC_ERRORS.get(kind, SERVER_ERROR)


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorBody(error=code, error_description=message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers that turn every failure into an ``{error, error_description}`` body."""

    @app.exception_handler(SessionBridgeError)
    async def handle_session_bridge_error(request: Request, exc: SessionBridgeError):
        public = classify(exc.kind)
        if public.status >= 500 or exc.kind in _SECURITY_KINDS:
            log_fn = logger.error
        else:
            log_fn = logger.warning
        log_fn(
            "request_failed",
            path=request.url.path,
            method=request.method,
            kind=exc.kind.value,
            status_code=public.status,
            error_code=public.code,
            message=exc.message,
            detail=exc.detail,
        )
        return _error_response(public.status, public.code, public.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        logger.warning(
            "request_validation_error",
            path=request.url.path,
            method=request.method,
            errors=[{"loc": e.get("loc"), "type": e.get("type")} for e in exc.errors()],
        )
        return _error_response(400, "invalid_request", "Invalid request body")

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        code = _STATUS_TO_CODE.get(exc.status_code, "server_error")
        message = exc.detail if isinstance(exc.detail, str) else "http error"
        if exc.status_code >= 500:
            logger.error(
                "http_error",
                path=request.url.path,
                method=request.method,
                status_code=exc.status_code,
                message=message,
            )
        return _error_response(exc.status_code, code, message)

    @app.exception_handler(Exception)
    async def handle_uncaught(request: Request, exc: Exception):
        logger.exception(
            "unhandled_exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return _error_response(SERVER_ERROR.status, SERVER_ERROR.code, SERVER_ERROR.message)
