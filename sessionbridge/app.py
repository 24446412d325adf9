from __future__ import annotations

from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sessionbridge.api.error_handling import register_exception_handlers
from sessionbridge.api.routes import router
from sessionbridge.config import Settings, get_settings
from sessionbridge.logging import get_logger, set_correlation_id

logger = get_logger(__name__)

__version__ = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the runtime on startup and close the store on shutdown."""
    from sessionbridge.service import runtime as runtime_module

    try:
        runtime_module.get_runtime()
    except Exception as exc:
        # Requests still start; each one reports a generic server error
        logger.error("startup_runtime_failed", error_type=type(exc).__name__, error=str(exc))

    yield

    if runtime_module.runtime is not None:
        try:
            await runtime_module.runtime.close()
            logger.info("runtime_cleanup_complete")
        except Exception as exc:
            logger.error("shutdown_failed", error=str(exc))


app = FastAPI(title="Session Bridge", version=__version__, lifespan=lifespan)


def _allowed_origins(settings: Settings) -> List[str]:
    if settings.chrome_extension_id:
        return [f"chrome-extension://{settings.chrome_extension_id}"]
    return []


_origins = _allowed_origins(get_settings())
if _origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=3600,
    )


@app.middleware("http")
async def add_correlation_id(request, call_next):
    """Tag each request with a correlation ID.

    Taken from ``X-Request-ID`` when the client sends one, otherwise a new
    UUID. It is bound into every log line and echoed back in the response.
    """
    client_request_id = request.headers.get("X-Request-ID")
    correlation_id = set_correlation_id(client_request_id)
    response = await call_next(request)
    response.headers["X-Request-ID"] = correlation_id
    return response


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    # Token responses must never be cached by proxies
    if request.url.path.startswith("/api/"):
        response.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, private")
    return response


register_exception_handlers(app)
app.include_router(router)
