from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Dict, List

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from prowrite.api.error_handling import register_exception_handlers
from prowrite.api.routes import router
from prowrite.api.sse import active_session_count, drain_background_sessions
from prowrite.config import Settings
from prowrite.logging import get_logger, set_correlation_id

logger = get_logger(__name__)

_settings = Settings.from_env()

__version__ = "0.1.0"

STORE_CHECK_TIMEOUT_SECONDS = 3

# Local frontends allowed when CORS_ALLOW_ORIGINS is unset
_DEV_ORIGINS = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the runtime on startup; finish detached sessions on shutdown."""
    from prowrite.service.runtime import get_runtime

    try:
        runtime = get_runtime()
        logger.info(
            "startup_complete",
            store=type(runtime.store).__name__,
            backend=type(runtime.llm.backend).__name__,
            heartbeat_seconds=runtime.settings.sse_heartbeat_seconds,
        )
    except Exception as exc:
        logger.error("startup_runtime_failed", error=str(exc))

    yield

    # Sessions whose client left still have a reply to persist and usage to settle
    try:
        cancelled = await drain_background_sessions(_settings.shutdown_drain_seconds)
        get_runtime().close()
        logger.info("runtime_cleanup_complete", sessions_cancelled=cancelled)
    except Exception as exc:
        logger.error("shutdown_failed", error=str(exc))


app = FastAPI(title="ProWrite Chat", version=__version__, lifespan=lifespan)


def _allowed_origins() -> List[str]:
    return _settings.cors_allow_origins or list(_DEV_ORIGINS)


app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins(),
    allow_credentials=False,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Workspace-ID", "X-Request-ID"],
    expose_headers=["X-Request-ID", "API-Version"],
    max_age=3600,
)


@app.middleware("http")
async def add_response_headers(request, call_next):
    """Security, caching and version headers for every response.

    Streamed chat responses already carry ``no-cache, no-transform`` and keep it.
    """
    response = await call_next(request)
    headers = response.headers
    headers.setdefault("X-Frame-Options", "DENY")
    headers.setdefault("X-Content-Type-Options", "nosniff")
    headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    headers.setdefault("API-Version", __version__)
    path = request.url.path
    if path.startswith("/v1/") or path == "/healthz":
        headers.setdefault("Cache-Control", "no-store")
    if _settings.enable_hsts and request.url.scheme == "https":
        headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains")
    return response


@app.middleware("http")
async def add_correlation_id(request, call_next):
    """Tag the request with X-Request-ID (client supplied or generated)."""
    correlation_id = set_correlation_id(request.headers.get("X-Request-ID"))
    response = await call_next(request)
    response.headers["X-Request-ID"] = correlation_id
    return response


register_exception_handlers(app)
app.include_router(router)


async def _store_reachable(store) -> bool:
    try:
        await asyncio.wait_for(
            asyncio.to_thread(store.verify_connection), STORE_CHECK_TIMEOUT_SECONDS
        )
        return True
    except asyncio.TimeoutError:
        logger.error("health_check_store_timeout", timeout=STORE_CHECK_TIMEOUT_SECONDS)
    except Exception as exc:
        logger.error("health_check_store_failed", error=str(exc))
    return False


@app.get("/healthz")
async def health() -> Dict[str, Any]:
    from prowrite.service.runtime import get_runtime

    runtime = get_runtime()
    store_ok = await _store_reachable(runtime.store)
    return {
        "status": "healthy" if store_ok else "unhealthy",
        "checks": {
            "database": {
                "status": "healthy" if store_ok else "unhealthy",
                "type": "memory" if runtime.settings.use_memory_store else "postgres",
            },
            "model_backend": {"type": type(runtime.llm.backend).__name__},
            "chat_sessions": {"active": active_session_count()},
        },
        "version": __version__,
        "timestamp": datetime.utcnow().isoformat(),
    }


def create_app() -> FastAPI:
    return app
