from __future__ import annotations

import threading
from urllib.parse import urlparse, urlunparse
from typing import Optional

from prowrite.config import get_settings, reset_settings_cache
from prowrite.logging import get_logger
from prowrite.service.chat import ChatService
from prowrite.service.llm import LLMService, SamplingConfig, build_backend
from prowrite.service.usage import UsageGate
from prowrite.storage.memory import MemoryStore
from prowrite.storage.postgres import PostgresStore

logger = get_logger(__name__)


def _mask_url_password(url: Optional[str]) -> Optional[str]:
    """Mask the password component of a DSN for logging."""
    if not url:
        return url
    try:
        parsed = urlparse(url)
    except ValueError:
        return "***url_parse_error***"
    if not parsed.password:
        return url
    netloc = parsed.hostname or ""
    if parsed.port:
        netloc = f"{netloc}:{parsed.port}"
    netloc = f"{parsed.username or ''}:***@{netloc}"
    return urlunparse(
        (parsed.scheme, netloc, parsed.path, parsed.params, parsed.query, parsed.fragment)
    )


class Runtime:
    """Holds singleton service instances for the FastAPI app."""

    def __init__(self):
        self.settings = get_settings()
        logger.info(
            "runtime_init_started",
            use_memory_store=self.settings.use_memory_store,
            test_mode=self.settings.test_mode,
            model_backend=self.settings.model_backend.value,
        )

        store_type = "memory" if self.settings.use_memory_store else "postgres"
        try:
            self.store = (
                MemoryStore()
                if self.settings.use_memory_store
                else PostgresStore(self.settings.database_url)
            )
            logger.info("runtime_store_initialized", store_type=store_type)
        except Exception as exc:
            logger.error(
                "runtime_store_init_failed",
                store_type=store_type,
                database_url=_mask_url_password(self.settings.database_url),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise

        self.llm = LLMService(
            build_backend(self.settings),
            SamplingConfig.from_settings(self.settings),
        )
        self.usage_gate = UsageGate(self.store)
        self.chat = ChatService(self.store, self.llm, self.usage_gate, self.settings)
        logger.info("runtime_initialized", backend=type(self.llm.backend).__name__)

    def close(self) -> None:
        self.store.close()


runtime: Runtime | None = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    """Get or create the Runtime singleton in a thread-safe manner.

    Uses double-checked locking: a lock-free fast path for an existing
    runtime, then a locked re-check before creating one.
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
            runtime.close()
        reset_settings_cache()
        settings = get_settings()
        if not settings.test_mode:
            raise RuntimeError("runtime reset is only allowed in TEST_MODE")
        runtime = Runtime()
        return runtime
