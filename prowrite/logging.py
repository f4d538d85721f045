"""Structured logging for the chat service.

Every log line carries the request's correlation id and, inside a streamed
session, the session and conversation ids bound by ``session_log_context``.
Chat text is clipped and credentials are masked before rendering.
"""

from __future__ import annotations

import logging
import os
import re
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Dict, Iterator, Optional

import structlog

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_TRUTHY = {"1", "true", "yes", "on"}

# Event fields whose values are masked, matched as substrings of the key
_MASKED_KEYS = ("password", "secret", "token", "api_key", "authorization", "email")

# Event fields that may carry user or model text
_CHAT_TEXT_KEYS = ("content", "prompt", "full_content", "first_message")
CHAT_TEXT_LOG_LIMIT = 80


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """Use the client's request id when given, otherwise mint one."""
    cid = correlation_id or str(uuid.uuid4())
    correlation_id_var.set(cid)
    return cid


@contextmanager
def session_log_context(**fields: Any) -> Iterator[None]:
    """Bind ids such as ``session_id`` to every log line in this task."""
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def _add_correlation_id(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    cid = get_correlation_id()
    if cid and "correlation_id" not in event_dict:
        event_dict["correlation_id"] = cid
    return event_dict


def _mask_credentials(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    for key, value in list(event_dict.items()):
        if not isinstance(value, str) or len(value) <= 4:
            continue
        if any(marker in key.lower() for marker in _MASKED_KEYS):
            event_dict[key] = f"{value[:2]}***{value[-2:]}"
    return event_dict


def _clip_chat_text(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    for key in _CHAT_TEXT_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > CHAT_TEXT_LOG_LIMIT:
            event_dict[key] = f"{value[:CHAT_TEXT_LOG_LIMIT]}...(+{len(value) - CHAT_TEXT_LOG_LIMIT} chars)"
    return event_dict


def configure_logging(
    level: str = "INFO", *, json_output: bool = True, dev_mode: bool = False
) -> None:
    """Install the structlog processor chain.

    JSON lines by default; a colored console renderer when ``dev_mode`` is
    on or ``json_output`` is off.
    """
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_correlation_id,
        _mask_credentials,
        _clip_chat_text,
        structlog.processors.StackInfoRenderer(),
    ]
    if dev_mode or not json_output:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors.extend(
            [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging(
    os.getenv("LOG_LEVEL", "INFO"),
    json_output=os.getenv("LOG_JSON", "true").lower() in _TRUTHY,
    dev_mode=os.getenv("LOG_DEV_MODE", "false").lower() in _TRUTHY,
)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


# Upstream provider errors are echoed to users in apology messages and SSE
# error events; these fragments must not survive into that text.
_UNSAFE_ERROR_FRAGMENTS = tuple(
    re.compile(pattern)
    for pattern in (
        r"(?i)\b(select|insert|update|delete)\s+.{0,50}\s+(from|into|set|where)\s+.{0,50}",
        r"(?i)/(?:home|var|etc|usr|opt|tmp|srv)/\S+",
        r"(?i)\b[a-z]:\\\S+",
        r"(?i)(password|secret|token|key|credential|api.?key)\s*[:=]\s*\S+",
        r"(?i)\bsk-[a-z0-9_-]{8,}",
        r"(?i)bearer\s+[a-z0-9._-]{8,}",
        r"(?i)traceback\s*\(most recent call last\)",
    )
)

MAX_ERROR_MESSAGE_LENGTH = 500
FALLBACK_ERROR_MESSAGE = "An error occurred"


def sanitize_error_message(error: str, *, replacement: str = "[redacted]") -> str:
    """Make upstream error text safe to show to the end user.

    Query fragments, filesystem paths, credentials and traceback headers are
    replaced with ``replacement`` and the result is capped at
    ``MAX_ERROR_MESSAGE_LENGTH`` characters.
    """
    if not error or not isinstance(error, str):
        return FALLBACK_ERROR_MESSAGE
    result = error
    for pattern in _UNSAFE_ERROR_FRAGMENTS:
        result = pattern.sub(replacement, result)
    if len(result) > MAX_ERROR_MESSAGE_LENGTH:
        result = result[: MAX_ERROR_MESSAGE_LENGTH - 3] + "..."
    return result.strip() or FALLBACK_ERROR_MESSAGE
