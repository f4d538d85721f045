from __future__ import annotations

import unicodedata
from datetime import datetime
from typing import Any, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from prowrite.logging import get_correlation_id

# Maximum length of a single chat message
MAX_MESSAGE_LENGTH = 100_000


def _normalize_unicode(value: str) -> str:
    """Strip zero-width and bidi override characters, then NFKC normalize."""
    zero_width = "\u200b\u200c\u200d\ufeff"
    cleaned = "".join(c for c in value if c not in zero_width)
    bidi_overrides = set(chr(c) for c in range(0x202A, 0x202F))
    bidi_overrides.update(chr(c) for c in range(0x2066, 0x206A))
    cleaned = "".join(c for c in cleaned if c not in bidi_overrides)
    return unicodedata.normalize("NFKC", cleaned)


_VALID_ERROR_CODES = frozenset({
    "unauthorized",
    "payment_required",
    "forbidden",
    "not_found",
    "validation_error",
    "unsupported_module",
    "conflict",
    "server_error",
    "upstream_error",
})


class ErrorBody(BaseModel):
    """Error envelope body with stable code values."""

    code: str = Field(..., description="Stable error code")
    message: str
    details: Optional[Any] = None  # object, array, or null

    @field_validator("code")
    @classmethod
    def _validate_error_code(cls, value: str) -> str:
        if value not in _VALID_ERROR_CODES:
            raise ValueError(
                f"Invalid error code '{value}'. Must be one of: {', '.join(sorted(_VALID_ERROR_CODES))}"
            )
        return value


class Envelope(BaseModel):
    """API envelope format."""

    status: str = Field(..., pattern="^(ok|error)$")
    data: Optional[Any] = None
    error: Optional[ErrorBody] = None
    request_id: str = Field(default_factory=lambda: get_correlation_id() or str(uuid4()))


class CreateConversationRequest(BaseModel):
    module_type: str = Field(..., min_length=1, max_length=64)
    title: Optional[str] = Field(default=None, max_length=255)

    @field_validator("title")
    @classmethod
    def _clean_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        value = _normalize_unicode(value).strip()
        return value or None


class UpdateConversationRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)

    @field_validator("title")
    @classmethod
    def _clean_title(cls, value: str) -> str:
        value = _normalize_unicode(value).strip()
        if not value:
            raise ValueError("title must not be blank")
        return value


class SendMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)

    @field_validator("content")
    @classmethod
    def _require_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be blank")
        return value


class ConversationSummary(BaseModel):
    id: str
    workspace_id: str
    module_type: str
    title: str
    created_at: datetime
    updated_at: datetime


class MessageResponse(BaseModel):
    id: str
    conversation_id: str
    role: str
    content: str
    generated_content: Optional[dict] = None
    created_at: datetime


class ConversationDetail(ConversationSummary):
    messages: List[MessageResponse]


class ConversationListResponse(BaseModel):
    items: List[ConversationSummary]
    total_count: int


class SendMessageResponse(BaseModel):
    user_message: MessageResponse
    assistant_message: MessageResponse
    title: Optional[str] = Field(
        default=None, description="Set when this turn auto-titled the conversation"
    )


class ModuleInfo(BaseModel):
    module_type: str
    display_name: str


class ModuleListResponse(BaseModel):
    items: List[ModuleInfo]


class UsageResponse(BaseModel):
    usage_count: int
    usage_limit: int
    remaining: int
    percentage_used: int
