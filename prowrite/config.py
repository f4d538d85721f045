from __future__ import annotations

import os
from enum import Enum
from typing import Any, List

from dotenv import dotenv_values
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ModelBackend(str, Enum):
    """Upstream text generation backends."""

    OPENAI = "openai"
    STUB = "stub"


def env_field(default: Any, env: str, **kwargs):
    extra = kwargs.pop("json_schema_extra", {}) or {}
    extra = {**extra, "env": env}
    return Field(default, json_schema_extra=extra, **kwargs)


class Settings(BaseModel):
    """Runtime settings for the chat service."""

    database_url: str = env_field(
        "postgresql://localhost:5432/prowrite", "DATABASE_URL"
    )
    use_memory_store: bool = env_field(False, "USE_MEMORY_STORE")
    test_mode: bool = env_field(
        False,
        "TEST_MODE",
        description="Deterministic behaviors for CI; allows runtime resets.",
    )

    # Upstream generator
    model_backend: ModelBackend = env_field(ModelBackend.OPENAI, "MODEL_BACKEND")
    model_name: str = env_field("gpt-4o-mini", "MODEL_NAME")
    openai_api_key: str | None = env_field(None, "OPENAI_API_KEY")
    openai_base_url: str | None = env_field(None, "OPENAI_BASE_URL")
    generation_temperature: float = env_field(
        0.7, "GENERATION_TEMPERATURE", ge=0.0, le=2.0
    )
    generation_top_p: float = env_field(0.95, "GENERATION_TOP_P", gt=0.0, le=1.0)
    generation_max_output_tokens: int = env_field(
        2048, "GENERATION_MAX_OUTPUT_TOKENS", gt=0
    )
    generation_timeout_seconds: float = env_field(
        120.0, "GENERATION_TIMEOUT_SECONDS", gt=0
    )

    # Session engine bounds
    context_max_messages: int = env_field(
        20,
        "CONTEXT_MAX_MESSAGES",
        description="Most recent messages considered for the prompt context",
    )
    context_max_chars: int = env_field(
        12000,
        "CONTEXT_MAX_CHARS",
        description="Character budget for prior turns included in the prompt",
    )
    title_max_length: int = env_field(50, "TITLE_MAX_LENGTH")
    extraction_min_length: int = env_field(100, "EXTRACTION_MIN_LENGTH")
    default_usage_limit: int = env_field(50, "DEFAULT_USAGE_LIMIT", ge=0)

    # Transport
    sse_heartbeat_seconds: float = env_field(15.0, "SSE_HEARTBEAT_SECONDS")
    shutdown_drain_seconds: float = env_field(30.0, "SHUTDOWN_DRAIN_SECONDS", ge=0)
    cors_allow_origins: List[str] = env_field([], "CORS_ALLOW_ORIGINS")
    enable_hsts: bool = env_field(False, "ENABLE_HSTS")

    model_config = ConfigDict(extra="ignore")

    @classmethod
    def from_env(cls) -> "Settings":
        env_file_values = dotenv_values(".env")
        merged: dict[str, str] = {}
        for name, field in cls.model_fields.items():
            extra = field.json_schema_extra or {}
            env_key = extra.get("env") if isinstance(extra, dict) else None
            env_name = env_key or name.upper()
            if env_name in os.environ:
                merged[name] = os.environ[env_name]
            elif env_name in env_file_values:
                merged[name] = env_file_values[env_name]
        return cls(**merged)

    @field_validator("model_backend", mode="before")
    @classmethod
    def _validate_backend(cls, value: Any) -> ModelBackend:
        if isinstance(value, str):
            value = value.strip().lower()
        return ModelBackend(value)

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return list(value)

    @field_validator(
        "context_max_messages",
        "context_max_chars",
        "title_max_length",
        "sse_heartbeat_seconds",
    )
    @classmethod
    def _ensure_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator("title_max_length")
    @classmethod
    def _ensure_title_fits_ellipsis(cls, value: int) -> int:
        if value < 4:
            raise ValueError("title_max_length must leave room for an ellipsis")
        return value


def get_settings() -> Settings:
    global _settings_cache
    if _settings_cache is None:
        _settings_cache = Settings.from_env()
    return _settings_cache


_settings_cache: Settings | None = None


def reset_settings_cache() -> None:
    """Clear cached settings so future calls re-read the environment."""

    global _settings_cache
    _settings_cache = None
