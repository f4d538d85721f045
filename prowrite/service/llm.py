from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Protocol, Sequence

from openai import AsyncOpenAI

from prowrite.config import ModelBackend as BackendKind
from prowrite.config import Settings
from prowrite.logging import get_logger, sanitize_error_message
from prowrite.service.errors import UpstreamGenerationError

logger = get_logger(__name__)


@dataclass(frozen=True)
class SamplingConfig:
    temperature: float = 0.7
    top_p: float = 0.95
    max_output_tokens: int = 2048

    @classmethod
    def from_settings(cls, settings: Settings) -> "SamplingConfig":
        return cls(
            temperature=settings.generation_temperature,
            top_p=settings.generation_top_p,
            max_output_tokens=settings.generation_max_output_tokens,
        )


@dataclass(frozen=True)
class Fragment:
    """One item of an upstream stream: ``text``, or terminal ``done``/``error``."""

    kind: str
    content: str = ""
    error: Optional[str] = None

    TEXT = "text"
    DONE = "done"
    ERROR = "error"

    @property
    def terminal(self) -> bool:
        return self.kind in (self.DONE, self.ERROR)

    @classmethod
    def text(cls, content: str) -> "Fragment":
        return cls(kind=cls.TEXT, content=content)

    @classmethod
    def done(cls) -> "Fragment":
        return cls(kind=cls.DONE)

    @classmethod
    def failed(cls, message: str) -> "Fragment":
        return cls(kind=cls.ERROR, error=message)


class ModelBackend(Protocol):
    """Interface for upstream text generators."""

    async def generate(
        self, system_prompt: str, user_prompt: str, sampling: SamplingConfig
    ) -> str:
        ...

    def stream(
        self, system_prompt: str, user_prompt: str, sampling: SamplingConfig
    ) -> AsyncIterator[str]:
        ...


def _chat_messages(system_prompt: str, user_prompt: str) -> List[dict]:
    return [
        {"role": "system", "content": system_prompt},
        {"role": "user", "content": user_prompt},
    ]


class OpenAIBackend:
    """Backend for OpenAI-compatible chat completion APIs."""

    def __init__(
        self,
        model: str,
        *,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
    ) -> None:
        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)

    async def generate(
        self, system_prompt: str, user_prompt: str, sampling: SamplingConfig
    ) -> str:
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=_chat_messages(system_prompt, user_prompt),
            temperature=sampling.temperature,
            top_p=sampling.top_p,
            max_tokens=sampling.max_output_tokens,
        )
        choices = getattr(completion, "choices", None) or []
        first_choice = next(iter(choices), None)
        if not first_choice:
            logger.warning("completion_returned_no_choices", model=self.model)
            return ""
        return first_choice.message.content or ""

    async def stream(
        self, system_prompt: str, user_prompt: str, sampling: SamplingConfig
    ) -> AsyncIterator[str]:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=_chat_messages(system_prompt, user_prompt),
            temperature=sampling.temperature,
            top_p=sampling.top_p,
            max_tokens=sampling.max_output_tokens,
            stream=True,
        )
        async for chunk in response:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta
            if delta is not None and delta.content:
                yield delta.content


class StubBackend:
    """Deterministic offline backend for development and tests.

    ``fragments`` overrides how the response is chunked. When ``fail_with``
    is set, streaming raises after the fragments are sent and ``generate``
    raises immediately.
    """

    STUB_RESPONSE = "This is a stub response from the offline model backend."

    def __init__(
        self,
        *,
        fragments: Optional[Sequence[str]] = None,
        fail_with: Optional[str] = None,
        delay: float = 0.0,
    ) -> None:
        self.fragments = list(fragments) if fragments is not None else None
        self.fail_with = fail_with
        self.delay = delay
        self.calls: List[tuple[str, str]] = []

    def _chunks(self) -> List[str]:
        if self.fragments is not None:
            return self.fragments
        words = self.STUB_RESPONSE.split(" ")
        return [w if i == 0 else f" {w}" for i, w in enumerate(words)]

    async def generate(
        self, system_prompt: str, user_prompt: str, sampling: SamplingConfig
    ) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.fail_with:
            raise RuntimeError(self.fail_with)
        return "".join(self._chunks())

    async def stream(
        self, system_prompt: str, user_prompt: str, sampling: SamplingConfig
    ) -> AsyncIterator[str]:
        self.calls.append((system_prompt, user_prompt))
        for chunk in self._chunks():
            if self.delay:
                await asyncio.sleep(self.delay)
            yield chunk
        if self.fail_with:
            raise RuntimeError(self.fail_with)


def build_backend(settings: Settings) -> ModelBackend:
    if settings.model_backend == BackendKind.OPENAI:
        if settings.openai_api_key:
            return OpenAIBackend(
                settings.model_name,
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.generation_timeout_seconds,
            )
        logger.warning(
            "openai_api_key_missing_using_stub", model=settings.model_name
        )
    return StubBackend()


class LLMService:
    """Generation executor that delegates to a pluggable model backend."""

    def __init__(
        self, backend: ModelBackend, sampling: Optional[SamplingConfig] = None
    ) -> None:
        self.backend = backend
        self.sampling = sampling or SamplingConfig()

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        sampling: Optional[SamplingConfig] = None,
    ) -> str:
        """One-shot generation.

        Raises:
            UpstreamGenerationError: the backend call failed.
        """
        try:
            return await self.backend.generate(
                system_prompt, user_prompt, sampling or self.sampling
            )
        except Exception as exc:
            message = sanitize_error_message(str(exc))
            logger.error("generation_failed", error=message, error_type=type(exc).__name__)
            raise UpstreamGenerationError(message) from exc

    async def stream(
        self,
        system_prompt: str,
        user_prompt: str,
        sampling: Optional[SamplingConfig] = None,
    ) -> AsyncIterator[Fragment]:
        """Stream one generation as fragments.

        Always ends with exactly one terminal fragment. Backend exceptions are
        converted into a terminal ``error`` fragment and never propagate to
        the caller. Not restartable; call again to retry.
        """
        fragments = 0
        try:
            async for chunk in self.backend.stream(
                system_prompt, user_prompt, sampling or self.sampling
            ):
                if not chunk:
                    continue
                fragments += 1
                yield Fragment.text(chunk)
        except Exception as exc:
            message = sanitize_error_message(str(exc))
            logger.error(
                "generation_stream_failed",
                error=message,
                error_type=type(exc).__name__,
                fragments=fragments,
            )
            yield Fragment.failed(message)
            return
        logger.debug("generation_stream_completed", fragments=fragments)
        yield Fragment.done()
