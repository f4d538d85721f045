"""Prompt assembly for conversational generation.

Combines a module instruction template, optional workspace brand voice, the
windowed history and the new user text into a (system, user) prompt pair.
Everything here is a pure function of its arguments so it can be tested
without any network access.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from prowrite.logging import get_logger
from prowrite.service.context_window import ContextTurn
from prowrite.service.prompts.registry import get_system_prompt
from prowrite.storage.models import BrandVoice

logger = get_logger(__name__)

TRANSCRIPT_HEADER = "--- Previous Conversation ---"
CURRENT_MESSAGE_HEADER = "--- Current Message ---"

_ROLE_LABELS = {"user": "User", "assistant": "Assistant"}

ELLIPSIS = "..."


@dataclass(frozen=True)
class AssembledPrompt:
    system_prompt: str
    user_prompt: str


def _render_brand_voice(voice: Optional[BrandVoice]) -> Optional[str]:
    """Render the voice section from the supplied fields only.

    Returns None when no field is set so no empty header is appended.
    """
    if voice is None:
        return None
    lines: List[str] = []
    if voice.tone:
        lines.append(f"**Tone:** {voice.tone}")
    if voice.style:
        lines.append(f"**Style:** {voice.style}")
    terms = [term for term in voice.terminology if term]
    if terms:
        lines.append(f"**Preferred Terminology:** {', '.join(terms)}")
    if not lines:
        return None
    header = [
        "====",
        "## BRAND VOICE SETTINGS",
        "",
        "Apply these brand voice preferences to all generated content:",
        "",
    ]
    return "\n".join(header + lines)


def build_system_prompt(module_type: str, voice: Optional[BrandVoice] = None) -> str:
    base = get_system_prompt(module_type)
    section = _render_brand_voice(voice)
    if section is None:
        return base
    return f"{base}\n\n{section}"


def render_transcript(turns: Sequence[ContextTurn], new_user_text: str) -> str:
    if not turns:
        return new_user_text
    parts = [f"{TRANSCRIPT_HEADER}\n"]
    for turn in turns:
        label = _ROLE_LABELS.get(turn.role, turn.role.capitalize())
        parts.append(f"{label}: {turn.content}\n\n")
    parts.append(f"{CURRENT_MESSAGE_HEADER}\n")
    parts.append(new_user_text)
    return "".join(parts)


def assemble(
    module_type: str,
    new_user_text: str,
    turns: Sequence[ContextTurn],
    voice: Optional[BrandVoice] = None,
) -> AssembledPrompt:
    """Build the (system, user) prompt pair for one generation.

    Raises:
        UnsupportedModuleError: ``module_type`` has no registered template.
    """
    system_prompt = build_system_prompt(module_type, voice)
    user_prompt = render_transcript(turns, new_user_text)
    logger.debug(
        "prompt_assembled",
        module_type=module_type,
        context_turns=len(turns),
        system_chars=len(system_prompt),
        user_chars=len(user_prompt),
    )
    return AssembledPrompt(system_prompt=system_prompt, user_prompt=user_prompt)


def derive_title(text: str, max_length: int = 50) -> Optional[str]:
    """Derive a conversation title from the first user message.

    Whitespace is trimmed and collapsed. Text longer than ``max_length`` is
    cut so the title plus the ellipsis marker is exactly ``max_length``.
    Returns None for whitespace-only input.
    """
    cleaned = " ".join((text or "").split())
    if not cleaned:
        return None
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[: max_length - len(ELLIPSIS)] + ELLIPSIS
