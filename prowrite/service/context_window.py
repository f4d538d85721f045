"""Bounded conversation history for prompt context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

from prowrite.storage.models import Message

MAX_CONTEXT_MESSAGES = 20
MAX_CONTEXT_CHARS = 12000


@dataclass(frozen=True)
class ContextTurn:
    role: str
    content: str


def window(
    messages: Sequence[Message],
    max_messages: int = MAX_CONTEXT_MESSAGES,
    max_chars: int = MAX_CONTEXT_CHARS,
) -> List[ContextTurn]:
    """Return the most recent turns that fit inside the character budget.

    Only the last ``max_messages`` messages are candidates. They are walked
    oldest to newest and the walk stops at the first message that would
    overflow ``max_chars``. When the very first candidate alone exceeds the
    budget its content is truncated to ``max_chars`` so the window is never
    empty for a non-empty history.
    """

    if max_messages <= 0 or max_chars <= 0:
        return []

    recent = list(messages)[-max_messages:]
    turns: List[ContextTurn] = []
    total = 0
    for msg in recent:
        size = len(msg.content)
        if total + size > max_chars:
            if not turns:
                turns.append(ContextTurn(role=msg.role, content=msg.content[:max_chars]))
            break
        turns.append(ContextTurn(role=msg.role, content=msg.content))
        total += size
    return turns


def window_chars(turns: Sequence[ContextTurn]) -> int:
    return sum(len(turn.content) for turn in turns)
