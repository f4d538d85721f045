"""Structured artifact extraction from assistant replies."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

EXTRACTION_MIN_LENGTH = 100


def _fenced(label: str) -> re.Pattern:
    return re.compile(
        rf"\*\*{label}:\*\*\s*```([\s\S]*?)```", re.IGNORECASE
    )


# Order matters: the first matching pattern wins
EXTRACTION_PATTERNS: Tuple[Tuple[str, re.Pattern], ...] = (
    ("email", _fenced("EMAIL")),
    ("subject_lines", re.compile(r"\*\*SUBJECT LINES:\*\*([\s\S]*?)(?=\*\*|$)", re.IGNORECASE)),
    ("script", _fenced("SCRIPT")),
    ("landing_page", _fenced("LANDING PAGE COPY")),
    ("job_description", _fenced("JOB DESCRIPTION")),
    ("code_block", re.compile(r"```[\w]*\n([\s\S]*?)```")),
)


@dataclass
class GeneratedContent:
    type: str
    content: str
    metadata: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"type": self.type, "content": self.content, "metadata": dict(self.metadata)}


def extract(
    full_text: str,
    *,
    min_length: int = EXTRACTION_MIN_LENGTH,
    clock: Callable[[], datetime] = datetime.utcnow,
) -> Optional[GeneratedContent]:
    """Pull a structured artifact out of an assistant reply.

    Returns the first pattern match, a ``general`` payload wrapping the whole
    text when nothing matches but the text is longer than ``min_length``,
    or None for short unmatched text.
    """
    if not full_text:
        return None
    metadata = {"extracted_at": clock().isoformat()}
    for content_type, pattern in EXTRACTION_PATTERNS:
        match = pattern.search(full_text)
        if match:
            return GeneratedContent(
                type=content_type, content=match.group(1).strip(), metadata=metadata
            )
    if len(full_text) > min_length:
        return GeneratedContent(type="general", content=full_text, metadata=metadata)
    return None
