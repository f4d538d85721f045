from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

NEW_CONVERSATION_TITLE = "New Conversation"


@dataclass
class BrandVoice:
    tone: Optional[str] = None
    style: Optional[str] = None
    terminology: List[str] = field(default_factory=list)
    # Stored with the workspace but not rendered into prompts
    avoid: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional["BrandVoice"]:
        if not data:
            return None
        return cls(
            tone=data.get("tone") or None,
            style=data.get("style") or None,
            terminology=list(data.get("terminology") or []),
            avoid=list(data.get("avoid") or []),
        )

    def to_dict(self) -> Dict:
        return {
            "tone": self.tone,
            "style": self.style,
            "terminology": list(self.terminology),
            "avoid": list(self.avoid),
        }


@dataclass
class Workspace:
    id: str
    name: str
    usage_limit: int
    usage_count: int = 0
    brand_voice: Optional[BrandVoice] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class Conversation:
    id: str
    workspace_id: str
    module_type: str
    created_at: datetime
    updated_at: datetime
    title: str = NEW_CONVERSATION_TITLE


@dataclass
class Message:
    id: str
    conversation_id: str
    role: str
    content: str
    seq: int
    created_at: datetime
    generated_content: Optional[dict] = None
