from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from prowrite.logging import get_logger
from prowrite.storage.errors import ConstraintViolation
from prowrite.storage.models import (
    NEW_CONVERSATION_TITLE,
    BrandVoice,
    Conversation,
    Message,
    Workspace,
)


class MemoryStore:
    """Minimal in-memory store for dev/test usage.

    Returned records are copies so callers cannot mutate stored state
    outside the lock.
    """

    def __init__(self) -> None:
        self.logger = get_logger(__name__)
        self.workspaces: Dict[str, Workspace] = {}
        self.conversations: Dict[str, Conversation] = {}
        self.messages: Dict[str, List[Message]] = {}
        # RLock for all data operations to ensure thread safety
        self._data_lock = threading.RLock()

    # workspaces
    def create_workspace(
        self,
        name: str,
        usage_limit: int,
        *,
        workspace_id: Optional[str] = None,
        usage_count: int = 0,
        brand_voice: Optional[BrandVoice] = None,
    ) -> Workspace:
        with self._data_lock:
            ws_id = workspace_id or str(uuid.uuid4())
            if ws_id in self.workspaces:
                raise ConstraintViolation("workspace exists", {"workspace_id": ws_id})
            now = datetime.utcnow()
            ws = Workspace(
                id=ws_id,
                name=name,
                usage_limit=usage_limit,
                usage_count=usage_count,
                brand_voice=brand_voice,
                created_at=now,
                updated_at=now,
            )
            self.workspaces[ws_id] = ws
            return replace(ws)

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        with self._data_lock:
            ws = self.workspaces.get(workspace_id)
            return replace(ws) if ws else None

    def update_brand_voice(
        self, workspace_id: str, brand_voice: Optional[BrandVoice]
    ) -> Workspace:
        with self._data_lock:
            ws = self._require_workspace(workspace_id)
            ws.brand_voice = brand_voice
            ws.updated_at = datetime.utcnow()
            return replace(ws)

    def get_usage_limit(self, workspace_id: str) -> int:
        with self._data_lock:
            return self._require_workspace(workspace_id).usage_limit

    def get_usage_count(self, workspace_id: str) -> int:
        with self._data_lock:
            return self._require_workspace(workspace_id).usage_count

    def increment_usage(self, workspace_id: str) -> int:
        with self._data_lock:
            ws = self._require_workspace(workspace_id)
            ws.usage_count += 1
            ws.updated_at = datetime.utcnow()
            return ws.usage_count

    def _require_workspace(self, workspace_id: str) -> Workspace:
        ws = self.workspaces.get(workspace_id)
        if not ws:
            raise ConstraintViolation(
                "workspace not found", {"workspace_id": workspace_id}
            )
        return ws

    # conversations
    def create_conversation(
        self,
        workspace_id: str,
        module_type: str,
        title: Optional[str] = None,
    ) -> Conversation:
        with self._data_lock:
            self._require_workspace(workspace_id)
            conv_id = str(uuid.uuid4())
            now = datetime.utcnow()
            conv = Conversation(
                id=conv_id,
                workspace_id=workspace_id,
                module_type=module_type,
                created_at=now,
                updated_at=now,
                title=title or NEW_CONVERSATION_TITLE,
            )
            self.conversations[conv_id] = conv
            self.messages[conv_id] = []
            return replace(conv)

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        with self._data_lock:
            conv = self.conversations.get(conversation_id)
            return replace(conv) if conv else None

    def list_conversations(
        self, workspace_id: str, module_type: Optional[str] = None
    ) -> List[Conversation]:
        with self._data_lock:
            convs = [
                c for c in self.conversations.values() if c.workspace_id == workspace_id
            ]
            if module_type:
                convs = [c for c in convs if c.module_type == module_type]
            convs.sort(key=lambda c: c.updated_at, reverse=True)
            return [replace(c) for c in convs]

    def update_conversation_title(self, conversation_id: str, title: str) -> Conversation:
        with self._data_lock:
            conv = self.conversations.get(conversation_id)
            if not conv:
                raise ConstraintViolation(
                    "conversation not found", {"conversation_id": conversation_id}
                )
            conv.title = title
            conv.updated_at = datetime.utcnow()
            return replace(conv)

    def delete_conversation(self, conversation_id: str) -> bool:
        with self._data_lock:
            if conversation_id not in self.conversations:
                return False
            del self.conversations[conversation_id]
            removed = self.messages.pop(conversation_id, [])
            self.logger.info(
                "conversation_deleted",
                conversation_id=conversation_id,
                messages_removed=len(removed),
            )
            return True

    # messages
    def append_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        generated_content: Optional[dict] = None,
    ) -> Message:
        with self._data_lock:
            if conversation_id not in self.conversations:
                raise ConstraintViolation(
                    "conversation not found", {"conversation_id": conversation_id}
                )
            seq = len(self.messages.get(conversation_id, []))
            msg = Message(
                id=str(uuid.uuid4()),
                conversation_id=conversation_id,
                role=role,
                content=content,
                seq=seq,
                created_at=datetime.utcnow(),
                generated_content=generated_content,
            )
            self.messages.setdefault(conversation_id, []).append(msg)
            self.conversations[conversation_id].updated_at = msg.created_at
            return replace(msg)

    def list_messages(
        self, conversation_id: str, limit: Optional[int] = None
    ) -> List[Message]:
        with self._data_lock:
            msgs = self.messages.get(conversation_id, [])
            if limit is not None:
                msgs = msgs[-limit:] if limit > 0 else []
            return [replace(m) for m in msgs]

    def verify_connection(self) -> dict:
        return {"status": "ok", "backend": "memory"}

    def close(self) -> None:
        return None
