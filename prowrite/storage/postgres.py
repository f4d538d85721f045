from __future__ import annotations

import json
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

import psycopg
from psycopg import errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from prowrite.logging import get_logger
from prowrite.storage.errors import ConstraintViolation, StorageError
from prowrite.storage.models import (
    NEW_CONVERSATION_TITLE,
    BrandVoice,
    Conversation,
    Message,
    Workspace,
)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS workspace (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    usage_limit INTEGER NOT NULL,
    usage_count INTEGER NOT NULL DEFAULT 0,
    brand_voice JSONB,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE TABLE IF NOT EXISTS conversation (
    id TEXT PRIMARY KEY,
    workspace_id TEXT NOT NULL REFERENCES workspace(id) ON DELETE CASCADE,
    module_type TEXT NOT NULL,
    title TEXT NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
CREATE INDEX IF NOT EXISTS conversation_workspace_idx
    ON conversation (workspace_id, updated_at DESC);
CREATE TABLE IF NOT EXISTS message (
    id TEXT PRIMARY KEY,
    conversation_id TEXT NOT NULL REFERENCES conversation(id) ON DELETE CASCADE,
    role TEXT NOT NULL CHECK (role IN ('user', 'assistant')),
    content TEXT NOT NULL,
    generated_content JSONB,
    seq INTEGER NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (conversation_id, seq)
);
"""


class PostgresStore:
    """Thin Postgres-backed store for workspaces, conversations and messages."""

    def __init__(self, dsn: str) -> None:
        self.dsn = dsn
        self.logger = get_logger(__name__)
        self.pool = ConnectionPool(
            self.dsn,
            min_size=2,
            max_size=10,
            kwargs={"row_factory": dict_row, "autocommit": False},
        )
        self._ensure_schema()

    def _connect(self):
        return self.pool.connection()

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[psycopg.Connection]:
        """Yield a connection inside a transaction, mapping driver errors."""

        try:
            with self._connect() as conn:
                with conn.transaction():
                    yield conn
        except (ConstraintViolation, StorageError):
            raise
        except errors.ForeignKeyViolation as exc:
            raise ConstraintViolation(
                f"{operation}: referenced row missing", {"operation": operation}
            ) from exc
        except errors.UniqueViolation as exc:
            raise ConstraintViolation(
                f"{operation}: duplicate row", {"operation": operation}
            ) from exc
        except psycopg.Error as exc:
            self.logger.error("postgres_query_failed", operation=operation, error=str(exc))
            raise StorageError(f"{operation} failed", {"operation": operation}) from exc

    def _ensure_schema(self) -> None:
        """Create the tables this service needs when they are missing."""

        with self._transaction("ensure_schema") as conn:
            conn.execute(_SCHEMA)

    # row mapping
    @staticmethod
    def _load_json(value: Any) -> Optional[dict]:
        if value is None:
            return None
        if isinstance(value, (dict, list)):
            return value
        return json.loads(value)

    def _workspace_from_row(self, row: Dict[str, Any]) -> Workspace:
        return Workspace(
            id=row["id"],
            name=row["name"],
            usage_limit=row["usage_limit"],
            usage_count=row["usage_count"],
            brand_voice=BrandVoice.from_dict(self._load_json(row.get("brand_voice"))),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _conversation_from_row(row: Dict[str, Any]) -> Conversation:
        return Conversation(
            id=row["id"],
            workspace_id=row["workspace_id"],
            module_type=row["module_type"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _message_from_row(self, row: Dict[str, Any]) -> Message:
        return Message(
            id=row["id"],
            conversation_id=row["conversation_id"],
            role=row["role"],
            content=row["content"],
            seq=row["seq"],
            created_at=row["created_at"],
            generated_content=self._load_json(row.get("generated_content")),
        )

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
        ws_id = workspace_id or str(uuid.uuid4())
        now = datetime.utcnow()
        with self._transaction("create_workspace") as conn:
            conn.execute(
                "INSERT INTO workspace (id, name, usage_limit, usage_count, brand_voice, created_at, updated_at) VALUES (%s, %s, %s, %s, %s, %s, %s)",
                (
                    ws_id,
                    name,
                    usage_limit,
                    usage_count,
                    json.dumps(brand_voice.to_dict()) if brand_voice else None,
                    now,
                    now,
                ),
            )
        return Workspace(
            id=ws_id,
            name=name,
            usage_limit=usage_limit,
            usage_count=usage_count,
            brand_voice=brand_voice,
            created_at=now,
            updated_at=now,
        )

    def get_workspace(self, workspace_id: str) -> Optional[Workspace]:
        with self._transaction("get_workspace") as conn:
            row = conn.execute(
                "SELECT * FROM workspace WHERE id = %s", (workspace_id,)
            ).fetchone()
        return self._workspace_from_row(row) if row else None

    def update_brand_voice(
        self, workspace_id: str, brand_voice: Optional[BrandVoice]
    ) -> Workspace:
        with self._transaction("update_brand_voice") as conn:
            row = conn.execute(
                "UPDATE workspace SET brand_voice = %s, updated_at = now() WHERE id = %s RETURNING *",
                (
                    json.dumps(brand_voice.to_dict()) if brand_voice else None,
                    workspace_id,
                ),
            ).fetchone()
        if not row:
            raise ConstraintViolation(
                "workspace not found", {"workspace_id": workspace_id}
            )
        return self._workspace_from_row(row)

    def _workspace_column(self, workspace_id: str, column: str) -> int:
        with self._transaction(f"get_{column}") as conn:
            row = conn.execute(
                f"SELECT {column} FROM workspace WHERE id = %s", (workspace_id,)
            ).fetchone()
        if not row:
            raise ConstraintViolation(
                "workspace not found", {"workspace_id": workspace_id}
            )
        return row[column]

    def get_usage_limit(self, workspace_id: str) -> int:
        return self._workspace_column(workspace_id, "usage_limit")

    def get_usage_count(self, workspace_id: str) -> int:
        return self._workspace_column(workspace_id, "usage_count")

    def increment_usage(self, workspace_id: str) -> int:
        # Single UPDATE so concurrent settlements never lose an increment
        with self._transaction("increment_usage") as conn:
            row = conn.execute(
                "UPDATE workspace SET usage_count = usage_count + 1, updated_at = now() WHERE id = %s RETURNING usage_count",
                (workspace_id,),
            ).fetchone()
        if not row:
            raise ConstraintViolation(
                "workspace not found", {"workspace_id": workspace_id}
            )
        return row["usage_count"]

    # conversations
    def create_conversation(
        self,
        workspace_id: str,
        module_type: str,
        title: Optional[str] = None,
    ) -> Conversation:
        conv_id = str(uuid.uuid4())
        now = datetime.utcnow()
        title = title or NEW_CONVERSATION_TITLE
        with self._transaction("create_conversation") as conn:
            conn.execute(
                "INSERT INTO conversation (id, workspace_id, module_type, title, created_at, updated_at) VALUES (%s, %s, %s, %s, %s, %s)",
                (conv_id, workspace_id, module_type, title, now, now),
            )
        return Conversation(
            id=conv_id,
            workspace_id=workspace_id,
            module_type=module_type,
            title=title,
            created_at=now,
            updated_at=now,
        )

    def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        with self._transaction("get_conversation") as conn:
            row = conn.execute(
                "SELECT * FROM conversation WHERE id = %s", (conversation_id,)
            ).fetchone()
        return self._conversation_from_row(row) if row else None

    def list_conversations(
        self, workspace_id: str, module_type: Optional[str] = None
    ) -> List[Conversation]:
        query = "SELECT * FROM conversation WHERE workspace_id = %s"
        params: list[Any] = [workspace_id]
        if module_type:
            query += " AND module_type = %s"
            params.append(module_type)
        query += " ORDER BY updated_at DESC"
        with self._transaction("list_conversations") as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._conversation_from_row(row) for row in rows]

    def update_conversation_title(self, conversation_id: str, title: str) -> Conversation:
        with self._transaction("update_conversation_title") as conn:
            row = conn.execute(
                "UPDATE conversation SET title = %s, updated_at = now() WHERE id = %s RETURNING *",
                (title, conversation_id),
            ).fetchone()
        if not row:
            raise ConstraintViolation(
                "conversation not found", {"conversation_id": conversation_id}
            )
        return self._conversation_from_row(row)

    def delete_conversation(self, conversation_id: str) -> bool:
        with self._transaction("delete_conversation") as conn:
            cur = conn.execute(
                "DELETE FROM conversation WHERE id = %s", (conversation_id,)
            )
            deleted = cur.rowcount > 0
        if deleted:
            self.logger.info("conversation_deleted", conversation_id=conversation_id)
        return deleted

    # messages
    def append_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        generated_content: Optional[dict] = None,
    ) -> Message:
        msg_id = str(uuid.uuid4())
        now = datetime.utcnow()
        with self._transaction("append_message") as conn:
            locked = conn.execute(
                "SELECT 1 FROM conversation WHERE id = %s FOR UPDATE",
                (conversation_id,),
            ).fetchone()
            if not locked:
                raise ConstraintViolation(
                    "conversation not found", {"conversation_id": conversation_id}
                )
            seq_row = conn.execute(
                "SELECT COUNT(*) AS c FROM message WHERE conversation_id = %s",
                (conversation_id,),
            ).fetchone()
            seq = seq_row["c"] if seq_row else 0
            conn.execute(
                "INSERT INTO message (id, conversation_id, role, content, generated_content, seq, created_at) VALUES (%s, %s, %s, %s, %s, %s, %s)",
                (
                    msg_id,
                    conversation_id,
                    role,
                    content,
                    json.dumps(generated_content) if generated_content is not None else None,
                    seq,
                    now,
                ),
            )
            conn.execute(
                "UPDATE conversation SET updated_at = %s WHERE id = %s",
                (now, conversation_id),
            )
        return Message(
            id=msg_id,
            conversation_id=conversation_id,
            role=role,
            content=content,
            seq=seq,
            created_at=now,
            generated_content=generated_content,
        )

    def list_messages(
        self, conversation_id: str, limit: Optional[int] = None
    ) -> List[Message]:
        with self._transaction("list_messages") as conn:
            if limit is None:
                rows = conn.execute(
                    "SELECT * FROM message WHERE conversation_id = %s ORDER BY seq ASC",
                    (conversation_id,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM (SELECT * FROM message WHERE conversation_id = %s ORDER BY seq DESC LIMIT %s) recent ORDER BY seq ASC",
                    (conversation_id, max(limit, 0)),
                ).fetchall()
        return [self._message_from_row(row) for row in rows]

    def verify_connection(self) -> dict:
        with self._transaction("verify_connection") as conn:
            conn.execute("SELECT 1")
        return {"status": "ok", "backend": "postgres"}

    def close(self) -> None:
        self.pool.close()
