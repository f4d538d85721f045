"""PostgresStore behaviour against a fake connection pool."""

import json
from contextlib import contextmanager
from datetime import datetime

import pytest
from psycopg import errors

from prowrite.logging import get_logger
from prowrite.storage.errors import ConstraintViolation, StorageError
from prowrite.storage.models import BrandVoice
from prowrite.storage.postgres import PostgresStore


class FakeCursor:
    def __init__(self, rows=None, rowcount=0):
        self._rows = rows or []
        self.rowcount = rowcount

    def fetchone(self):
        return self._rows[0] if self._rows else None

    def fetchall(self):
        return list(self._rows)


class FakeConnection:
    def __init__(self, responses):
        self.responses = responses
        self.executed = []

    @contextmanager
    def transaction(self):
        yield

    def execute(self, query, params=None):
        self.executed.append((query, params))
        if not self.responses:
            return FakeCursor()
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakePool:
    def __init__(self, conn):
        self.conn = conn
        self.closed = False

    @contextmanager
    def connection(self):
        yield self.conn

    def close(self):
        self.closed = True


def _store(*responses):
    store = PostgresStore.__new__(PostgresStore)
    store.dsn = "postgresql://test"
    store.logger = get_logger("test")
    conn = FakeConnection(list(responses))
    store.pool = FakePool(conn)
    return store, conn


NOW = datetime(2024, 1, 1, 12, 0, 0)


def test_workspace_row_mapping():
    row = {
        "id": "ws-1",
        "name": "Acme",
        "usage_limit": 10,
        "usage_count": 3,
        "brand_voice": json.dumps({"tone": "warm", "terminology": ["clients"]}),
        "created_at": NOW,
        "updated_at": NOW,
    }
    store, _ = _store(FakeCursor([row]))
    ws = store.get_workspace("ws-1")
    assert ws.usage_count == 3
    assert ws.brand_voice == BrandVoice(tone="warm", terminology=["clients"])


def test_missing_workspace_returns_none():
    store, _ = _store(FakeCursor([]))
    assert store.get_workspace("nope") is None


def test_increment_usage_is_single_update():
    store, conn = _store(FakeCursor([{"usage_count": 4}]))
    assert store.increment_usage("ws-1") == 4
    assert len(conn.executed) == 1
    assert "usage_count = usage_count + 1" in conn.executed[0][0]


def test_increment_usage_unknown_workspace():
    store, _ = _store(FakeCursor([]))
    with pytest.raises(ConstraintViolation):
        store.increment_usage("nope")


def test_foreign_key_violation_maps_to_constraint():
    store, _ = _store(errors.ForeignKeyViolation("fk"))
    with pytest.raises(ConstraintViolation) as excinfo:
        store.create_conversation("missing", "cold_email")
    assert excinfo.value.detail == {"operation": "create_conversation"}


def test_unique_violation_maps_to_constraint():
    store, _ = _store(errors.UniqueViolation("dup"))
    with pytest.raises(ConstraintViolation):
        store.create_workspace("Acme", 5, workspace_id="ws-1")


def test_other_driver_errors_map_to_storage_error():
    store, _ = _store(errors.OperationalError("connection lost"))
    with pytest.raises(StorageError) as excinfo:
        store.list_messages("c-1")
    assert "connection lost" not in excinfo.value.message


def test_append_message_assigns_next_seq():
    store, conn = _store(
        FakeCursor([{"?column?": 1}]),
        FakeCursor([{"c": 2}]),
        FakeCursor(),
        FakeCursor(),
    )
    msg = store.append_message("c-1", "assistant", "hi", {"type": "general", "content": "hi"})
    assert msg.seq == 2
    assert "FOR UPDATE" in conn.executed[0][0]
    insert_params = conn.executed[2][1]
    assert json.loads(insert_params[4]) == {"type": "general", "content": "hi"}


def test_append_message_missing_conversation():
    store, _ = _store(FakeCursor([]))
    with pytest.raises(ConstraintViolation):
        store.append_message("missing", "user", "hi")


def test_list_messages_with_limit_orders_oldest_first():
    rows = [
        {
            "id": f"m{i}",
            "conversation_id": "c-1",
            "role": "user",
            "content": f"m{i}",
            "seq": i,
            "created_at": NOW,
            "generated_content": None,
        }
        for i in (3, 4)
    ]
    store, conn = _store(FakeCursor(rows))
    msgs = store.list_messages("c-1", limit=2)
    assert [m.seq for m in msgs] == [3, 4]
    assert conn.executed[0][1] == ("c-1", 2)


def test_delete_conversation_reports_rowcount():
    store, _ = _store(FakeCursor(rowcount=1), FakeCursor(rowcount=0))
    assert store.delete_conversation("c-1") is True
    assert store.delete_conversation("c-1") is False


def test_close_releases_pool():
    store, _ = _store()
    store.close()
    assert store.pool.closed
