"""Tests for the SSE transport relay."""

import asyncio
import json

from prowrite.api import sse
from prowrite.api.sse import (
    GENERIC_FAILURE_MESSAGE,
    HEARTBEAT_FRAME,
    SSE_HEADERS,
    SSERelay,
    drain_background_sessions,
    encode_event,
)
from prowrite.service.chat import StreamEvent
from prowrite.service.llm import StubBackend
from prowrite.storage.errors import StorageError


def _decode(frame):
    assert frame.startswith("data: ") and frame.endswith("\n\n")
    return json.loads(frame[len("data: "):-2])


async def _events(*items, pause=0.0):
    for item in items:
        if pause:
            await asyncio.sleep(pause)
        yield item


async def _collect(relay):
    return [frame async for frame in relay.stream()]


async def _abandon(relay):
    """Open the body and drop the client before any frame arrives."""
    body = relay.stream()
    try:
        await asyncio.wait_for(body.__anext__(), timeout=0.01)
    except asyncio.TimeoutError:
        pass
    await body.aclose()


def test_encode_event_is_compact_single_line():
    frame = encode_event(StreamEvent.text("héllo\nworld", title="T"))
    assert frame == 'data: {"type":"text","content":"héllo\\nworld","title":"T"}\n\n'


def test_encode_done_event():
    frame = encode_event(StreamEvent.done("m-1", "full"))
    assert _decode(frame) == {"type": "done", "assistantMessageId": "m-1", "fullContent": "full"}


def test_response_headers():
    relay = SSERelay(_events())
    response = relay.response()
    assert response.media_type == "text/event-stream"
    for key, value in SSE_HEADERS.items():
        assert response.headers[key] == value


async def test_relays_events_in_order():
    relay = SSERelay(_events(StreamEvent.text("a"), StreamEvent.text("b"), StreamEvent.done("m", "ab")))
    frames = await _collect(relay)
    assert [_decode(f)["type"] for f in frames] == ["text", "text", "done"]
    assert not relay.connected


async def test_heartbeats_interleave_while_waiting():
    relay = SSERelay(
        _events(StreamEvent.text("a"), StreamEvent.done("m", "a"), pause=0.05),
        heartbeat_seconds=0.01,
    )
    frames = await _collect(relay)
    data_frames = [f for f in frames if f != HEARTBEAT_FRAME]
    assert HEARTBEAT_FRAME in frames
    assert [_decode(f)["type"] for f in data_frames] == ["text", "done"]


async def test_producer_failure_emits_generic_error():
    async def broken():
        yield StreamEvent.text("a")
        raise StorageError("append_message failed", {"conversation_id": "c"})

    frames = await _collect(SSERelay(broken()))
    payloads = [_decode(f) for f in frames]
    assert payloads[-1] == {"type": "error", "error": GENERIC_FAILURE_MESSAGE}
    assert sum(1 for p in payloads if p["type"] in ("done", "error")) == 1


async def test_no_generic_error_after_terminal_event():
    async def late_failure():
        yield StreamEvent.done("m", "x")
        raise RuntimeError("after done")

    frames = await _collect(SSERelay(late_failure()))
    assert [_decode(f)["type"] for f in frames] == ["done"]


async def test_disconnect_lets_session_finish(memory_store, make_chat):
    """Closing the body early must not abort persistence or settlement."""
    ws = memory_store.create_workspace("Acme", 10)
    conv = memory_store.create_conversation(ws.id, "cold_email")
    chat = make_chat(StubBackend(fragments=["a", "b", "c", "d"], delay=0.01))
    session = chat.open_session(conv, ws, "write")
    relay = SSERelay(session.run(), heartbeat_seconds=60)

    body = relay.stream()
    first = await body.__anext__()
    assert _decode(first)["type"] == "text"
    await body.aclose()
    assert not relay.connected

    await asyncio.wait_for(relay.producer, timeout=2)
    msgs = memory_store.list_messages(conv.id)
    assert [m.role for m in msgs] == ["user", "assistant"]
    assert msgs[1].content == "abcd"
    assert memory_store.get_usage_count(ws.id) == 1


async def test_drain_waits_for_detached_sessions():
    async def slow():
        await asyncio.sleep(0.05)
        yield StreamEvent.done("m", "x")

    relay = SSERelay(slow(), heartbeat_seconds=60)
    await _abandon(relay)

    assert await drain_background_sessions(timeout=2) == 0
    assert relay.producer.done()
    assert sse.active_session_count() == 0


async def test_drain_cancels_sessions_past_timeout():
    async def stuck():
        await asyncio.sleep(10)
        yield StreamEvent.done("m", "x")

    relay = SSERelay(stuck(), heartbeat_seconds=60)
    await _abandon(relay)

    assert await drain_background_sessions(timeout=0.01) == 1
    assert relay.producer.done()
    assert relay.producer.cancelled()
