"""Server-Sent Events relay for streamed chat sessions.

The session runs in a detached task that feeds a queue. A second task puts
heartbeat comments on the same queue. The response body only reads from the
queue, so a client disconnect stops delivery and the heartbeat while the
session itself runs on to persist its reply and settle usage.
"""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, Optional, Set

from fastapi.responses import StreamingResponse

from prowrite.logging import get_logger, session_log_context
from prowrite.service.chat import StreamEvent

logger = get_logger(__name__)

SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
HEARTBEAT_FRAME = ": heartbeat\n\n"
GENERIC_FAILURE_MESSAGE = "An unexpected error occurred. Please try again."

# Sessions still running, including ones whose client has gone away
_background_sessions: Set[asyncio.Task] = set()


def encode_event(event: StreamEvent) -> str:
    payload = json.dumps(event.to_payload(), separators=(",", ":"), ensure_ascii=False)
    return f"data: {payload}\n\n"


def _track(task: asyncio.Task) -> None:
    _background_sessions.add(task)
    task.add_done_callback(_background_sessions.discard)


def active_session_count() -> int:
    return sum(1 for task in _background_sessions if not task.done())


async def drain_background_sessions(timeout: float) -> int:
    """Wait for in-flight sessions to finish; cancel any still running.

    Returns the number of sessions that had to be cancelled.
    """
    pending = [task for task in _background_sessions if not task.done()]
    if not pending:
        return 0
    logger.info("chat_sessions_draining", count=len(pending), timeout=timeout)
    _, still_running = await asyncio.wait(pending, timeout=timeout)
    for task in still_running:
        task.cancel()
    if still_running:
        # Cancelled producers may still be inside a store call
        await asyncio.gather(*still_running, return_exceptions=True)
        logger.warning("chat_sessions_cancelled_on_shutdown", count=len(still_running))
    return len(still_running)


class SSERelay:
    """Relay a session's events onto an SSE body with keep-alives."""

    def __init__(
        self,
        events: AsyncIterator[StreamEvent],
        *,
        heartbeat_seconds: float = 15.0,
        session_id: Optional[str] = None,
    ) -> None:
        self._events = events
        self.heartbeat_seconds = heartbeat_seconds
        self.session_id = session_id
        self.connected = True
        self._queue: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._producer: Optional[asyncio.Task] = None

    @property
    def producer(self) -> Optional[asyncio.Task]:
        return self._producer

    async def _produce(self) -> None:
        delivered_terminal = False
        with session_log_context(session_id=self.session_id):
            try:
                async for event in self._events:
                    if self.connected:
                        await self._queue.put(encode_event(event))
                    delivered_terminal = delivered_terminal or event.terminal
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("chat_session_relay_failed")
                if self.connected and not delivered_terminal:
                    await self._queue.put(
                        encode_event(StreamEvent.failed(GENERIC_FAILURE_MESSAGE))
                    )
            finally:
                self._queue.put_nowait(None)

    async def _heartbeat(self) -> None:
        while self.connected:
            await asyncio.sleep(self.heartbeat_seconds)
            if not self.connected:
                return
            await self._queue.put(HEARTBEAT_FRAME)

    async def stream(self) -> AsyncIterator[str]:
        self._producer = asyncio.create_task(self._produce())
        _track(self._producer)
        heartbeat = asyncio.create_task(self._heartbeat())
        try:
            while True:
                frame = await self._queue.get()
                if frame is None:
                    break
                yield frame
        finally:
            self.connected = False
            heartbeat.cancel()
            if not self._producer.done():
                logger.info("sse_client_disconnected", session_id=self.session_id)

    def response(self) -> StreamingResponse:
        return StreamingResponse(
            self.stream(), media_type=SSE_MEDIA_TYPE, headers=dict(SSE_HEADERS)
        )
