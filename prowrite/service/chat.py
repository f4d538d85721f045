"""Conversational session engine.

One session is one user-message-to-assistant-reply turn. The streaming
session moves through::

    START -> GATE_CHECK -> PERSIST_USER_MSG -> [AUTO_TITLE] -> BUILD_PROMPT
          -> STREAMING -> SETTLING -> DONE

and lands in ERRORED when the quota gate denies, the upstream stream fails,
or a store call raises. Every session yields zero or more ``text`` events
followed by exactly one terminal ``done`` or ``error`` event, except when a
store call raises; that exception propagates to the transport.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Callable, List, Optional, TypeVar

from prowrite.config import Settings
from prowrite.logging import get_logger
from prowrite.service.context_window import window
from prowrite.service.errors import PaymentRequiredError, UpstreamGenerationError
from prowrite.service.extraction import extract
from prowrite.service.llm import Fragment, LLMService
from prowrite.service.prompt_builder import AssembledPrompt, assemble, derive_title
from prowrite.service.usage import QUOTA_EXCEEDED_MESSAGE, UsageGate
from prowrite.storage.models import (
    NEW_CONVERSATION_TITLE,
    Conversation,
    Message,
    Workspace,
)

logger = get_logger(__name__)

T = TypeVar("T")

STREAM_APOLOGY_TEMPLATE = (
    "I apologize, but I encountered an error. Please try again. Error: {error}"
)
SYNC_APOLOGY_TEMPLATE = (
    "I apologize, but I encountered an error while processing your request. "
    "Please try again. Error: {error}"
)


class SessionState(str, Enum):
    START = "start"
    GATE_CHECK = "gate_check"
    PERSIST_USER_MSG = "persist_user_msg"
    AUTO_TITLE = "auto_title"
    BUILD_PROMPT = "build_prompt"
    STREAMING = "streaming"
    SETTLING = "settling"
    DONE = "done"
    ERRORED = "errored"


TERMINAL_STATES = frozenset({SessionState.DONE, SessionState.ERRORED})


@dataclass(frozen=True)
class StreamEvent:
    type: str
    content: str = ""
    title: Optional[str] = None
    assistant_message_id: Optional[str] = None
    full_content: Optional[str] = None
    error: Optional[str] = None

    @property
    def terminal(self) -> bool:
        return self.type in ("done", "error")

    @classmethod
    def text(cls, content: str, title: Optional[str] = None) -> "StreamEvent":
        return cls(type="text", content=content, title=title)

    @classmethod
    def done(cls, assistant_message_id: str, full_content: str) -> "StreamEvent":
        return cls(
            type="done",
            assistant_message_id=assistant_message_id,
            full_content=full_content,
        )

    @classmethod
    def failed(cls, message: str) -> "StreamEvent":
        return cls(type="error", error=message)

    def to_payload(self) -> dict:
        """Wire shape for the SSE ``data:`` line."""
        if self.type == "text":
            payload: dict = {"type": "text", "content": self.content}
            if self.title:
                payload["title"] = self.title
            return payload
        if self.type == "done":
            return {
                "type": "done",
                "assistantMessageId": self.assistant_message_id,
                "fullContent": self.full_content,
            }
        return {"type": "error", "error": self.error}


@dataclass
class TurnResult:
    user_message: Message
    assistant_message: Message
    title: Optional[str] = None
    failed: bool = False


@dataclass
class _TurnStart:
    history: List[Message]
    user_message: Message
    title: Optional[str]


async def _store_call(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    return await asyncio.to_thread(fn, *args, **kwargs)


class ChatService:
    """Runs conversation turns against the store, quota gate and generator."""

    def __init__(
        self,
        store,
        llm: LLMService,
        usage_gate: UsageGate,
        settings: Settings,
    ) -> None:
        self.store = store
        self.llm = llm
        self.usage_gate = usage_gate
        self.settings = settings

    def open_session(
        self, conversation: Conversation, workspace: Workspace, content: str
    ) -> "ChatSession":
        return ChatSession(self, conversation, workspace, content)

    async def auto_title(
        self, conversation: Conversation, first_message: str
    ) -> Optional[str]:
        """Rename a conversation still carrying the placeholder title.

        Returns the new title, or None when the conversation was already
        titled or the message has no usable text.
        """
        if conversation.title != NEW_CONVERSATION_TITLE:
            return None
        title = derive_title(first_message, self.settings.title_max_length)
        if not title:
            return None
        await _store_call(self.store.update_conversation_title, conversation.id, title)
        conversation.title = title
        logger.info("conversation_titled", conversation_id=conversation.id)
        return title

    async def _begin_turn(
        self,
        conversation: Conversation,
        content: str,
        on_state: Optional[Callable[["SessionState"], None]] = None,
    ) -> _TurnStart:
        # History is read before the append so it holds prior turns only
        history = await _store_call(
            self.store.list_messages,
            conversation.id,
            limit=self.settings.context_max_messages,
        )
        user_message = await _store_call(
            self.store.append_message, conversation.id, "user", content
        )
        title = None
        if not history:
            if on_state:
                on_state(SessionState.AUTO_TITLE)
            title = await self.auto_title(conversation, content)
        return _TurnStart(history=history, user_message=user_message, title=title)

    def _build_prompt(
        self,
        conversation: Conversation,
        workspace: Workspace,
        history: List[Message],
        content: str,
    ) -> AssembledPrompt:
        turns = window(
            history,
            self.settings.context_max_messages,
            self.settings.context_max_chars,
        )
        return assemble(conversation.module_type, content, turns, workspace.brand_voice)

    async def _settle(
        self, conversation: Conversation, workspace: Workspace, full_text: str
    ) -> Message:
        generated = extract(full_text, min_length=self.settings.extraction_min_length)
        assistant = await _store_call(
            self.store.append_message,
            conversation.id,
            "assistant",
            full_text,
            generated.to_dict() if generated else None,
        )
        await self.usage_gate.settle(workspace.id)
        return assistant

    async def _record_failure(
        self, conversation: Conversation, template: str, error: str
    ) -> Message:
        return await _store_call(
            self.store.append_message,
            conversation.id,
            "assistant",
            template.format(error=error),
        )

    async def send_message(
        self, conversation: Conversation, workspace: Workspace, content: str
    ) -> TurnResult:
        """Run one turn without streaming.

        Raises:
            PaymentRequiredError: the workspace has no generations left.
        """
        if not await self.usage_gate.may_proceed(workspace.id):
            raise PaymentRequiredError(QUOTA_EXCEEDED_MESSAGE)
        start = await self._begin_turn(conversation, content)
        prompt = self._build_prompt(conversation, workspace, start.history, content)
        try:
            text = await self.llm.generate(prompt.system_prompt, prompt.user_prompt)
        except UpstreamGenerationError as exc:
            assistant = await self._record_failure(
                conversation, SYNC_APOLOGY_TEMPLATE, exc.message
            )
            return TurnResult(
                user_message=start.user_message,
                assistant_message=assistant,
                title=start.title,
                failed=True,
            )
        assistant = await self._settle(conversation, workspace, text)
        logger.info(
            "chat_turn_completed",
            conversation_id=conversation.id,
            assistant_message_id=assistant.id,
        )
        return TurnResult(
            user_message=start.user_message,
            assistant_message=assistant,
            title=start.title,
        )


class ChatSession:
    """A single streamed turn. Iterate ``run()`` once."""

    def __init__(
        self,
        service: ChatService,
        conversation: Conversation,
        workspace: Workspace,
        content: str,
    ) -> None:
        self.id = str(uuid.uuid4())
        self.service = service
        self.conversation = conversation
        self.workspace = workspace
        self.content = content
        self.state = SessionState.START
        self.user_message: Optional[Message] = None
        self.assistant_message: Optional[Message] = None

    def _transition(self, state: SessionState) -> None:
        logger.debug(
            "chat_session_transition",
            session_id=self.id,
            from_state=self.state.value,
            to_state=state.value,
        )
        self.state = state

    async def run(self) -> AsyncIterator[StreamEvent]:
        if self.state != SessionState.START:
            raise RuntimeError("chat session already started")
        try:
            async for event in self._run():
                yield event
        except Exception:
            self._transition(SessionState.ERRORED)
            logger.exception(
                "chat_session_failed",
                session_id=self.id,
                conversation_id=self.conversation.id,
            )
            raise

    async def _run(self) -> AsyncIterator[StreamEvent]:
        service = self.service
        conversation = self.conversation

        self._transition(SessionState.GATE_CHECK)
        if not await service.usage_gate.may_proceed(self.workspace.id):
            self._transition(SessionState.ERRORED)
            yield StreamEvent.failed(QUOTA_EXCEEDED_MESSAGE)
            return

        self._transition(SessionState.PERSIST_USER_MSG)
        start = await service._begin_turn(
            conversation, self.content, on_state=self._transition
        )
        self.user_message = start.user_message
        pending_title = start.title

        self._transition(SessionState.BUILD_PROMPT)
        prompt = service._build_prompt(
            conversation, self.workspace, start.history, self.content
        )

        self._transition(SessionState.STREAMING)
        chunks: List[str] = []
        async for fragment in service.llm.stream(
            prompt.system_prompt, prompt.user_prompt
        ):
            if fragment.kind == Fragment.TEXT:
                chunks.append(fragment.content)
                yield StreamEvent.text(fragment.content, title=pending_title)
                pending_title = None
            elif fragment.kind == Fragment.ERROR:
                error = fragment.error or "Unknown error"
                self.assistant_message = await service._record_failure(
                    conversation, STREAM_APOLOGY_TEMPLATE, error
                )
                self._transition(SessionState.ERRORED)
                logger.warning(
                    "chat_stream_upstream_error",
                    session_id=self.id,
                    conversation_id=conversation.id,
                    fragments=len(chunks),
                )
                if pending_title:
                    yield StreamEvent.text("", title=pending_title)
                yield StreamEvent.failed(error)
                return
            else:
                break

        self._transition(SessionState.SETTLING)
        full_text = "".join(chunks)
        self.assistant_message = await service._settle(
            conversation, self.workspace, full_text
        )
        self._transition(SessionState.DONE)
        logger.info(
            "chat_stream_completed",
            session_id=self.id,
            conversation_id=conversation.id,
            assistant_message_id=self.assistant_message.id,
            fragments=len(chunks),
        )
        if pending_title:
            yield StreamEvent.text("", title=pending_title)
        yield StreamEvent.done(self.assistant_message.id, full_text)
