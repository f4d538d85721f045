from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query

from prowrite.api.schemas import (
    ConversationDetail,
    ConversationListResponse,
    ConversationSummary,
    CreateConversationRequest,
    Envelope,
    MessageResponse,
    ModuleInfo,
    ModuleListResponse,
    SendMessageRequest,
    SendMessageResponse,
    UpdateConversationRequest,
    UsageResponse,
)
from prowrite.api.sse import SSERelay
from prowrite.logging import get_logger
from prowrite.service.errors import (
    AuthenticationError,
    ForbiddenError,
    NotFoundError,
    UnsupportedModuleError,
)
from prowrite.service.prompts.registry import available_modules, is_valid_module
from prowrite.service.runtime import get_runtime
from prowrite.storage.models import Conversation, Message, Workspace

logger = get_logger(__name__)

router = APIRouter(prefix="/v1")


def _http_error(
    code: str, message: str, status_code: int, details: Optional[dict | str] = None
) -> HTTPException:
    payload: dict[str, object] = {
        "status": "error",
        "error": {"code": code, "message": message},
    }
    if details is not None:
        payload["error"]["details"] = details  # type: ignore[index]
    return HTTPException(status_code=status_code, detail=payload)


async def get_workspace(
    x_workspace_id: Optional[str] = Header(default=None, alias="X-Workspace-ID"),
) -> Workspace:
    """Resolve the calling workspace from the ``X-Workspace-ID`` header."""
    workspace_id = (x_workspace_id or "").strip()
    if not workspace_id:
        raise AuthenticationError("workspace header required")
    workspace = get_runtime().store.get_workspace(workspace_id)
    if not workspace:
        raise _http_error("not_found", "workspace not found", status_code=404)
    return workspace


def _get_owned_conversation(
    runtime, conversation_id: str, workspace: Workspace
) -> Conversation:
    conversation = runtime.store.get_conversation(conversation_id)
    if not conversation:
        raise NotFoundError("conversation not found", detail={"conversation_id": conversation_id})
    if conversation.workspace_id != workspace.id:
        logger.warning(
            "conversation_access_denied",
            conversation_id=conversation_id,
            workspace_id=workspace.id,
        )
        raise ForbiddenError("access denied")
    return conversation


def _conversation_summary(conversation: Conversation) -> ConversationSummary:
    return ConversationSummary(
        id=conversation.id,
        workspace_id=conversation.workspace_id,
        module_type=conversation.module_type,
        title=conversation.title,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


def _message_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        role=message.role,
        content=message.content,
        generated_content=message.generated_content,
        created_at=message.created_at,
    )


@router.get("/modules", response_model=Envelope, tags=["modules"])
async def list_modules():
    items = [
        ModuleInfo(module_type=cfg.module_type, display_name=cfg.display_name)
        for cfg in available_modules()
    ]
    return Envelope(status="ok", data=ModuleListResponse(items=items))


@router.get("/usage", response_model=Envelope, tags=["usage"])
async def get_usage(workspace: Workspace = Depends(get_workspace)):
    runtime = get_runtime()
    stats = runtime.usage_gate.usage_stats(workspace.id)
    return Envelope(status="ok", data=UsageResponse(**stats.to_dict()))


@router.post("/conversations", response_model=Envelope, tags=["conversations"])
async def create_conversation(
    body: CreateConversationRequest,
    workspace: Workspace = Depends(get_workspace),
):
    if not is_valid_module(body.module_type):
        raise UnsupportedModuleError(body.module_type)
    runtime = get_runtime()
    conversation = runtime.store.create_conversation(
        workspace.id, body.module_type, title=body.title
    )
    logger.info(
        "conversation_created",
        conversation_id=conversation.id,
        workspace_id=workspace.id,
        module_type=conversation.module_type,
    )
    return Envelope(status="ok", data=_conversation_summary(conversation))


@router.get("/conversations", response_model=Envelope, tags=["conversations"])
async def list_conversations(
    module_type: Optional[str] = Query(None, max_length=64, description="Filter by module"),
    workspace: Workspace = Depends(get_workspace),
):
    runtime = get_runtime()
    convs = runtime.store.list_conversations(workspace.id, module_type=module_type)
    items = [_conversation_summary(c) for c in convs]
    return Envelope(
        status="ok",
        data=ConversationListResponse(items=items, total_count=len(items)),
    )


@router.get("/conversations/{conversation_id}", response_model=Envelope, tags=["conversations"])
async def get_conversation(
    conversation_id: str, workspace: Workspace = Depends(get_workspace)
):
    runtime = get_runtime()
    conversation = _get_owned_conversation(runtime, conversation_id, workspace)
    messages = runtime.store.list_messages(conversation.id)
    summary = _conversation_summary(conversation)
    return Envelope(
        status="ok",
        data=ConversationDetail(
            **summary.model_dump(),
            messages=[_message_response(m) for m in messages],
        ),
    )


@router.patch("/conversations/{conversation_id}", response_model=Envelope, tags=["conversations"])
async def update_conversation(
    conversation_id: str,
    body: UpdateConversationRequest,
    workspace: Workspace = Depends(get_workspace),
):
    runtime = get_runtime()
    _get_owned_conversation(runtime, conversation_id, workspace)
    conversation = runtime.store.update_conversation_title(conversation_id, body.title)
    return Envelope(status="ok", data=_conversation_summary(conversation))


@router.delete("/conversations/{conversation_id}", response_model=Envelope, tags=["conversations"])
async def delete_conversation(
    conversation_id: str, workspace: Workspace = Depends(get_workspace)
):
    runtime = get_runtime()
    _get_owned_conversation(runtime, conversation_id, workspace)
    runtime.store.delete_conversation(conversation_id)
    return Envelope(status="ok", data={"id": conversation_id, "deleted": True})


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=Envelope,
    tags=["chat"],
)
async def send_message(
    conversation_id: str,
    body: SendMessageRequest,
    workspace: Workspace = Depends(get_workspace),
):
    runtime = get_runtime()
    conversation = _get_owned_conversation(runtime, conversation_id, workspace)
    result = await runtime.chat.send_message(conversation, workspace, body.content)
    return Envelope(
        status="ok",
        data=SendMessageResponse(
            user_message=_message_response(result.user_message),
            assistant_message=_message_response(result.assistant_message),
            title=result.title,
        ),
    )


@router.post("/conversations/{conversation_id}/messages/stream", tags=["chat"])
async def stream_message(
    conversation_id: str,
    body: SendMessageRequest,
    workspace: Workspace = Depends(get_workspace),
):
    """Stream the assistant reply as Server-Sent Events.

    Ownership is checked before the stream opens, so a missing or foreign
    conversation is a plain HTTP error. Quota denial and upstream failures
    arrive as a terminal ``error`` event on a successful stream.
    """
    runtime = get_runtime()
    conversation = _get_owned_conversation(runtime, conversation_id, workspace)
    session = runtime.chat.open_session(conversation, workspace, body.content)
    logger.info(
        "chat_stream_opened",
        session_id=session.id,
        conversation_id=conversation.id,
        workspace_id=workspace.id,
    )
    relay = SSERelay(
        session.run(),
        heartbeat_seconds=runtime.settings.sse_heartbeat_seconds,
        session_id=session.id,
    )
    return relay.response()
