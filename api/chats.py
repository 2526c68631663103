"""Chat history endpoints."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request

from models.chat import ChatHistory, UIMessage
from models.base import CamelModel
from models.errors import ErrorCode, format_error

router = APIRouter(prefix="/api/chats", tags=["chats"])


class PutChatBody(CamelModel):
    messages: list[UIMessage]


def _not_found(chat_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=format_error(ErrorCode.CHAT_NOT_FOUND, f"chat {chat_id!r} not found"),
    )


@router.get("", response_model=list[ChatHistory], response_model_by_alias=True)
async def list_chats(request: Request):
    """All saved chats, newest first."""
    return await request.app.state.chat_store.list_all()


@router.post("/cleanup")
async def cleanup_chats(request: Request):
    removed = await request.app.state.chat_store.cleanup_duplicates()
    return {"removed": removed}


@router.get("/{chat_id}", response_model=ChatHistory, response_model_by_alias=True)
async def get_chat(chat_id: str, request: Request):
    chat = await request.app.state.chat_store.get(chat_id)
    if chat is None:
        raise _not_found(chat_id)
    return chat


@router.put("/{chat_id}")
async def put_chat(chat_id: str, body: PutChatBody, request: Request):
    """Create or replace a chat.  Empty message lists are not stored."""
    saved = await request.app.state.chat_store.put(ChatHistory(id=chat_id, messages=body.messages))
    return {"id": chat_id, "saved": saved}


@router.delete("/{chat_id}")
async def delete_chat(chat_id: str, request: Request):
    if not await request.app.state.chat_store.delete(chat_id):
        raise _not_found(chat_id)
    return {"id": chat_id, "deleted": True}
