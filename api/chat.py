"""Chat streaming endpoint — Vercel AI SDK UI message stream v1."""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from starlette.responses import StreamingResponse

from models.chat import ChatRequest
from services.composer import StreamComposer
from services.datastream import STREAM_HEADERS

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])


@router.post("/chat")
async def chat(req: ChatRequest, request: Request):
    """Stream one dispatcher turn as Server-Sent Events.

    Required frontend: ``useChat`` with ``x-vercel-ai-ui-message-stream: v1``.
    """
    if not any(m.role == "user" for m in req.messages):
        raise HTTPException(status_code=400, detail="messages must contain a user message")

    state = request.app.state
    composer = StreamComposer(
        req,
        dispatcher=state.dispatcher,
        store=state.chat_store,
        search=state.search,
        pages=state.pages,
        bridge=state.bridge,
        settings=state.settings,
    )
    logger.info("Chat turn started for %s (%d messages)", composer.chat_id, len(req.messages))
    return StreamingResponse(
        composer.stream(),
        media_type="text/event-stream",
        headers=STREAM_HEADERS,
    )
