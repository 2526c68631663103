"""Stream composer — one chat turn from request to SSE lines.

Owns the request's :class:`EventChannel`.  The dispatcher runs in a
background task and writes parts onto the channel; :meth:`StreamComposer.stream`
is the single reader and turns them into SSE lines, sending a heartbeat
comment whenever the channel stays quiet.

Lifecycle: ``created → running → closed | errored``.  A fatal error becomes
one ``error`` part; the HTTP stream still ends with ``finish`` and
``[DONE]``.  When the client goes away the channel is closed (later writes
are dropped) and the dispatcher task is cancelled.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator

from agents.bridge import SubAgentBridge
from agents.dispatcher import AgentDeps, Dispatcher, TurnOutcome
from config.settings import Settings, get_settings
from models.chat import ChatHistory, ChatRequest, UIMessage, UIPart, generate_chat_id, split_prompt
from models.errors import classify_stream_error
from services.brave_search import BraveSearchClient
from services.chat_store import ChatStore
from services.datastream import DONE_LINE, HEARTBEAT_LINE
from services.event_channel import EventChannel
from services.metrics import get_metrics_collector
from services.page_fetcher import PageFetcher

logger = logging.getLogger(__name__)


class ComposerState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    CLOSED = "closed"
    ERRORED = "errored"


def build_assistant_message(message_id: str, outcome: TurnOutcome) -> UIMessage:
    """The stored form of the dispatcher's reply."""
    parts: list[UIPart] = []
    if outcome.reasoning:
        parts.append(UIPart(type="reasoning", text=outcome.reasoning))
    for tool_name in outcome.tools_used:
        parts.append(UIPart(type=f"tool-{tool_name}", state="output-available"))
    if outcome.text:
        parts.append(UIPart(type="text", text=outcome.text))
    return UIMessage(id=message_id, role="assistant", parts=parts)


class StreamComposer:
    """Run one chat turn and expose it as an SSE line stream."""

    def __init__(
        self,
        request: ChatRequest,
        *,
        dispatcher: Dispatcher,
        store: ChatStore | None = None,
        search: BraveSearchClient | None = None,
        pages: PageFetcher | None = None,
        bridge: SubAgentBridge | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.request = request
        self.chat_id = request.id or generate_chat_id()
        self.channel = EventChannel()
        self.state = ComposerState.CREATED
        self.outcome: TurnOutcome | None = None
        self._dispatcher = dispatcher
        self._store = store
        self._settings = settings or get_settings()
        self._deps = AgentDeps(
            chat_id=self.chat_id,
            channel=self.channel,
            settings=self._settings,
            search=search,
            pages=pages,
            bridge=bridge,
        )
        self._task: asyncio.Task[None] | None = None

    @property
    def turn_id(self) -> str:
        return self._deps.turn_id

    def start(self) -> asyncio.Task[None]:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name=f"compose-{self.chat_id}")
        return self._task

    async def _run(self) -> None:
        enc = self.channel.encoder
        message_id = f"msg-{enc.new_id()}"
        self.state = ComposerState.RUNNING
        await self.channel.send_event(enc.start(message_id))
        await self.channel.send_event(enc.data("chat", {"chatId": self.chat_id}))

        try:
            prompt, history = split_prompt(self.request.messages)
            self.outcome = await self._dispatcher.run(prompt, self._deps, history)
        except asyncio.CancelledError:
            self.state = ComposerState.CLOSED
            self.channel.close()
            if self._deps.turn_id:
                get_metrics_collector().record_turn_end(
                    turn_id=self._deps.turn_id, chat_id=self.chat_id, outcome="cancelled"
                )
            logger.info("Turn cancelled for chat %s", self.chat_id)
            raise
        except Exception as exc:
            logger.exception("Dispatcher failed for chat %s", self.chat_id)
            self.state = ComposerState.ERRORED
            if self._deps.turn_id:
                get_metrics_collector().record_turn_end(
                    turn_id=self._deps.turn_id, chat_id=self.chat_id, outcome="error"
                )
            await self.channel.fail(enc.error(classify_stream_error(str(exc))))
            return

        await self._save(message_id, self.outcome)
        self.state = ComposerState.CLOSED
        self.channel.close()

    async def _save(self, message_id: str, outcome: TurnOutcome) -> None:
        if self._store is None:
            return
        messages = list(self.request.messages)
        reply = build_assistant_message(message_id, outcome)
        if reply.parts:
            messages.append(reply)
        try:
            await self._store.put(ChatHistory(id=self.chat_id, messages=messages))
        except Exception:
            # History is best-effort; the streamed answer is already delivered.
            logger.exception("Failed to save chat %s", self.chat_id)

    async def stream(self) -> AsyncIterator[str]:
        """Yield SSE lines until the turn ends, then ``finish`` + ``[DONE]``."""
        task = self.start()
        enc = self.channel.encoder
        interval = self._settings.sse_heartbeat_interval
        try:
            while True:
                try:
                    part = await self.channel.get(timeout=interval)
                except asyncio.TimeoutError:
                    yield HEARTBEAT_LINE
                    continue
                if part is None:
                    break
                yield enc.encode(part)
            yield enc.encode(enc.finish()) + DONE_LINE
        finally:
            if not task.done():
                logger.info("Client disconnected from chat %s; cancelling turn", self.chat_id)
                self.channel.close()
                task.cancel()
