"""SSE transport for the stream consumer.

:class:`SSEStreamReader` decodes ``data:`` lines of a UI message stream and
pushes each part into the sink it was constructed with.  Comment lines
(heartbeats) and blank separators are skipped; ``[DONE]`` marks the end.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable

import httpx

from renderer.consumer import EventSink, StreamConsumer

logger = logging.getLogger(__name__)


class SSEStreamReader:
    def __init__(self, sink: EventSink) -> None:
        self.sink = sink
        self.done = False
        self.parts = 0

    def feed_line(self, line: str) -> None:
        line = line.rstrip("\r\n")
        if not line or line.startswith(":"):
            return
        if not line.startswith("data:"):
            logger.debug("Skipping non-data SSE line: %s", line[:80])
            return
        payload = line[5:].strip()
        if payload == "[DONE]":
            self.done = True
            return
        try:
            part = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("Malformed SSE payload: %s", payload[:120])
            return
        if not isinstance(part, dict):
            logger.warning("SSE payload is not an object: %s", payload[:120])
            return
        self.parts += 1
        self.sink.push(part)

    def read_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            if self.done:
                break
            self.feed_line(line)

    def read_text(self, body: str) -> None:
        self.read_lines(body.splitlines())

    async def read_response(self, response: httpx.Response) -> None:
        async for line in response.aiter_lines():
            if self.done:
                break
            self.feed_line(line)


async def stream_chat(
    client: httpx.AsyncClient,
    messages: list[dict[str, Any]],
    *,
    chat_id: str | None = None,
    url: str = "/api/chat",
    consumer: StreamConsumer | None = None,
) -> StreamConsumer:
    """POST a chat turn and consume the whole response stream."""
    consumer = consumer or StreamConsumer()
    body: dict[str, Any] = {"messages": messages}
    if chat_id:
        body["id"] = chat_id
    reader = SSEStreamReader(consumer)
    async with client.stream("POST", url, json=body) as response:
        response.raise_for_status()
        await reader.read_response(response)
    return consumer
