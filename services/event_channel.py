"""Per-request event channel: the single ordered outbound stream.

Every writer for a request (dispatcher loop, specialist bridge, capability
tools) pushes Data Stream Protocol parts through :meth:`EventChannel.send_event`;
the SSE generator is the only reader.  Writes after :meth:`close` are
dropped silently so a disconnected client never breaks a running tool.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator

from models.blocks import BaseBlock
from services.datastream import DataStreamEncoder

logger = logging.getLogger(__name__)


@dataclass
class _Closed:
    """Sentinel queued when the channel ends."""

    error: str | None = None


class EventChannel:
    """Async single-consumer queue of protocol parts.

    Usage::

        channel = EventChannel()
        await channel.send_event(enc.text_start("t1"))
        ...
        async for part in channel:
            yield enc.encode(part)
    """

    def __init__(self, encoder: DataStreamEncoder | None = None) -> None:
        self.encoder = encoder or DataStreamEncoder()
        self._queue: asyncio.Queue[dict[str, Any] | _Closed] = asyncio.Queue()
        self._closed = False
        self._error: str | None = None
        self.sent = 0
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def error(self) -> str | None:
        return self._error

    async def send_event(self, part: dict[str, Any]) -> None:
        """Enqueue one part.  No-op once the channel is closed."""
        if self._closed:
            self.dropped += 1
            logger.debug("Channel closed, dropping %s part", part.get("type"))
            return
        self.sent += 1
        await self._queue.put(part)

    async def send_text(self, text: str) -> None:
        """Emit *text* as one complete text part (start, delta, end)."""
        text_id = f"t-{self.encoder.new_id()}"
        await self.send_event(self.encoder.text_start(text_id))
        await self.send_event(self.encoder.text_delta(text_id, text))
        await self.send_event(self.encoder.text_end(text_id))

    async def send_block(self, block: BaseBlock | dict[str, Any]) -> None:
        """Emit a structured block, serialized as JSON text."""
        if isinstance(block, BaseBlock):
            payload = block.to_json()
        else:
            payload = json.dumps(block, ensure_ascii=False)
        await self.send_text(payload)

    def close(self) -> None:
        """End the stream normally.  Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_Closed())

    async def fail(self, part: dict[str, Any]) -> None:
        """Emit a terminal ``error`` part and end the stream."""
        if self._closed:
            return
        self._error = part.get("errorText", "")
        await self._queue.put(part)
        self._closed = True
        self._queue.put_nowait(_Closed(error=self._error))

    async def get(self, timeout: float | None = None) -> dict[str, Any] | None:
        """Next part, or ``None`` when the channel has ended.

        Raises ``asyncio.TimeoutError`` when *timeout* elapses first.
        """
        if timeout is None:
            item = await self._queue.get()
        else:
            item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
        if isinstance(item, _Closed):
            # Leave the sentinel for any later reader.
            self._queue.put_nowait(item)
            return None
        return item

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        while True:
            part = await self.get()
            if part is None:
                return
            yield part
