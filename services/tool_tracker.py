"""Tool activity tracker — tool progress as a streamed List component.

The dispatcher reports each tool call here; the tracker mirrors it onto the
event channel as ``data-component`` events so the client shows a live
"Tool activity" list: one item per call, ``running`` until its result
arrives, then ``done`` or ``error``.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from services.event_channel import EventChannel

logger = logging.getLogger(__name__)

_SUMMARY_KEYS = ("query", "url", "question", "task")


def summarize_args(args: dict[str, Any]) -> str:
    """Short human-readable description of a call's arguments."""
    for key in _SUMMARY_KEYS:
        value = args.get(key)
        if isinstance(value, str) and value:
            return value if len(value) <= 80 else value[:77] + "..."
    return ""


class ToolTracker:
    """Emit ``component_*`` events describing one turn's tool calls."""

    def __init__(self, channel: EventChannel, component_id: str) -> None:
        self._channel = channel
        self.component_id = component_id
        self._started = False
        self._ended = False
        self._index: dict[str, int] = {}  # tool_call_id → item position

    async def _emit(self, event: dict[str, Any]) -> None:
        event.setdefault("timestamp", time.time() * 1000)
        await self._channel.send_event(self._channel.encoder.component(event))

    async def call_started(self, call_id: str, tool_name: str, args: dict[str, Any]) -> None:
        if not self._started:
            await self._emit({
                "type": "component_start",
                "component_id": self.component_id,
                "component": "List",
                "props": {"title": "Tool activity", "items": []},
            })
            self._started = True
        self._index[call_id] = len(self._index)
        await self._emit({
            "type": "component_update",
            "component_id": self.component_id,
            "operation": "add_item",
            "data": {
                "id": call_id,
                "title": tool_name,
                "description": summarize_args(args),
                "status": "running",
            },
        })

    async def call_finished(self, call_id: str, ok: bool) -> None:
        index = self._index.get(call_id)
        if index is None:
            logger.debug("Result for untracked tool call %s", call_id)
            return
        await self._emit({
            "type": "component_update",
            "component_id": self.component_id,
            "operation": "set_property",
            "path": f"items.{index}.status",
            "data": "done" if ok else "error",
        })

    async def finish(self) -> None:
        """Mark the list complete (only if any call was tracked)."""
        if self._started and not self._ended:
            self._ended = True
            await self._emit({"type": "component_end", "component_id": self.component_id})
