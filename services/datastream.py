"""Data Stream Protocol parts — Vercel AI SDK UI Message Stream v1.

Agent activity is expressed as *parts* (plain dicts such as
``{"type": "text-delta", "id": "...", "delta": "..."}``) that travel over
the request's :class:`~services.event_channel.EventChannel`.  The API layer
turns each part into an SSE line with :meth:`DataStreamEncoder.encode`.

Reference: https://ai-sdk.dev/docs/ai-sdk-ui/stream-protocol

Required response header: ``x-vercel-ai-ui-message-stream: v1``
Termination marker: ``data: [DONE]\\n\\n``
"""

from __future__ import annotations

import json
import uuid
from typing import Any

STREAM_HEADERS = {
    "x-vercel-ai-ui-message-stream": "v1",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

DONE_LINE = "data: [DONE]\n\n"
HEARTBEAT_LINE = ": heartbeat\n\n"


class DataStreamEncoder:
    """Build protocol parts and encode them as SSE lines.

    Part builders return dicts; :meth:`encode` returns a ready-to-yield
    SSE string.
    """

    @staticmethod
    def encode(part: dict[str, Any]) -> str:
        return f"data: {json.dumps(part, ensure_ascii=False, default=str)}\n\n"

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex[:8]

    # ── Message Control ──────────────────────────────────────────

    def start(self, message_id: str | None = None) -> dict[str, Any]:
        return {"type": "start", "messageId": message_id or self.new_id()}

    def finish(self) -> dict[str, Any]:
        return {"type": "finish"}

    def start_step(self) -> dict[str, Any]:
        return {"type": "start-step"}

    def finish_step(self) -> dict[str, Any]:
        return {"type": "finish-step"}

    # ── Reasoning ────────────────────────────────────────────────

    def reasoning_start(self, reasoning_id: str) -> dict[str, Any]:
        return {"type": "reasoning-start", "id": reasoning_id}

    def reasoning_delta(self, reasoning_id: str, delta: str) -> dict[str, Any]:
        return {"type": "reasoning-delta", "id": reasoning_id, "delta": delta}

    def reasoning_end(self, reasoning_id: str) -> dict[str, Any]:
        return {"type": "reasoning-end", "id": reasoning_id}

    # ── Text ─────────────────────────────────────────────────────

    def text_start(self, text_id: str) -> dict[str, Any]:
        return {"type": "text-start", "id": text_id}

    def text_delta(self, text_id: str, delta: str) -> dict[str, Any]:
        return {"type": "text-delta", "id": text_id, "delta": delta}

    def text_end(self, text_id: str) -> dict[str, Any]:
        return {"type": "text-end", "id": text_id}

    # ── Tool Calls ───────────────────────────────────────────────

    def tool_input_start(self, call_id: str, name: str) -> dict[str, Any]:
        return {"type": "tool-input-start", "toolCallId": call_id, "toolName": name}

    def tool_input_available(
        self, call_id: str, name: str, input_data: dict[str, Any]
    ) -> dict[str, Any]:
        return {
            "type": "tool-input-available",
            "toolCallId": call_id,
            "toolName": name,
            "input": input_data,
        }

    def tool_output_available(self, call_id: str, output: Any) -> dict[str, Any]:
        return {"type": "tool-output-available", "toolCallId": call_id, "output": output}

    # ── Custom Data ──────────────────────────────────────────────

    def data(self, name: str, payload: Any) -> dict[str, Any]:
        return {"type": f"data-{name}", "data": payload}

    def component(self, event: dict[str, Any]) -> dict[str, Any]:
        """Wrap a streamed-component event (``component_start`` etc.)."""
        return self.data("component", event)

    # ── Error ────────────────────────────────────────────────────

    def error(self, text: str) -> dict[str, Any]:
        return {"type": "error", "errorText": text}


def serialize_tool_output(result: Any) -> Any:
    """Make a tool return value JSON-friendly for ``tool-output-available``."""
    if result is None:
        return {"status": "ok"}
    if hasattr(result, "model_dump"):
        return result.model_dump(mode="json", by_alias=True)
    if isinstance(result, (dict, list, str, int, float, bool)):
        return result
    return str(result)
