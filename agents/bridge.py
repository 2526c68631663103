"""Sub-agent bridge — run a specialist as a tool and stream it live.

The specialist's reasoning and answer deltas go straight onto the request's
event channel while the call is in flight, so they interleave with the
dispatcher's own output in true emission order.  When the stream ends the
bridge posts a completion block and hands the buffered answer back to the
dispatcher as the tool result.

Failures never escape: the user sees a destructive alert block and the
dispatcher receives ``{"success": False, ...}`` so it can carry on without
the specialist.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from agents.provider import resolve_endpoint
from agents.specialists import SpecialistSpec, build_messages
from config.settings import Settings, get_settings
from errors.exceptions import InferenceError, SubAgentError
from models.blocks import alert_block
from services.block_parser import extract_blocks
from services.event_channel import EventChannel
from services.inference_client import InferenceClient

logger = logging.getLogger(__name__)


class _PartWriter:
    """Opens and closes the specialist's reasoning/text parts on demand."""

    def __init__(self, channel: EventChannel, prefix: str) -> None:
        self._channel = channel
        self._enc = channel.encoder
        suffix = self._enc.new_id()
        self.reasoning_id = f"r-{prefix}-{suffix}"
        self.text_id = f"t-{prefix}-{suffix}"
        self._reasoning_open = False
        self._text_open = False

    async def reasoning(self, delta: str) -> None:
        if not self._reasoning_open:
            await self._channel.send_event(self._enc.reasoning_start(self.reasoning_id))
            self._reasoning_open = True
        await self._channel.send_event(self._enc.reasoning_delta(self.reasoning_id, delta))

    async def text(self, delta: str) -> None:
        # The answer starts once thinking is over.
        await self._end_reasoning()
        if not self._text_open:
            await self._channel.send_event(self._enc.text_start(self.text_id))
            self._text_open = True
        await self._channel.send_event(self._enc.text_delta(self.text_id, delta))

    async def _end_reasoning(self) -> None:
        if self._reasoning_open:
            await self._channel.send_event(self._enc.reasoning_end(self.reasoning_id))
            self._reasoning_open = False

    async def close(self) -> None:
        await self._end_reasoning()
        if self._text_open:
            await self._channel.send_event(self._enc.text_end(self.text_id))
            self._text_open = False


class SubAgentBridge:
    """Invoke specialists over a shared :class:`InferenceClient`."""

    def __init__(self, client: InferenceClient, settings: Settings | None = None) -> None:
        self._client = client
        self._settings = settings or get_settings()

    async def invoke(
        self,
        spec: SpecialistSpec,
        task: str,
        *,
        channel: EventChannel,
        context: str | None = None,
        turn_id: str = "",
    ) -> dict[str, Any]:
        """Stream one specialist call onto *channel* and return its result.

        Returns ``{<result_key>, reasoning, success, structured_data?}``.
        """
        writer = _PartWriter(channel, spec.name)
        reasoning: list[str] = []
        answer: list[str] = []
        start = time.monotonic()
        _log_subagent_start(spec, task, turn_id)

        try:
            endpoint = resolve_endpoint(spec.model_name, self._settings)
            stream = self._client.stream_chat(
                endpoint,
                build_messages(spec, task, context),
                max_tokens=self._settings.max_tokens,
                temperature=spec.temperature,
            )
            async for chunk in stream:
                if chunk.kind == "reasoning":
                    reasoning.append(chunk.delta)
                    await writer.reasoning(chunk.delta)
                else:
                    answer.append(chunk.delta)
                    await writer.text(chunk.delta)
        except Exception as exc:
            await writer.close()
            error = SubAgentError(spec.name, f"{spec.display_name} failed: {exc}")
            message = error.detail
            logger.warning("%s", error, exc_info=not isinstance(exc, (InferenceError, httpx.HTTPError)))
            await channel.send_block(
                alert_block(
                    f"{spec.name}-error-{channel.encoder.new_id()}",
                    f"{spec.display_name} unavailable",
                    message,
                    variant="destructive",
                )
            )
            _log_subagent_end(spec, turn_id, start, success=False, answer_chars=len("".join(answer)))
            return {spec.result_key: message, "reasoning": "", "success": False}

        await writer.close()
        await channel.send_block(
            alert_block(
                f"{spec.name}-complete-{channel.encoder.new_id()}",
                f"{spec.display_name} finished",
                spec.completion_message,
            )
        )

        answer_text = "".join(answer)
        result: dict[str, Any] = {
            spec.result_key: answer_text,
            "reasoning": "".join(reasoning),
            "success": True,
        }
        blocks = extract_blocks(answer_text)
        if blocks:
            result["structured_data"] = {"blocks": blocks}
        _log_subagent_end(spec, turn_id, start, success=True, answer_chars=len(answer_text))
        return result


# ── Structured Logging ──────────────────────────────────────


def _log_subagent_start(spec: SpecialistSpec, task: str, turn_id: str) -> None:
    logger.info(json.dumps({
        "event": "subagent_start",
        "specialist": spec.name,
        "model": spec.model_name,
        "turn_id": turn_id,
        "task_preview": task[:100],
    }, ensure_ascii=False))


def _log_subagent_end(
    spec: SpecialistSpec,
    turn_id: str,
    start: float,
    *,
    success: bool,
    answer_chars: int,
) -> None:
    logger.info(json.dumps({
        "event": "subagent_end",
        "specialist": spec.name,
        "turn_id": turn_id,
        "success": success,
        "answer_chars": answer_chars,
        "latency_ms": round((time.monotonic() - start) * 1000, 1),
    }, ensure_ascii=False))
