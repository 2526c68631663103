"""Dispatcher — the conversational agent that owns a chat turn.

Runs a PydanticAI tool-calling loop and forwards every model event onto the
request's :class:`EventChannel` as Data Stream Protocol parts:

- text deltas      → ``text-start`` / ``text-delta`` / ``text-end``
- thinking deltas  → ``reasoning-start`` / ``reasoning-delta`` / ``reasoning-end``
- tool calls       → ``tool-input-start`` / ``tool-input-available``
- tool returns     → ``tool-output-available``

Each model request is wrapped in ``start-step`` / ``finish-step``.  The loop
is capped at ``agent_max_steps`` model requests; hitting the cap ends the
turn with whatever has been produced so far.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Sequence

from pydantic_ai import Agent, UsageLimits
from pydantic_ai.exceptions import UsageLimitExceeded
from pydantic_ai.messages import (
    FunctionToolCallEvent,
    FunctionToolResultEvent,
    ModelMessage,
    PartDeltaEvent,
    PartStartEvent,
    RetryPromptPart,
    TextPart,
    TextPartDelta,
    ThinkingPart,
    ThinkingPartDelta,
    ToolCallPart,
)
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from agents.provider import create_model
from config.prompts.dispatcher import build_dispatcher_prompt
from config.settings import Settings, get_settings
from services.datastream import serialize_tool_output
from services.event_channel import EventChannel
from services.metrics import get_metrics_collector
from services.tool_tracker import ToolTracker
from tools.registry import ALL_TOOLSETS, get_tool_names, get_tools

if TYPE_CHECKING:
    from agents.bridge import SubAgentBridge
    from services.brave_search import BraveSearchClient
    from services.page_fetcher import PageFetcher

logger = logging.getLogger(__name__)

# ── Agent Dependencies ──────────────────────────────────────


@dataclass
class AgentDeps:
    """Dependencies injected into every tool via ``RunContext[AgentDeps]``."""

    chat_id: str
    channel: EventChannel
    settings: Settings = field(default_factory=get_settings)
    search: BraveSearchClient | None = None
    pages: PageFetcher | None = None
    bridge: SubAgentBridge | None = None
    turn_id: str = ""
    # Tool calls run one at a time within a turn.
    tool_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


@dataclass
class TurnOutcome:
    """What the dispatcher produced, for persistence and logging."""

    text: str = ""
    reasoning: str = ""
    tools_used: list[str] = field(default_factory=list)
    requests: int = 0
    hit_step_cap: bool = False


class _StepForwarder:
    """Maps the part events of one model response onto the channel."""

    def __init__(self, channel: EventChannel, outcome: TurnOutcome) -> None:
        self._channel = channel
        self._enc = channel.encoder
        self._outcome = outcome
        self._ids: dict[int, str] = {}  # part index → text/reasoning id
        self._kinds: dict[int, str] = {}  # part index → "text" | "reasoning"
        self.tool_calls: dict[int, str] = {}  # part index → tool_call_id

    async def on_event(self, event: Any) -> None:
        if isinstance(event, PartStartEvent):
            await self._start(event.index, event.part)
        elif isinstance(event, PartDeltaEvent):
            delta = event.delta
            if isinstance(delta, TextPartDelta):
                await self._delta(event.index, "text", delta.content_delta)
            elif isinstance(delta, ThinkingPartDelta) and delta.content_delta:
                await self._delta(event.index, "reasoning", delta.content_delta)

    async def _start(self, index: int, part: Any) -> None:
        if isinstance(part, TextPart):
            await self._open(index, "text")
            if part.content:
                await self._delta(index, "text", part.content)
        elif isinstance(part, ThinkingPart):
            await self._open(index, "reasoning")
            if part.content:
                await self._delta(index, "reasoning", part.content)
        elif isinstance(part, ToolCallPart):
            await self.close_open()
            call_id = part.tool_call_id or f"tc-{self._enc.new_id()}"
            self.tool_calls[index] = call_id
            await self._channel.send_event(self._enc.tool_input_start(call_id, part.tool_name))

    async def _open(self, index: int, kind: str) -> None:
        if index in self._ids:
            return
        part_id = f"{kind[0]}-{self._enc.new_id()}"
        self._ids[index] = part_id
        self._kinds[index] = kind
        if kind == "text":
            await self._channel.send_event(self._enc.text_start(part_id))
        else:
            await self._channel.send_event(self._enc.reasoning_start(part_id))

    async def _delta(self, index: int, kind: str, delta: str) -> None:
        if index not in self._ids:
            await self._open(index, kind)
        part_id = self._ids[index]
        if self._kinds[index] == "text":
            self._outcome.text += delta
            await self._channel.send_event(self._enc.text_delta(part_id, delta))
        else:
            self._outcome.reasoning += delta
            await self._channel.send_event(self._enc.reasoning_delta(part_id, delta))

    async def close_open(self) -> None:
        for index in list(self._ids):
            part_id = self._ids.pop(index)
            if self._kinds.pop(index) == "text":
                await self._channel.send_event(self._enc.text_end(part_id))
            else:
                await self._channel.send_event(self._enc.reasoning_end(part_id))


class Dispatcher:
    """Creates the dispatcher agent and runs one streamed turn.

    Usage::

        dispatcher = Dispatcher()
        outcome = await dispatcher.run("Compare A vs B", deps, history)
    """

    def __init__(
        self,
        model: Model | str | None = None,
        settings: Settings | None = None,
        toolsets: Sequence[str] = ALL_TOOLSETS,
    ) -> None:
        self._settings = settings or get_settings()
        self._model = model
        self._toolsets = list(toolsets)

    def _create_agent(self) -> Agent[AgentDeps, str]:
        model = self._model
        if model is None or isinstance(model, str):
            model = create_model(model or self._settings.dispatcher_model, self._settings)

        settings_kwargs: dict[str, Any] = {"max_tokens": self._settings.max_tokens}
        if self._settings.temperature is not None:
            settings_kwargs["temperature"] = self._settings.temperature

        return Agent(
            model=model,
            instructions=build_dispatcher_prompt(),
            deps_type=AgentDeps,
            toolsets=[get_tools(self._toolsets)],
            model_settings=ModelSettings(**settings_kwargs),
        )

    async def run(
        self,
        prompt: str,
        deps: AgentDeps,
        message_history: Sequence[ModelMessage] | None = None,
    ) -> TurnOutcome:
        """Run one turn, streaming onto ``deps.channel``.

        Exceptions other than the step cap propagate to the caller.
        """
        if not deps.turn_id:
            deps.turn_id = f"turn-{uuid.uuid4().hex[:10]}"
        channel = deps.channel
        enc = channel.encoder
        agent = self._create_agent()
        outcome = TurnOutcome()
        tracker = ToolTracker(channel, f"activity-{deps.turn_id}")
        limit = self._settings.agent_max_steps

        _log_turn_start(deps, prompt, limit, get_tool_names(self._toolsets))
        start_time = time.monotonic()

        try:
            async with agent.iter(
                prompt,
                deps=deps,
                message_history=list(message_history) if message_history else None,
                usage_limits=UsageLimits(request_limit=limit),
            ) as run:
                async for node in run:
                    if Agent.is_model_request_node(node):
                        outcome.requests += 1
                        await channel.send_event(enc.start_step())
                        forwarder = _StepForwarder(channel, outcome)
                        try:
                            async with node.stream(run.ctx) as request_stream:
                                async for event in request_stream:
                                    await forwarder.on_event(event)
                        finally:
                            await forwarder.close_open()
                            await channel.send_event(enc.finish_step())
                    elif Agent.is_call_tools_node(node):
                        async with node.stream(run.ctx) as tool_stream:
                            async for event in tool_stream:
                                await self._on_tool_event(event, channel, tracker, outcome)
        except UsageLimitExceeded:
            outcome.hit_step_cap = True
            logger.warning("Turn %s hit the %d-step cap", deps.turn_id, limit)
        finally:
            await tracker.finish()

        elapsed_ms = (time.monotonic() - start_time) * 1000
        _log_turn_end(deps, outcome, elapsed_ms)
        get_metrics_collector().record_turn_end(
            turn_id=deps.turn_id,
            chat_id=deps.chat_id,
            outcome="step_cap" if outcome.hit_step_cap else "completed",
            requests=outcome.requests,
        )
        return outcome

    async def _on_tool_event(
        self,
        event: Any,
        channel: EventChannel,
        tracker: ToolTracker,
        outcome: TurnOutcome,
    ) -> None:
        enc = channel.encoder
        if isinstance(event, FunctionToolCallEvent):
            part = event.part
            args = part.args_as_dict()
            outcome.tools_used.append(part.tool_name)
            await channel.send_event(
                enc.tool_input_available(part.tool_call_id, part.tool_name, args)
            )
            await tracker.call_started(part.tool_call_id, part.tool_name, args)
        elif isinstance(event, FunctionToolResultEvent):
            result = event.part
            if isinstance(result, RetryPromptPart):
                output: Any = {"error": result.model_response()}
                ok = False
            else:
                output = serialize_tool_output(result.content)
                ok = not (isinstance(output, dict) and output.get("success") is False)
            await channel.send_event(enc.tool_output_available(result.tool_call_id, output))
            await tracker.call_finished(result.tool_call_id, ok)


# ── Structured Logging ──────────────────────────────────────


def _log_turn_start(deps: AgentDeps, prompt: str, step_limit: int, tools: list[str]) -> None:
    logger.info(json.dumps({
        "event": "turn_start",
        "chat_id": deps.chat_id,
        "turn_id": deps.turn_id,
        "step_limit": step_limit,
        "tools": tools,
        "message_preview": prompt[:100],
    }, ensure_ascii=False))


def _log_turn_end(deps: AgentDeps, outcome: TurnOutcome, elapsed_ms: float) -> None:
    metrics = get_metrics_collector().get_turn_summary(deps.turn_id)
    logger.info(json.dumps({
        "event": "turn_end",
        "chat_id": deps.chat_id,
        "turn_id": deps.turn_id,
        "model_requests": outcome.requests,
        "hit_step_cap": outcome.hit_step_cap,
        "tools_used": outcome.tools_used,
        "tool_call_count": metrics.get("tool_call_count", 0),
        "tool_error_count": metrics.get("tool_error_count", 0),
        "tool_latency_ms": round(metrics.get("total_latency_ms", 0.0), 1),
        "total_latency_ms": round(elapsed_ms, 1),
    }, ensure_ascii=False))
