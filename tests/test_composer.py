"""End-to-end turn tests: dispatcher → tools / specialist → SSE → consumer.

LLMs are replaced with PydanticAI ``FunctionModel`` stream functions and
the specialist endpoint with an ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator

import httpx
import pytest
from pydantic_ai.messages import ModelMessage, ModelRequest, ToolReturnPart
from pydantic_ai.models.function import AgentInfo, DeltaToolCall, DeltaToolCalls, FunctionModel

from agents.bridge import SubAgentBridge
from agents.dispatcher import AgentDeps, Dispatcher
from models.chat import ChatRequest, UIMessage
from renderer.consumer import StreamConsumer
from renderer.transport import SSEStreamReader
from services.chat_store import InMemoryChatStore
from services.composer import ComposerState, StreamComposer
from services.inference_client import InferenceClient


def _tool_returned(messages: list[ModelMessage]) -> bool:
    last = messages[-1]
    return isinstance(last, ModelRequest) and any(isinstance(p, ToolReturnPart) for p in last.parts)


def _delegating_model(tool_name: str, args: dict, answer: list[str]) -> FunctionModel:
    """First request calls *tool_name*; the next one answers with *answer*."""

    async def stream(messages: list[ModelMessage], info: AgentInfo) -> AsyncIterator[str | DeltaToolCalls]:
        if _tool_returned(messages):
            for delta in answer:
                yield delta
        else:
            yield {0: DeltaToolCall(name=tool_name, json_args=json.dumps(args))}

    return FunctionModel(stream_function=stream)


def _text_model(*deltas: str) -> FunctionModel:
    async def stream(messages: list[ModelMessage], info: AgentInfo) -> AsyncIterator[str]:
        for delta in deltas:
            yield delta

    return FunctionModel(stream_function=stream)


def _request(text: str, chat_id: str | None = "chat-e2e") -> ChatRequest:
    return ChatRequest(id=chat_id, messages=[UIMessage(role="user", parts=[{"type": "text", "text": text}])])


async def _collect(composer: StreamComposer) -> tuple[list[str], list[dict], StreamConsumer]:
    lines = [line async for line in composer.stream()]
    parts = []
    for line in "".join(lines).splitlines():
        if line.startswith("data: ") and line != "data: [DONE]":
            parts.append(json.loads(line[len("data: ") :]))
    consumer = StreamConsumer()
    SSEStreamReader(consumer).read_text("".join(lines))
    return lines, parts, consumer


def _index(parts: list[dict], predicate) -> int:
    return next(i for i, p in enumerate(parts) if predicate(p))


class TestDelegationEndToEnd:
    @pytest.mark.asyncio
    async def test_reasoner_output_interleaves_in_emission_order(
        self, settings, mock_http, completion_sse
    ):
        specialist_body = completion_sse(["Weighing ", "options"], ["Option A ", "is faster."])
        bridge = SubAgentBridge(
            InferenceClient(http=mock_http(lambda r: httpx.Response(200, content=specialist_body))),
            settings,
        )
        store = InMemoryChatStore()
        composer = StreamComposer(
            _request("Compare A and B"),
            dispatcher=Dispatcher(
                model=_delegating_model("ask_reasoner", {"question": "Compare A and B"}, ["Go with ", "A."]),
                settings=settings,
            ),
            store=store,
            bridge=bridge,
            settings=settings,
        )

        lines, parts, consumer = await _collect(composer)

        assert lines[-1].endswith("data: [DONE]\n\n")
        assert parts[0]["type"] == "start"
        assert parts[1] == {"type": "data-chat", "data": {"chatId": "chat-e2e"}}
        assert parts[-1] == {"type": "finish"}
        assert composer.state == ComposerState.CLOSED

        reasoning_at = _index(parts, lambda p: p["type"] == "reasoning-delta")
        specialist_text_at = _index(parts, lambda p: p.get("delta") == "Option A ")
        completion_at = _index(parts, lambda p: "Deep analysis complete." in p.get("delta", ""))
        output_at = _index(parts, lambda p: p["type"] == "tool-output-available")
        final_at = _index(parts, lambda p: p.get("delta") == "Go with ")
        assert reasoning_at < specialist_text_at < completion_at < output_at < final_at

        output = parts[output_at]["output"]
        assert output["success"] is True
        assert output["analysis"] == "Option A is faster."

        views = consumer.render()
        assert [(v.source, v.kind) for v in views] == [
            ("component", "final"),
            ("text", "text"),
            ("block", "final"),
            ("text", "text"),
        ]
        assert views[0].body == "Tool activity\n- ask_reasoner: Compare A and B [done]"
        assert views[1].body == "Option A is faster."
        assert views[3].body == "Go with A."
        assert "".join(consumer.reasoning.values()) == "Weighing options"

        saved = await store.get("chat-e2e")
        assert [m.role for m in saved.messages] == ["user", "assistant"]
        assert [p.type for p in saved.messages[1].parts] == ["tool-ask_reasoner", "text"]
        assert saved.messages[1].text == "Go with A."

    @pytest.mark.asyncio
    async def test_failed_specialist_keeps_the_turn_alive(self, settings, mock_http):
        bridge = SubAgentBridge(
            InferenceClient(http=mock_http(lambda r: httpx.Response(503, text="down"))),
            settings,
        )
        composer = StreamComposer(
            _request("Plan it"),
            dispatcher=Dispatcher(
                model=_delegating_model("delegate_task", {"task": "Plan it"}, ["Done anyway."]),
                settings=settings,
            ),
            bridge=bridge,
            settings=settings,
        )

        _, parts, consumer = await _collect(composer)

        assert not any(p["type"] == "error" for p in parts)
        output = next(p["output"] for p in parts if p["type"] == "tool-output-available")
        assert output["success"] is False
        kinds = [(v.source, v.kind, v.type) for v in consumer.render()]
        assert ("block", "final", "alert") in kinds
        assert consumer.text.endswith("Done anyway.")
        assert consumer.components[next(iter(consumer.components))].props["items"][0]["status"] == "error"


class TestComposerLifecycle:
    @pytest.mark.asyncio
    async def test_plain_answer(self, settings):
        composer = StreamComposer(
            _request("Hi", chat_id=None),
            dispatcher=Dispatcher(model=_text_model("Hello", " there"), settings=settings),
            settings=settings,
        )
        _, parts, consumer = await _collect(composer)

        assert composer.chat_id.startswith("chat-")
        types = [p["type"] for p in parts]
        assert types == [
            "start",
            "data-chat",
            "start-step",
            "text-start",
            "text-delta",
            "text-delta",
            "text-end",
            "finish-step",
            "finish",
        ]
        assert consumer.text == "Hello there"
        assert composer.outcome.requests == 1

    @pytest.mark.asyncio
    async def test_fatal_error_becomes_error_part(self, settings, metrics_collector):
        async def broken(messages, info):
            raise RuntimeError("model exploded")
            yield ""  # pragma: no cover

        composer = StreamComposer(
            _request("Hi"),
            dispatcher=Dispatcher(model=FunctionModel(stream_function=broken), settings=settings),
            settings=settings,
        )
        lines, parts, consumer = await _collect(composer)

        assert composer.state == ComposerState.ERRORED
        assert parts[-2] == {"type": "error", "errorText": "INTERNAL_ERROR: model exploded"}
        assert parts[-1] == {"type": "finish"}
        assert lines[-1].endswith("data: [DONE]\n\n")
        assert consumer.errors == ["INTERNAL_ERROR: model exploded"]
        assert metrics_collector.get_turn_summary(composer.turn_id)["outcome"] == "error"

    @pytest.mark.asyncio
    async def test_client_disconnect_cancels_the_turn(self, settings):
        release = asyncio.Event()

        async def slow(messages, info):
            yield "partial"
            await release.wait()
            yield "never sent"

        composer = StreamComposer(
            _request("Hi"),
            dispatcher=Dispatcher(model=FunctionModel(stream_function=slow), settings=settings),
            settings=settings,
        )
        task = composer.start()
        stream = composer.stream()
        first = await stream.__anext__()
        assert '"type": "start"' in first
        await stream.aclose()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert composer.channel.closed
        assert composer.state == ComposerState.CLOSED

    @pytest.mark.asyncio
    async def test_heartbeat_while_quiet(self, settings):
        release = asyncio.Event()

        async def quiet(messages, info):
            await release.wait()
            yield "ok"

        composer = StreamComposer(
            _request("Hi"),
            dispatcher=Dispatcher(model=FunctionModel(stream_function=quiet), settings=settings),
            settings=settings.model_copy(update={"sse_heartbeat_interval": 0.01}),
        )
        lines = []
        async for line in composer.stream():
            lines.append(line)
            if line.startswith(": heartbeat"):
                release.set()
        assert ": heartbeat\n\n" in lines
        assert lines[-1].endswith("data: [DONE]\n\n")


class TestStepCap:
    @pytest.mark.asyncio
    async def test_cap_ends_the_turn_cleanly(self, settings, channel, drain, metrics_collector):
        async def searching(messages, info):
            yield {0: DeltaToolCall(name="web_search", json_args='{"query": "more"}')}

        capped = settings.model_copy(update={"agent_max_steps": 2})
        dispatcher = Dispatcher(model=FunctionModel(stream_function=searching), settings=capped)
        deps = AgentDeps(chat_id="chat-cap", channel=channel, settings=capped)

        outcome = await dispatcher.run("Search forever", deps)
        parts = await drain(channel)
        types = [p["type"] for p in parts]

        assert outcome.hit_step_cap
        assert outcome.tools_used == ["web_search", "web_search"]
        assert types.count("start-step") == types.count("finish-step")
        assert types.count("tool-output-available") == 2
        assert parts[-1]["data"]["type"] == "component_end"
        assert metrics_collector.get_turn_summary(deps.turn_id)["outcome"] == "step_cap"
        assert metrics_collector.snapshot()["tools"]["web_search"]["status_breakdown"] == {"degraded": 2}


class TestToolEvents:
    @pytest.mark.asyncio
    async def test_tool_result_is_forwarded_with_its_call_id(self, settings, channel, drain):
        model = _delegating_model("fetch_web_page", {"url": "https://example.com"}, ["Done."])
        dispatcher = Dispatcher(model=model, settings=settings)
        deps = AgentDeps(chat_id="chat-tool", channel=channel, settings=settings)

        outcome = await dispatcher.run("Read example.com", deps)
        parts = await drain(channel)

        call = next(p for p in parts if p["type"] == "tool-input-available")
        result = next(p for p in parts if p["type"] == "tool-output-available")
        assert call["toolName"] == "fetch_web_page"
        assert result["toolCallId"] == call["toolCallId"]
        assert result["output"] == {"error": "Page fetching is not configured."}
        assert outcome.tools_used == ["fetch_web_page"]
        assert outcome.text == "Done."
