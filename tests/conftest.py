"""Shared pytest fixtures for the MirrorStone agents tests.

Provides:
- ``settings``: Settings with test keys and no .env dependence
- ``metrics_collector``: the process collector, reset around each test
- ``channel``: fresh EventChannel
- ``drain``: collect every part left on a channel (closes it first)
- ``completion_sse``: build an OpenAI-compatible streamed completion body
- ``mock_http``: httpx.AsyncClient backed by a MockTransport handler
"""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

# Ensure dispatcher tools are registered at test startup
import tools.capability_tools  # noqa: F401
import tools.specialist_tools  # noqa: F401

from config.settings import Settings
from services.event_channel import EventChannel
from services.metrics import MetricsCollector, get_metrics_collector


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        deepseek_api_key="test-deepseek",
        brave_api_key="test-brave",
        agent_max_steps=6,
        sse_heartbeat_interval=5.0,
    )


@pytest.fixture(autouse=True)
def metrics_collector() -> MetricsCollector:
    """Process-wide collector, emptied before and after every test."""
    collector = get_metrics_collector()
    collector.reset()
    yield collector
    collector.reset()


@pytest.fixture
def channel() -> EventChannel:
    return EventChannel()


@pytest.fixture
def drain() -> Callable[[EventChannel], Any]:
    async def _drain(ch: EventChannel) -> list[dict[str, Any]]:
        ch.close()
        return [part async for part in ch]

    return _drain


@pytest.fixture
def completion_sse() -> Callable[..., bytes]:
    def _build(reasoning: list[str] = (), answer: list[str] = ()) -> bytes:
        lines = []
        for delta in reasoning:
            chunk = {"choices": [{"index": 0, "delta": {"reasoning_content": delta}}]}
            lines.append(f"data: {json.dumps(chunk)}\n\n")
        for delta in answer:
            chunk = {"choices": [{"index": 0, "delta": {"content": delta}}]}
            lines.append(f"data: {json.dumps(chunk)}\n\n")
        lines.append("data: [DONE]\n\n")
        return "".join(lines).encode()

    return _build


@pytest.fixture
def mock_http() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    def _client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return _client
