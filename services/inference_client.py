"""Streaming client for OpenAI-compatible chat-completions endpoints.

Specialists are called over raw HTTP rather than through PydanticAI so the
bridge sees every ``reasoning_content`` and ``content`` delta the moment it
arrives and can forward it onto the request's event channel.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Literal

import httpx

from agents.provider import ModelEndpoint
from errors.exceptions import InferenceError

logger = logging.getLogger(__name__)


@dataclass
class ChatChunk:
    """One streamed delta: hidden reasoning or visible answer text."""

    kind: Literal["reasoning", "text"]
    delta: str


def parse_sse_data(line: str) -> dict[str, Any] | None:
    """Decode one ``data: {...}`` line; ``None`` for keep-alives and ``[DONE]``."""
    if not line.startswith("data:"):
        return None
    payload = line[len("data:") :].strip()
    if not payload or payload == "[DONE]":
        return None
    try:
        value = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise InferenceError(f"Malformed stream chunk: {payload[:200]}") from exc
    return value if isinstance(value, dict) else None


def chunks_from_payload(data: dict[str, Any]) -> list[ChatChunk]:
    """Reasoning and answer deltas of one chunk.

    Raises:
        InferenceError: the chunk is not shaped like a chat-completions delta.
    """
    choices = data.get("choices") or []
    if not isinstance(choices, list):
        raise InferenceError(f"Unexpected stream chunk: {str(data)[:200]}")
    chunks: list[ChatChunk] = []
    for choice in choices:
        delta = (choice.get("delta") or {}) if isinstance(choice, dict) else None
        if not isinstance(delta, dict):
            raise InferenceError(f"Unexpected stream chunk: {str(data)[:200]}")
        reasoning = delta.get("reasoning_content")
        if isinstance(reasoning, str) and reasoning:
            chunks.append(ChatChunk("reasoning", reasoning))
        content = delta.get("content")
        if isinstance(content, str) and content:
            chunks.append(ChatChunk("text", content))
    return chunks


class InferenceClient:
    """Async chat-completions streamer sharing one connection pool."""

    def __init__(
        self,
        *,
        timeout: float = 120.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout
        self._http = http
        self._owns_http = http is None

    async def start(self) -> None:
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout, connect=10.0))
        self._owns_http = True
        logger.info("InferenceClient started")

    async def close(self) -> None:
        if self._http is not None and self._owns_http:
            await self._http.aclose()
            self._http = None

    async def stream_chat(
        self,
        endpoint: ModelEndpoint,
        messages: list[dict[str, str]],
        *,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> AsyncIterator[ChatChunk]:
        """Yield chunks as they arrive.

        Raises:
            InferenceError: non-2xx status or malformed stream.
            httpx.HTTPError: transport failure.
        """
        if self._http is None:
            await self.start()
        assert self._http is not None

        body: dict[str, Any] = {
            "model": endpoint.model_id,
            "messages": messages,
            "stream": True,
        }
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        if temperature is not None:
            body["temperature"] = temperature

        headers = {
            "Authorization": f"Bearer {endpoint.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        async with self._http.stream(
            "POST", endpoint.completions_url, json=body, headers=headers
        ) as resp:
            if not resp.is_success:
                detail = (await resp.aread()).decode("utf-8", errors="replace")[:500]
                raise InferenceError(
                    f"{endpoint.model_id} returned {resp.status_code}: {detail}",
                    status_code=resp.status_code,
                )
            async for line in resp.aiter_lines():
                data = parse_sse_data(line)
                if data is None:
                    continue
                for chunk in chunks_from_payload(data):
                    yield chunk
