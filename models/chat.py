"""Chat messages in the Vercel AI SDK ``UIMessage`` shape.

A message is ``{id, role, parts}`` where parts are ``text``, ``reasoning``,
``tool-<name>`` (or ``dynamic-tool``) entries.  Legacy ``{role, content}``
messages are accepted and turned into a single text part.
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Literal

from pydantic import ConfigDict, Field, model_validator
from pydantic_ai.messages import ModelMessage, ModelRequest, ModelResponse, TextPart, UserPromptPart

from models.base import CamelModel


class UIPart(CamelModel):
    """One message part.  Unknown part fields are preserved."""

    model_config = ConfigDict(extra="allow")

    type: str
    text: str | None = None
    tool_call_id: str | None = None
    tool_name: str | None = None
    state: str | None = None
    input: Any = None
    output: Any = None

    @property
    def is_tool(self) -> bool:
        return self.type.startswith("tool-") or self.type == "dynamic-tool"

    @property
    def resolved_tool_name(self) -> str:
        if self.type.startswith("tool-"):
            return self.type[len("tool-") :]
        return self.tool_name or "tool"


class UIMessage(CamelModel):
    id: str = Field(default_factory=lambda: f"msg-{uuid.uuid4().hex[:12]}")
    role: Literal["user", "assistant", "system"]
    parts: list[UIPart] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _content_to_parts(cls, data: Any) -> Any:
        if isinstance(data, dict) and "parts" not in data and isinstance(data.get("content"), str):
            content = data["content"]
            data = {k: v for k, v in data.items() if k != "content"}
            data["parts"] = [{"type": "text", "text": content}]
        return data

    @property
    def text(self) -> str:
        return "".join(p.text or "" for p in self.parts if p.type == "text")

    @property
    def tool_names(self) -> list[str]:
        return [p.resolved_tool_name for p in self.parts if p.is_tool]


class ChatRequest(CamelModel):
    """Body of ``POST /api/chat``."""

    id: str | None = None
    messages: list[UIMessage]


class ChatHistory(CamelModel):
    """A stored chat; ``timestamp`` is epoch milliseconds of the last save."""

    id: str
    messages: list[UIMessage] = Field(default_factory=list)
    timestamp: float = Field(default_factory=lambda: time.time() * 1000)

    @property
    def first_user_text(self) -> str:
        for message in self.messages:
            if message.role == "user":
                return message.text
        return ""


def generate_chat_id() -> str:
    return f"chat-{uuid.uuid4().hex[:12]}"


# ── PydanticAI conversion ───────────────────────────────────


def to_pydantic_messages(messages: list[UIMessage]) -> list[ModelMessage]:
    """Convert UI messages to PydanticAI history.

    Reasoning parts are dropped.  Assistant tool parts are summarized as a
    ``[Tools used: ...]`` prefix so the model knows what already ran.
    System messages are skipped (the dispatcher has its own instructions).
    """
    result: list[ModelMessage] = []
    for message in messages:
        text = message.text
        if message.role == "user":
            result.append(ModelRequest(parts=[UserPromptPart(content=text)]))
        elif message.role == "assistant":
            tools = message.tool_names
            if tools:
                text = f"[Tools used: {', '.join(tools)}]\n{text}"
            if text:
                result.append(ModelResponse(parts=[TextPart(content=text)]))
    return result


def split_prompt(messages: list[UIMessage]) -> tuple[str, list[ModelMessage]]:
    """Return ``(latest user text, history before it)``.

    Raises:
        ValueError: when there is no user message.
    """
    for i in range(len(messages) - 1, -1, -1):
        if messages[i].role == "user":
            return messages[i].text, to_pydantic_messages(messages[:i])
    raise ValueError("Conversation has no user message")
