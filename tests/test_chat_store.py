"""Tests for chat models, history conversion and the chat store."""

from __future__ import annotations

import pytest
from pydantic_ai.messages import ModelRequest, ModelResponse

from models.chat import ChatHistory, UIMessage, split_prompt, to_pydantic_messages
from services.chat_store import InMemoryChatStore


def _user(text: str) -> UIMessage:
    return UIMessage(role="user", parts=[{"type": "text", "text": text}])


def _chat(chat_id: str, text: str, timestamp: float, extra: int = 0) -> ChatHistory:
    messages = [_user(text)] + [UIMessage(role="assistant", content=f"reply {i}") for i in range(extra)]
    return ChatHistory(id=chat_id, messages=messages, timestamp=timestamp)


class TestMessages:
    def test_legacy_content_becomes_text_part(self):
        message = UIMessage.model_validate({"role": "user", "content": "hello"})
        assert message.parts[0].type == "text"
        assert message.text == "hello"
        assert message.id.startswith("msg-")

    def test_unknown_part_fields_are_kept(self):
        message = UIMessage.model_validate({
            "role": "assistant",
            "parts": [{"type": "source-url", "url": "https://x.test"}],
        })
        assert message.model_dump(by_alias=True)["parts"][0]["url"] == "https://x.test"

    def test_history_drops_reasoning_and_summarizes_tools(self):
        assistant = UIMessage.model_validate({
            "role": "assistant",
            "parts": [
                {"type": "reasoning", "text": "secret thoughts"},
                {"type": "tool-web_search", "toolCallId": "c1", "state": "output-available"},
                {"type": "dynamic-tool", "toolName": "ask_reasoner"},
                {"type": "text", "text": "Here you go."},
            ],
        })
        history = to_pydantic_messages([_user("find it"), assistant])

        assert isinstance(history[0], ModelRequest)
        assert isinstance(history[1], ModelResponse)
        assert history[1].parts[0].content == "[Tools used: web_search, ask_reasoner]\nHere you go."

    def test_split_prompt_uses_last_user_message(self):
        messages = [_user("first"), UIMessage(role="assistant", content="ok"), _user("second")]
        prompt, history = split_prompt(messages)
        assert prompt == "second"
        assert len(history) == 2

    def test_split_prompt_needs_a_user_message(self):
        with pytest.raises(ValueError):
            split_prompt([UIMessage(role="assistant", content="hi")])


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_put_get_replace(self):
        store = InMemoryChatStore()
        assert await store.put(_chat("c1", "hi", 1000))
        assert await store.put(_chat("c1", "hi", 2000, extra=2))
        chat = await store.get("c1")
        assert len(chat.messages) == 3
        assert store.size == 1

    @pytest.mark.asyncio
    async def test_empty_chat_not_saved(self):
        store = InMemoryChatStore()
        assert not await store.put(ChatHistory(id="empty", messages=[]))
        assert await store.get("empty") is None

    @pytest.mark.asyncio
    async def test_returned_chats_are_copies(self):
        store = InMemoryChatStore()
        await store.put(_chat("c1", "hi", 1000))
        chat = await store.get("c1")
        chat.messages.clear()
        assert len((await store.get("c1")).messages) == 1

    @pytest.mark.asyncio
    async def test_list_newest_first_and_delete(self):
        store = InMemoryChatStore()
        await store.put(_chat("old", "a", 1000))
        await store.put(_chat("new", "b", 5000))
        assert [c.id for c in await store.list_all()] == ["new", "old"]
        assert await store.delete("old")
        assert not await store.delete("old")

    @pytest.mark.asyncio
    async def test_cleanup_duplicates(self):
        store = InMemoryChatStore()
        minute = 60_000 * 100
        await store.put(_chat("short", "same question", minute + 1_000))
        await store.put(_chat("long", "same question", minute + 2_000, extra=3))
        await store.put(_chat("tie-old", "other", minute + 1_000, extra=1))
        await store.put(_chat("tie-new", "other", minute + 9_000, extra=1))
        await store.put(_chat("later", "same question", minute + 60_000))

        assert await store.cleanup_duplicates() == 2
        assert sorted(c.id for c in await store.list_all()) == ["later", "long", "tie-new"]
