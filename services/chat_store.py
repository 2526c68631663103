"""Chat history store — best-effort persistence of chats by id.

Provides an abstract interface with an in-memory implementation and a Redis
implementation for multi-worker deployments.  ``put`` is a full replace;
chats without messages are never saved.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import defaultdict

from pydantic import ValidationError

from models.chat import ChatHistory

logger = logging.getLogger(__name__)

_MINUTE_MS = 60_000


# ── Abstract Interface ───────────────────────────────────────


class ChatStore(ABC):
    """Abstract chat store — implement for different backends."""

    @abstractmethod
    async def put(self, chat: ChatHistory) -> bool:
        """Create or replace a chat.  Returns False when skipped (no messages)."""
        ...

    @abstractmethod
    async def get(self, chat_id: str) -> ChatHistory | None:
        ...

    @abstractmethod
    async def list_all(self) -> list[ChatHistory]:
        """All chats, newest first."""
        ...

    @abstractmethod
    async def delete(self, chat_id: str) -> bool:
        """Remove a chat.  Returns whether it existed."""
        ...

    async def cleanup_duplicates(self) -> int:
        """Collapse chats started with the same text in the same minute.

        Within each group the chat with the most messages survives (ties go
        to the newest).  Returns the number of chats removed.
        """
        groups: dict[tuple[str, int], list[ChatHistory]] = defaultdict(list)
        for chat in await self.list_all():
            key = (chat.first_user_text, int(chat.timestamp // _MINUTE_MS))
            groups[key].append(chat)

        removed = 0
        for chats in groups.values():
            if len(chats) < 2:
                continue
            chats.sort(key=lambda c: (len(c.messages), c.timestamp), reverse=True)
            for duplicate in chats[1:]:
                if await self.delete(duplicate.id):
                    removed += 1
        if removed:
            logger.info("Removed %d duplicate chats", removed)
        return removed


# ── In-Memory Implementation ────────────────────────────────


class InMemoryChatStore(ChatStore):
    """Process-local store; suitable for single-instance deployments."""

    def __init__(self) -> None:
        self._store: dict[str, ChatHistory] = {}

    async def put(self, chat: ChatHistory) -> bool:
        if not chat.messages:
            logger.debug("Skipping save of empty chat %s", chat.id)
            return False
        self._store[chat.id] = chat.model_copy(deep=True)
        return True

    async def get(self, chat_id: str) -> ChatHistory | None:
        chat = self._store.get(chat_id)
        return chat.model_copy(deep=True) if chat else None

    async def list_all(self) -> list[ChatHistory]:
        chats = [c.model_copy(deep=True) for c in self._store.values()]
        return sorted(chats, key=lambda c: c.timestamp, reverse=True)

    async def delete(self, chat_id: str) -> bool:
        return self._store.pop(chat_id, None) is not None

    @property
    def size(self) -> int:
        return len(self._store)


# ── Redis Implementation ─────────────────────────────────────


class RedisChatStore(ChatStore):
    """Redis-backed store.

    Chats are JSON strings under ``chat:<id>``; a sorted set scored by
    timestamp keeps the listing order.
    """

    _KEY_PREFIX = "chat:"
    _INDEX_KEY = "chats:by_time"

    def __init__(self, redis_url: str):
        import redis.asyncio as aioredis

        self._redis = aioredis.from_url(
            redis_url,
            decode_responses=True,
            socket_connect_timeout=10,
            socket_timeout=10,
        )

    def _key(self, chat_id: str) -> str:
        return f"{self._KEY_PREFIX}{chat_id}"

    async def put(self, chat: ChatHistory) -> bool:
        if not chat.messages:
            return False
        pipe = self._redis.pipeline()
        pipe.set(self._key(chat.id), chat.model_dump_json(by_alias=True))
        pipe.zadd(self._INDEX_KEY, {chat.id: chat.timestamp})
        await pipe.execute()
        return True

    async def get(self, chat_id: str) -> ChatHistory | None:
        data = await self._redis.get(self._key(chat_id))
        if data is None:
            return None
        try:
            return ChatHistory.model_validate_json(data)
        except ValidationError:
            logger.warning("Failed to deserialize chat: %s", chat_id)
            return None

    async def list_all(self) -> list[ChatHistory]:
        ids = await self._redis.zrevrange(self._INDEX_KEY, 0, -1)
        chats: list[ChatHistory] = []
        for chat_id in ids:
            chat = await self.get(chat_id)
            if chat is not None:
                chats.append(chat)
        return chats

    async def delete(self, chat_id: str) -> bool:
        pipe = self._redis.pipeline()
        pipe.delete(self._key(chat_id))
        pipe.zrem(self._INDEX_KEY, chat_id)
        deleted, _ = await pipe.execute()
        return bool(deleted)

    async def close(self) -> None:
        await self._redis.aclose()

    async def ping(self) -> bool:
        from redis.exceptions import RedisError

        try:
            return bool(await self._redis.ping())
        except (RedisError, OSError):
            return False


# ── Module-level Singleton ───────────────────────────────────

_store: ChatStore | None = None


def get_chat_store() -> ChatStore:
    """Get the singleton chat store instance."""
    global _store
    if _store is None:
        from config.settings import get_settings

        settings = get_settings()
        if settings.chat_store_type == "redis" and settings.redis_url:
            _store = RedisChatStore(redis_url=settings.redis_url)
            logger.info("Initialized RedisChatStore")
        else:
            _store = InMemoryChatStore()
            logger.info("Initialized InMemoryChatStore")
    return _store


def reset_chat_store() -> None:
    """Drop the singleton (tests)."""
    global _store
    _store = None
