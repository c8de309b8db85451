"""
DeFiSeek - Chat Store

Persistence boundary for chats, messages and votes. The relational
implementation lives outside this service; ``InMemoryChatStore`` backs
local development and tests.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod

from defiseek.logging import get_logger
from defiseek.models import Chat, StoredMessage, Vote, VoteType

logger = get_logger(__name__, component="chat_store")


class ChatStore(ABC):
    """Queries the chat API depends on."""

    @abstractmethod
    async def get_chat_by_id(self, chat_id: str) -> Chat | None: ...

    @abstractmethod
    async def save_chat(self, chat: Chat) -> None: ...

    @abstractmethod
    async def delete_chat_by_id(self, chat_id: str) -> None: ...

    @abstractmethod
    async def get_chats_by_user_id(self, user_id: str) -> list[Chat]: ...

    @abstractmethod
    async def save_messages(self, messages: list[StoredMessage]) -> None: ...

    @abstractmethod
    async def get_messages_by_chat_id(self, chat_id: str) -> list[StoredMessage]: ...

    @abstractmethod
    async def vote_message(self, chat_id: str, message_id: str, vote_type: VoteType) -> None: ...

    @abstractmethod
    async def get_votes_by_chat_id(self, chat_id: str) -> list[Vote]: ...


class InMemoryChatStore(ChatStore):
    """Process-local store guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._chats: dict[str, Chat] = {}
        self._messages: dict[str, list[StoredMessage]] = {}
        self._votes: dict[tuple[str, str], Vote] = {}

    async def get_chat_by_id(self, chat_id: str) -> Chat | None:
        return self._chats.get(chat_id)

    async def save_chat(self, chat: Chat) -> None:
        async with self._lock:
            self._chats[chat.id] = chat
        logger.info("chat_saved", chat_id=chat.id, user_id=chat.user_id)

    async def delete_chat_by_id(self, chat_id: str) -> None:
        async with self._lock:
            self._chats.pop(chat_id, None)
            self._messages.pop(chat_id, None)
            for key in [k for k in self._votes if k[0] == chat_id]:
                del self._votes[key]
        logger.info("chat_deleted", chat_id=chat_id)

    async def get_chats_by_user_id(self, user_id: str) -> list[Chat]:
        chats = [c for c in self._chats.values() if c.user_id == user_id]
        return sorted(chats, key=lambda c: c.created_at, reverse=True)

    async def save_messages(self, messages: list[StoredMessage]) -> None:
        async with self._lock:
            for message in messages:
                self._messages.setdefault(message.chat_id, []).append(message)

    async def get_messages_by_chat_id(self, chat_id: str) -> list[StoredMessage]:
        return sorted(self._messages.get(chat_id, []), key=lambda m: m.created_at)

    async def vote_message(self, chat_id: str, message_id: str, vote_type: VoteType) -> None:
        async with self._lock:
            self._votes[(chat_id, message_id)] = Vote(
                chat_id=chat_id,
                message_id=message_id,
                is_upvoted=vote_type == VoteType.UP,
            )

    async def get_votes_by_chat_id(self, chat_id: str) -> list[Vote]:
        return [v for (cid, _), v in self._votes.items() if cid == chat_id]
