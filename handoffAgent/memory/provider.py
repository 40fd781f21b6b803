"""Memory provider protocol and the in-process reference implementation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage

LOGGER = logging.getLogger(__name__)


@dataclass
class StoredMessage:
    chat_id: str
    role: str  # "user" | "assistant"
    content: str
    user_id: Optional[str] = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_message(self) -> BaseMessage:
        if self.role == "assistant":
            return AIMessage(content=self.content)
        return HumanMessage(content=self.content)


@dataclass
class WorkingMemory:
    content: str
    updated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@dataclass
class ChatSession:
    chat_id: str
    user_id: Optional[str] = None
    title: Optional[str] = None
    message_count: int = 0
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    updated_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


@runtime_checkable
class MemoryProvider(Protocol):
    """Storage backend for history, working memory and chat sessions."""

    async def get_messages(self, chat_id: str, limit: Optional[int] = None) -> List[BaseMessage]:
        ...

    async def save_message(self, chat_id: str, role: str, content: str, user_id: Optional[str] = None) -> None:
        ...

    async def get_working_memory(
        self, chat_id: Optional[str], user_id: Optional[str], scope: str
    ) -> Optional[WorkingMemory]:
        ...

    async def update_working_memory(
        self, chat_id: Optional[str], user_id: Optional[str], scope: str, content: str
    ) -> None:
        ...

    async def get_chat(self, chat_id: str) -> Optional[ChatSession]:
        ...

    async def save_chat(self, chat: ChatSession) -> None:
        ...


def working_memory_key(chat_id: Optional[str], user_id: Optional[str], scope: str) -> Tuple[str, str]:
    """Storage key for a working memory record.

    Raises:
        ValueError: The id required by ``scope`` is missing
    """
    if scope == "user":
        if not user_id:
            raise ValueError("user_id is required for user-scoped working memory")
        return ("user", user_id)
    if not chat_id:
        raise ValueError("chat_id is required for chat-scoped working memory")
    return ("chat", chat_id)


class InMemoryProvider:
    """Dict-backed provider; contents live as long as the instance."""

    def __init__(self):
        self._messages: Dict[str, List[StoredMessage]] = {}
        self._working: Dict[Tuple[str, str], WorkingMemory] = {}
        self._chats: Dict[str, ChatSession] = {}

    async def get_messages(self, chat_id: str, limit: Optional[int] = None) -> List[BaseMessage]:
        records = self._messages.get(chat_id, [])
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return [r.to_message() for r in records]

    async def save_message(self, chat_id: str, role: str, content: str, user_id: Optional[str] = None) -> None:
        self._messages.setdefault(chat_id, []).append(
            StoredMessage(chat_id=chat_id, role=role, content=content, user_id=user_id)
        )

    async def get_working_memory(self, chat_id, user_id, scope) -> Optional[WorkingMemory]:
        return self._working.get(working_memory_key(chat_id, user_id, scope))

    async def update_working_memory(self, chat_id, user_id, scope, content) -> None:
        self._working[working_memory_key(chat_id, user_id, scope)] = WorkingMemory(content=content)

    async def get_chat(self, chat_id: str) -> Optional[ChatSession]:
        return self._chats.get(chat_id)

    async def save_chat(self, chat: ChatSession) -> None:
        chat.updated_at = datetime.now(timezone.utc).isoformat()
        self._chats[chat.chat_id] = chat
