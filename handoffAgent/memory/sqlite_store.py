"""SQLite-backed memory provider."""

from __future__ import annotations

import asyncio
import os
import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from langchain_core.messages import BaseMessage

from .provider import ChatSession, StoredMessage, WorkingMemory, working_memory_key


class SQLiteMemoryProvider:
    """Store conversation history, working memory and chat sessions in SQLite.

    Each call opens its own connection and runs in a worker thread, so the
    provider can be shared across turns.
    """

    def __init__(self, db_path: str = "data/memory.db"):
        """Initialize the store.

        Args:
            db_path: Path to SQLite database file
        """
        db_dir = os.path.dirname(db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

        self.db_path = db_path
        self._init_db()

    @classmethod
    def from_settings(cls, settings=None) -> "SQLiteMemoryProvider":
        if settings is None:
            from ..config.settings import get_settings
            settings = get_settings()
        return cls(settings.memory.sqlite_path)

    def _init_db(self):
        """Initialize database schema."""
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    chat_id TEXT NOT NULL,
                    user_id TEXT,
                    role TEXT NOT NULL,
                    content TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_messages_chat ON messages (chat_id, id)")
            conn.execute("""
                CREATE TABLE IF NOT EXISTS working_memory (
                    scope TEXT NOT NULL,
                    owner_id TEXT NOT NULL,
                    content TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (scope, owner_id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS chats (
                    chat_id TEXT PRIMARY KEY,
                    user_id TEXT,
                    title TEXT,
                    message_count INTEGER DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    # ========== Sync implementations ==========

    def _get_messages(self, chat_id: str, limit: Optional[int]) -> List[StoredMessage]:
        conn = sqlite3.connect(self.db_path)
        try:
            if limit is None:
                cursor = conn.execute(
                    "SELECT chat_id, role, content, user_id, created_at FROM messages WHERE chat_id = ? ORDER BY id",
                    (chat_id,)
                )
                rows = cursor.fetchall()
            else:
                cursor = conn.execute(
                    """SELECT chat_id, role, content, user_id, created_at FROM messages
                       WHERE chat_id = ? ORDER BY id DESC LIMIT ?""",
                    (chat_id, max(limit, 0))
                )
                rows = list(reversed(cursor.fetchall()))
            return [StoredMessage(*row) for row in rows]
        finally:
            conn.close()

    def _save_message(self, chat_id: str, role: str, content: str, user_id: Optional[str]) -> None:
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute(
                """INSERT INTO messages (chat_id, user_id, role, content, created_at)
                   VALUES (?, ?, ?, ?, ?)""",
                (chat_id, user_id, role, content, datetime.now(timezone.utc).isoformat())
            )
            conn.commit()
        finally:
            conn.close()

    def _get_working_memory(self, chat_id, user_id, scope) -> Optional[WorkingMemory]:
        key_scope, owner_id = working_memory_key(chat_id, user_id, scope)
        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.execute(
                "SELECT content, updated_at FROM working_memory WHERE scope = ? AND owner_id = ?",
                (key_scope, owner_id)
            )
            row = cursor.fetchone()
            return WorkingMemory(content=row[0], updated_at=row[1]) if row else None
        finally:
            conn.close()

    def _update_working_memory(self, chat_id, user_id, scope, content) -> None:
        key_scope, owner_id = working_memory_key(chat_id, user_id, scope)
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute(
                """INSERT INTO working_memory (scope, owner_id, content, updated_at)
                   VALUES (?, ?, ?, ?)
                   ON CONFLICT (scope, owner_id) DO UPDATE SET
                       content = excluded.content, updated_at = excluded.updated_at""",
                (key_scope, owner_id, content, datetime.now(timezone.utc).isoformat())
            )
            conn.commit()
        finally:
            conn.close()

    def _get_chat(self, chat_id: str) -> Optional[ChatSession]:
        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.execute(
                """SELECT chat_id, user_id, title, message_count, created_at, updated_at
                   FROM chats WHERE chat_id = ?""",
                (chat_id,)
            )
            row = cursor.fetchone()
            return ChatSession(*row) if row else None
        finally:
            conn.close()

    def _save_chat(self, chat: ChatSession) -> None:
        chat.updated_at = datetime.now(timezone.utc).isoformat()
        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute(
                """INSERT INTO chats (chat_id, user_id, title, message_count, created_at, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?)
                   ON CONFLICT (chat_id) DO UPDATE SET
                       user_id = excluded.user_id, title = excluded.title,
                       message_count = excluded.message_count, updated_at = excluded.updated_at""",
                (chat.chat_id, chat.user_id, chat.title, chat.message_count, chat.created_at, chat.updated_at)
            )
            conn.commit()
        finally:
            conn.close()

    # ========== MemoryProvider ==========

    async def get_messages(self, chat_id: str, limit: Optional[int] = None) -> List[BaseMessage]:
        records = await asyncio.to_thread(self._get_messages, chat_id, limit)
        return [r.to_message() for r in records]

    async def save_message(self, chat_id: str, role: str, content: str, user_id: Optional[str] = None) -> None:
        await asyncio.to_thread(self._save_message, chat_id, role, content, user_id)

    async def get_working_memory(self, chat_id, user_id, scope) -> Optional[WorkingMemory]:
        return await asyncio.to_thread(self._get_working_memory, chat_id, user_id, scope)

    async def update_working_memory(self, chat_id, user_id, scope, content) -> None:
        await asyncio.to_thread(self._update_working_memory, chat_id, user_id, scope, content)

    async def get_chat(self, chat_id: str) -> Optional[ChatSession]:
        return await asyncio.to_thread(self._get_chat, chat_id)

    async def save_chat(self, chat: ChatSession) -> None:
        await asyncio.to_thread(self._save_chat, chat)

    def list_chats(self) -> List[tuple]:
        """List saved chats.

        Returns:
            List of (chat_id, title, updated_at, message_count) tuples
        """
        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.execute(
                """SELECT chat_id, title, updated_at, message_count
                   FROM chats
                   ORDER BY updated_at DESC"""
            )
            return cursor.fetchall()
        finally:
            conn.close()
