"""Conversation history, working memory and chat sessions."""

from .config import ChatsConfig, HistoryConfig, MemoryConfig, WorkingMemoryConfig
from .provider import ChatSession, InMemoryProvider, MemoryProvider, WorkingMemory
from .sqlite_store import SQLiteMemoryProvider
from .working_memory import (
    DEFAULT_TEMPLATE,
    WORKING_MEMORY_TOOL_NAME,
    create_working_memory_tool,
    format_working_memory,
    working_memory_instructions,
)

__all__ = [
    "ChatSession",
    "ChatsConfig",
    "DEFAULT_TEMPLATE",
    "HistoryConfig",
    "InMemoryProvider",
    "MemoryConfig",
    "MemoryProvider",
    "SQLiteMemoryProvider",
    "WORKING_MEMORY_TOOL_NAME",
    "WorkingMemory",
    "WorkingMemoryConfig",
    "create_working_memory_tool",
    "format_working_memory",
    "working_memory_instructions",
]
