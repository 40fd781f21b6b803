"""Memory configuration attached to an agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal, Optional

if TYPE_CHECKING:
    from .provider import MemoryProvider

WorkingMemoryScope = Literal["chat", "user"]


@dataclass(frozen=True)
class HistoryConfig:
    enabled: bool = False
    limit: Optional[int] = None  # None → MemorySettings.history_limit


@dataclass(frozen=True)
class WorkingMemoryConfig:
    enabled: bool = False
    scope: Optional[WorkingMemoryScope] = None  # None → MemorySettings.working_memory_scope
    template: Optional[str] = None


@dataclass(frozen=True)
class ChatsConfig:
    enabled: bool = False


@dataclass(frozen=True)
class MemoryConfig:
    """History, working memory and chat bookkeeping for one agent.

    Only the entry (triage) agent's memory config is consulted by a workflow.
    """

    provider: Optional["MemoryProvider"] = None
    history: HistoryConfig = field(default_factory=HistoryConfig)
    working_memory: WorkingMemoryConfig = field(default_factory=WorkingMemoryConfig)
    chats: ChatsConfig = field(default_factory=ChatsConfig)

    @property
    def enabled(self) -> bool:
        return self.provider is not None and (
            self.history.enabled or self.working_memory.enabled or self.chats.enabled
        )
