"""Environment-bound configuration objects.

This module provides Pydantic BaseSettings-based configuration loading from .env files.
All settings classes automatically load from environment variables with support for
multiple alias names (e.g., MODEL_ID and MODEL_CHAT_ID both work).

Example:
    from handoffAgent.config.settings import get_settings

    settings = get_settings()  # Cached singleton
    max_rounds = settings.orchestration.max_rounds
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()


class OrchestrationSettings(BaseSettings):
    """Round and context-window policy for multi-agent turns.

    - max_rounds: Hard cap on agent rounds per turn (1-50, default: 5)
    - max_steps: Model steps (tool loops) per round unless the agent sets max_turns
    - orchestrator_last_messages: Window for agents that can hand off (default: 10)
    - specialist_last_messages: Window for agents without handoffs (default: 5)
    - handoff_keep_recent: Messages kept by the default handoff input filter
    - routing_strategy: "auto" enables pattern routing, "manual" disables it
    """

    max_rounds: int = Field(default=5, ge=1, le=50, alias="MAX_ROUNDS")
    max_steps: int = Field(default=10, ge=1, le=100, alias="MAX_STEPS")
    orchestrator_last_messages: int = Field(default=10, ge=1, alias="ORCHESTRATOR_LAST_MESSAGES")
    specialist_last_messages: int = Field(default=5, ge=1, alias="SPECIALIST_LAST_MESSAGES")
    handoff_keep_recent: int = Field(default=6, ge=1, alias="HANDOFF_KEEP_RECENT")
    routing_strategy: Literal["auto", "manual"] = Field(default="auto", alias="ROUTING_STRATEGY")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class MemorySettings(BaseSettings):
    """Conversation history and working memory defaults."""

    history_limit: int = Field(default=10, ge=1, le=200, alias="MEMORY_HISTORY_LIMIT")
    working_memory_scope: Literal["chat", "user"] = Field(default="chat", alias="WORKING_MEMORY_SCOPE")

    # SQLite provider database path
    # Default: ./data/memory.db
    sqlite_path: str = Field(default="data/memory.db", alias="MEMORY_DB_PATH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class ModelSettings(BaseSettings):
    """Default chat model used when an agent names a model by id."""

    model_id: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("MODEL_ID", "MODEL_CHAT", "MODEL_CHAT_ID"),
    )
    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_API_KEY", "MODEL_CHAT_API_KEY", "OPENAI_API_KEY"),
    )
    base_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("MODEL_BASE_URL", "MODEL_CHAT_BASE_URL", "OPENAI_BASE_URL"),
    )
    temperature: Optional[float] = Field(default=None, alias="MODEL_TEMPERATURE")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class ObservabilitySettings(BaseSettings):
    """Tracing and logging configuration.

    - LangSmith tracing (LANGCHAIN_TRACING_V2, LANGCHAIN_PROJECT, etc.)
    - Logging (LOG_LEVEL, LOG_DIR, LOG_PREVIEW_LENGTH)
    """

    langsmith_project: Optional[str] = Field(default=None, alias="LANGCHAIN_PROJECT")
    langsmith_api_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LANGCHAIN_API_KEY", "LANGSMITH_API_KEY")
    )
    langsmith_endpoint: Optional[str] = Field(default=None, alias="LANGCHAIN_ENDPOINT")
    tracing_enabled: bool = Field(default=False, alias="LANGCHAIN_TRACING_V2")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    # Set to empty string to disable the log file
    log_dir: Optional[str] = Field(default="logs", alias="LOG_DIR")
    log_preview_length: int = Field(default=500, ge=100, le=5000, alias="LOG_PREVIEW_LENGTH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class Settings(BaseSettings):
    """Root application settings loaded from .env file.

    Groups:
    - orchestration: Round limits and context windows (OrchestrationSettings)
    - memory: History and working memory (MemorySettings)
    - models: Default chat model credentials (ModelSettings)
    - observability: Tracing and logging (ObservabilitySettings)

    Use get_settings() to obtain a cached singleton instance.
    """

    environment: str = Field(default="dev", alias="APP_ENV")
    orchestration: OrchestrationSettings = Field(default_factory=OrchestrationSettings)
    memory: MemorySettings = Field(default_factory=MemorySettings)
    models: ModelSettings = Field(default_factory=ModelSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        case_sensitive=False,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance.

    Returns:
        Settings: Cached application settings instance
    """
    return Settings()
