"""Working memory: persistent notes about the user injected into the prompt."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field

from .provider import WorkingMemory

if TYPE_CHECKING:
    from ..agents.context import ExecutionContext
    from .config import MemoryConfig

LOGGER = logging.getLogger(__name__)

WORKING_MEMORY_TOOL_NAME = "update_working_memory"

DEFAULT_TEMPLATE = """# User Profile
- **Name**:
- **Role**:
- **Company**:
- **Preferences**:

# Important Facts
-
"""


def working_memory_instructions(template: Optional[str] = None) -> str:
    """Prompt section telling the agent how to maintain working memory."""
    return f"""## Working memory
You have a persistent working memory about the user. When you learn something worth \
remembering (name, role, company, preferences, important facts), call \
`{WORKING_MEMORY_TOOL_NAME}` with the full updated content. Keep the structure below \
and do not mention the memory to the user.

<memory_template>
{template or DEFAULT_TEMPLATE}
</memory_template>"""


def format_working_memory(memory: Optional[WorkingMemory]) -> str:
    """Render stored working memory as a system prompt addition ('' when empty)."""
    if memory is None or not memory.content.strip():
        return ""
    return f"\n\n## What you remember about the user\n{memory.content.strip()}"


class UpdateWorkingMemoryArgs(BaseModel):
    content: str = Field(
        description=(
            "Updated working memory content in markdown format. Include user preferences, "
            "role, company, and any important facts to remember."
        )
    )


def create_working_memory_tool(memory: "MemoryConfig", context: "ExecutionContext", scope: str) -> BaseTool:
    """Create the ``update_working_memory`` tool bound to one turn's context.

    Args:
        memory: Memory config whose provider stores the update
        context: Turn context providing chat and user ids
        scope: "chat" or "user"
    """

    async def update_working_memory(content: str) -> str:
        LOGGER.debug(f"update_working_memory called ({len(content)} chars, scope={scope})")
        if memory.provider is None:
            LOGGER.warning("Memory provider not configured")
            return "Memory system not configured"
        try:
            await memory.provider.update_working_memory(
                context.memory_chat_id, context.user_id, scope, content
            )
        except Exception as e:  # reported back to the model as the tool result
            LOGGER.error(f"Failed to update working memory: {e}")
            return "error"
        return "success"

    return StructuredTool.from_function(
        coroutine=update_working_memory,
        name=WORKING_MEMORY_TOOL_NAME,
        description="Save user information (name, role, company, preferences) to persistent memory for future conversations.",
        args_schema=UpdateWorkingMemoryArgs,
    )
