"""Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and ensures proper test environment setup.
"""

import sys
from pathlib import Path

import pytest

# Ensure project root is in PYTHONPATH for imports to work
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

tests_root = Path(__file__).parent
if str(tests_root) not in sys.path:
    sys.path.insert(0, str(tests_root))

from handoffAgent.config.settings import (  # noqa: E402
    MemorySettings,
    ModelSettings,
    ObservabilitySettings,
    OrchestrationSettings,
    Settings,
)
from handoffAgent.usage.tracking import reset_usage_tracking  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_usage_tracker():
    """The usage tracker is process-wide; every test starts and ends without one."""
    reset_usage_tracking()
    yield
    reset_usage_tracking()


@pytest.fixture
def settings(tmp_path):
    """Deterministic settings independent of the developer's .env."""
    return Settings(
        orchestration=OrchestrationSettings(
            max_rounds=5,
            max_steps=4,
            orchestrator_last_messages=10,
            specialist_last_messages=5,
            handoff_keep_recent=6,
            routing_strategy="auto",
        ),
        memory=MemorySettings(history_limit=10, working_memory_scope="chat", sqlite_path=str(tmp_path / "memory.db")),
        models=ModelSettings(model_id="test-model", api_key="test-key"),
        observability=ObservabilitySettings(log_dir=""),
    )
