"""Configuration for handoffAgent."""

from .settings import (
    MemorySettings,
    ModelSettings,
    ObservabilitySettings,
    OrchestrationSettings,
    Settings,
    get_settings,
)

__all__ = [
    "MemorySettings",
    "ModelSettings",
    "ObservabilitySettings",
    "OrchestrationSettings",
    "Settings",
    "get_settings",
]
