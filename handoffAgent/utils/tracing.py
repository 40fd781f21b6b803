"""Observability helpers (LangSmith tracing and logging bootstrap)."""

from __future__ import annotations

import logging
import os
from typing import Optional

from ..config.settings import ObservabilitySettings, get_settings
from .logging_utils import setup_logging


def configure_tracing(settings: ObservabilitySettings) -> None:
    """Configure environment variables for tracing integrations."""

    if settings.langsmith_project:
        os.environ["LANGCHAIN_PROJECT"] = settings.langsmith_project
    if settings.langsmith_api_key:
        os.environ["LANGCHAIN_API_KEY"] = settings.langsmith_api_key
    if settings.langsmith_endpoint:
        os.environ["LANGCHAIN_ENDPOINT"] = settings.langsmith_endpoint
    if settings.tracing_enabled:
        os.environ["LANGCHAIN_TRACING_V2"] = "true"


def configure_observability(settings: Optional[ObservabilitySettings] = None) -> logging.Logger:
    """Set up logging and tracing from settings; returns the package logger."""
    settings = settings or get_settings().observability
    configure_tracing(settings)
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    return setup_logging(level=level, log_dir=settings.log_dir or None)
