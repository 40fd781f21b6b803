"""Model resolver wiring using environment-derived settings.

Agents may name their model by id (``model="gpt-4o-mini"``) instead of
passing a LangChain chat model. The resolver turns ids into ``ChatOpenAI``
clients configured from ``ModelSettings``; any OpenAI-compatible endpoint
(OpenRouter, DeepSeek, a local server) works through ``MODEL_BASE_URL``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, Union

from langchain_core.language_models import BaseChatModel
from langchain_openai import ChatOpenAI

from ..config.settings import ModelSettings, get_settings


class ModelResolver(Protocol):
    """Callable that returns a LangChain chat model for a model id."""

    def __call__(self, model_id: str) -> BaseChatModel:
        ...


def _chat_kwargs(model: str, settings: ModelSettings) -> Dict[str, Any]:
    if not settings.api_key:
        raise RuntimeError(f"Missing API key for model {model}, set MODEL_API_KEY in .env")
    kwargs: Dict[str, Any] = {"model": model, "api_key": settings.api_key, "stream_usage": True}
    if settings.base_url:
        kwargs["base_url"] = settings.base_url
    if settings.temperature is not None:
        kwargs["temperature"] = settings.temperature
    return kwargs


def build_model_resolver(settings: Optional[ModelSettings] = None) -> ModelResolver:
    """Construct a resolver that returns cached ChatOpenAI clients.

    Args:
        settings: Model credentials, defaults to ``get_settings().models``

    Raises:
        RuntimeError: If the API key is missing when a model is first requested

    Example:
        >>> resolver = build_model_resolver()
        >>> chat_model = resolver("gpt-4o-mini")
    """
    model_settings = settings or get_settings().models
    catalog: Dict[str, BaseChatModel] = {}

    def resolver(model_id: str) -> BaseChatModel:
        if model_id not in catalog:
            catalog[model_id] = ChatOpenAI(**_chat_kwargs(model_id, model_settings))
        return catalog[model_id]

    return resolver


def resolve_model(
    model: Union[BaseChatModel, str, None],
    resolver: Optional[ModelResolver] = None,
) -> BaseChatModel:
    """Return a chat model for an agent's ``model`` field.

    ``None`` selects the configured default model id.
    """
    if model is not None and not isinstance(model, str):
        return model
    resolver = resolver or _default_resolver()
    model_id = model or get_settings().models.model_id
    return resolver(model_id)


_DEFAULT_RESOLVER: Optional[ModelResolver] = None


def _default_resolver() -> ModelResolver:
    global _DEFAULT_RESOLVER
    if _DEFAULT_RESOLVER is None:
        _DEFAULT_RESOLVER = build_model_resolver()
    return _DEFAULT_RESOLVER
