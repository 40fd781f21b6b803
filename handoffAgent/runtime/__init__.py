"""Model runner interface and the LangChain adapter."""

from .interfaces import FinishEvent, GenerationResult, ModelRequest, ModelRunner, StepEvent
from .model_resolver import ModelResolver, build_model_resolver, resolve_model
from .runner import LangChainModelRunner

__all__ = [
    "FinishEvent",
    "GenerationResult",
    "LangChainModelRunner",
    "ModelRequest",
    "ModelResolver",
    "ModelRunner",
    "StepEvent",
    "build_model_resolver",
    "resolve_model",
]
