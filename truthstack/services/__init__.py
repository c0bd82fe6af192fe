"""Services for TruthStack."""

from .llm_service import LLMService
from .fallback import FallbackState, ModelFallbackDriver
from .usage import (
    InMemoryUsageRecorder,
    JsonlUsageRecorder,
    UsageEmitter,
    UsageRecorder,
    get_usage_recorder,
)

__all__ = [
    "LLMService",
    "FallbackState",
    "ModelFallbackDriver",
    "InMemoryUsageRecorder",
    "JsonlUsageRecorder",
    "UsageEmitter",
    "UsageRecorder",
    "get_usage_recorder",
]
