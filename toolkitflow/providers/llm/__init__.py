"""LLM provider contract and model response types."""

from .base import LLMProvider, LLMProviderSettings, ToolExecutor
from .models import (
    ModelResponse,
    TextOnlyResponse,
    ToolCall,
    ToolCallResponse,
    ToolCallResult,
    parse_model_response,
)

__all__ = [
    "LLMProvider",
    "LLMProviderSettings",
    "ModelResponse",
    "TextOnlyResponse",
    "ToolCall",
    "ToolCallResponse",
    "ToolCallResult",
    "ToolExecutor",
    "parse_model_response",
]
