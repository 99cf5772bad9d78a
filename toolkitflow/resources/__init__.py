"""Prompt resources: the @prompt decorator and the prompt registry."""

from .decorators import prompt
from .models import PromptResource
from .registry import PromptRegistry, prompt_registry

__all__ = ["PromptRegistry", "PromptResource", "prompt", "prompt_registry"]
