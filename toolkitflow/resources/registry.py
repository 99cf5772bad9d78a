"""Registry for prompt resources."""

import logging

from .models import PromptResource

logger = logging.getLogger(__name__)


class PromptRegistry:
    """Name -> PromptResource registry populated by the @prompt decorator."""

    def __init__(self) -> None:
        self._prompts: dict[str, PromptResource] = {}

    def register(self, name: str, obj: PromptResource) -> None:
        """Register a prompt.

        Raises:
            TypeError: If obj is not a PromptResource
            ValueError: If a different prompt with the same name exists
        """
        if not isinstance(obj, PromptResource):
            raise TypeError(f"Prompt '{name}' must be a PromptResource, got {type(obj)}")
        existing = self._prompts.get(name)
        if existing is not None and existing != obj:
            raise ValueError(f"Prompt '{name}' already exists")
        self._prompts[name] = obj
        logger.debug(f"Registered prompt '{name}'")

    def get(self, name: str) -> PromptResource:
        """Get a prompt by name.

        Raises:
            KeyError: If the prompt does not exist
        """
        if name not in self._prompts:
            raise KeyError(f"Prompt '{name}' not found")
        return self._prompts[name]

    def contains(self, name: str) -> bool:
        return name in self._prompts

    def list(self) -> list[str]:
        return sorted(self._prompts)


prompt_registry = PromptRegistry()
