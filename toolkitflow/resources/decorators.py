"""Decorators for declaring prompt resources."""

from collections.abc import Callable
from typing import Any

from .models import PromptResource
from .registry import prompt_registry


def prompt(name: str, **metadata: Any) -> Callable[[type], type]:
    """Register a class as a prompt resource.

    The decorated class must define a ``template`` class attribute. The class
    stays usable as a namespace; the registered PromptResource is attached as
    ``__prompt_resource__`` and is what callers render.

    Args:
        name: Unique name for the prompt
        **metadata: Optional ``description``

    Raises:
        ValueError: If the decorated class has no 'template' attribute
    """

    def decorator(obj: type) -> type:
        template = getattr(obj, "template", None)
        if not isinstance(template, str):
            raise ValueError(f"Prompt '{name}' must have a 'template' attribute")

        description = metadata.get("description") or (obj.__doc__ or "").strip()
        instance = PromptResource(name=name, template=template, description=description)
        prompt_registry.register(name, instance)

        obj.__resource_name__ = name  # type: ignore[attr-defined]
        obj.__prompt_resource__ = instance  # type: ignore[attr-defined]
        return obj

    return decorator
