"""Core foundational models, errors and settings."""

from .models import (
    MutableStrictBaseModel,
    StrictBaseModel,
)

__all__ = [
    "StrictBaseModel",
    "MutableStrictBaseModel",
]
