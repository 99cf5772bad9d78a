"""Provider base classes."""

from .base import Provider, ProviderSettings

__all__ = ["Provider", "ProviderSettings"]
