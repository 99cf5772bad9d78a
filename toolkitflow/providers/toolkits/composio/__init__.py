"""Composio implementation of the toolkit API provider."""

from .provider import ComposioProviderSettings, ComposioToolkitProvider

__all__ = ["ComposioProviderSettings", "ComposioToolkitProvider"]
