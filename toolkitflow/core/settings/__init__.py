"""Configuration settings for toolkitflow."""

from .settings import DEFAULT_BASE_URL, ToolkitFlowSettings, load_settings

__all__ = ["DEFAULT_BASE_URL", "ToolkitFlowSettings", "load_settings"]
