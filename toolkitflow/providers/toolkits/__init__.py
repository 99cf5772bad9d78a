"""Remote toolkit API providers."""

from .base import ToolkitAPIProvider, ToolkitAPIProviderSettings
from .models import (
    ConnectedAccount,
    ConnectionInitiation,
    DependencyGraph,
    DependencyTool,
    ToolDefinition,
    ToolSearchHit,
    ToolSearchResult,
    WorkflowPlan,
    WorkflowStep,
)

__all__ = [
    "ConnectedAccount",
    "ConnectionInitiation",
    "DependencyGraph",
    "DependencyTool",
    "ToolDefinition",
    "ToolSearchHit",
    "ToolSearchResult",
    "ToolkitAPIProvider",
    "ToolkitAPIProviderSettings",
    "WorkflowPlan",
    "WorkflowStep",
]
