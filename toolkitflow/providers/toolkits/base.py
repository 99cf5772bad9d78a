"""Toolkit API provider base class.

This module defines the interface every remote tool-execution backend
implements: tool search and retrieval, dependency graphs, tool execution,
connection management, toolkit discovery and plan creation.
"""

import logging
from typing import Any, Optional, TypeVar

from pydantic import Field

from toolkitflow.core.errors import ErrorContext, ProviderErrorContext, ToolkitAPIError
from toolkitflow.providers.core.base import Provider, ProviderSettings

from .models import (
    ConnectedAccount,
    ConnectionInitiation,
    DependencyGraph,
    ToolDefinition,
    ToolSearchResult,
    WorkflowPlan,
)

logger = logging.getLogger(__name__)


class ToolkitAPIProviderSettings(ProviderSettings):
    """Settings for remote toolkit API providers."""

    api_key: Optional[str] = Field(default=None, description="API key sent with every request")
    base_url: str = Field(default="", description="Base URL of the REST API")


SettingsT = TypeVar("SettingsT", bound=ToolkitAPIProviderSettings)


class ToolkitAPIProvider(Provider[SettingsT]):
    """Base class for remote toolkit API backends.

    All methods raise ``ToolkitAPIError`` on failure. Callers decide which
    failures are soft.
    """

    settings_class = ToolkitAPIProviderSettings

    def __init__(self, name: str = "toolkit_api", settings: Optional[SettingsT] = None):
        super().__init__(name=name, provider_type="toolkit_api", settings=settings)

    async def search_tools(self, use_case: str, toolkit: str, user_id: str) -> ToolSearchResult:
        """Search tools for a use case, scoped to one toolkit.

        Args:
            use_case: Natural language description of the task
            toolkit: Toolkit slug to restrict the search to
            user_id: User the search runs for

        Returns:
            Ranked search result

        Raises:
            ToolkitAPIError: If the search fails
        """
        raise NotImplementedError("Subclasses must implement search_tools()")

    async def get_tool_dependency_graph(self, tool_slug: str, user_id: str) -> DependencyGraph:
        """Get the parent tools of a tool.

        Raises:
            ToolkitAPIError: If the graph cannot be fetched; ``status_code``
                is set for HTTP failures
        """
        raise NotImplementedError("Subclasses must implement get_tool_dependency_graph()")

    async def get_tools(self, tool_slugs: list[str], user_id: str) -> dict[str, ToolDefinition]:
        """Fetch tool definitions in one batch, keyed by slug."""
        raise NotImplementedError("Subclasses must implement get_tools()")

    async def execute_tool(self, tool_slug: str, arguments: dict[str, Any], user_id: str) -> dict[str, Any]:
        """Execute a tool and return its raw payload (``successful``, ``data``, ``error``)."""
        raise NotImplementedError("Subclasses must implement execute_tool()")

    async def list_connections(
        self,
        user_id: str,
        toolkit: Optional[str] = None,
        statuses: Optional[list[str]] = None,
    ) -> list[ConnectedAccount]:
        """List a user's connections, optionally filtered by toolkit and status."""
        raise NotImplementedError("Subclasses must implement list_connections()")

    async def delete_connection(self, connection_id: str) -> None:
        """Delete a connection."""
        raise NotImplementedError("Subclasses must implement delete_connection()")

    async def initiate_connection(self, toolkit: str, user_id: str) -> ConnectionInitiation:
        """Start a new connection for a toolkit."""
        raise NotImplementedError("Subclasses must implement initiate_connection()")

    async def retrieve_toolkits(self, category: str, user_id: str) -> list[str]:
        """Return toolkit slugs available for a category."""
        raise NotImplementedError("Subclasses must implement retrieve_toolkits()")

    async def create_plan(self, use_case: str, toolkit: str, user_id: str) -> Optional[WorkflowPlan]:
        """Ask the remote planner for an execution plan for a use case."""
        raise NotImplementedError("Subclasses must implement create_plan()")

    def _api_error(
        self,
        message: str,
        operation: str,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ) -> ToolkitAPIError:
        """Build a ToolkitAPIError with this provider's context."""
        return ToolkitAPIError(
            message=message,
            context=ErrorContext.create(
                flow_name="toolkit_api",
                error_type="ToolkitAPIError",
                error_location=f"{self.__class__.__name__}.{operation}",
                component=self.name,
                operation=operation,
            ),
            provider_context=ProviderErrorContext(
                provider_name=self.name,
                provider_type=self.provider_type,
                operation=operation,
                retry_count=0,
            ),
            status_code=status_code,
            cause=cause,
        )
