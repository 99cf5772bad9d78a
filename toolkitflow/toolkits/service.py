"""Toolkit service: user scoping and resilient access to the toolkit API.

The service wraps a ToolkitAPIProvider with the plugin's user policy
(single-user deployments collapse every caller onto the configured user id)
and with the soft-failure rules the workflow relies on.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from toolkitflow.core.errors import DependencyGraphUnavailableError, ToolkitAPIError
from toolkitflow.core.settings import ToolkitFlowSettings
from toolkitflow.providers.toolkits.base import ToolkitAPIProvider
from toolkitflow.providers.toolkits.models import (
    ConnectedAccount,
    ConnectionInitiation,
    DependencyGraph,
    ToolDefinition,
    ToolSearchResult,
    WorkflowPlan,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def _is_server_error(error: Exception) -> bool:
    if isinstance(error, ToolkitAPIError):
        return error.is_server_error
    return "500" in str(error)


class ToolkitService:
    """Facade over the toolkit API used by actions and workflow components."""

    def __init__(
        self,
        provider: ToolkitAPIProvider,
        settings: ToolkitFlowSettings,
        sleep: Sleep = asyncio.sleep,
    ):
        self.provider = provider
        self.settings = settings
        self._sleep = sleep

    @property
    def initialized(self) -> bool:
        return self.provider.initialized

    @property
    def multi_user_mode(self) -> bool:
        return self.settings.multi_user_mode

    def effective_user_id(self, user_id: Optional[str] = None) -> str:
        """Resolve the user id API calls run under.

        Single-user mode always uses the configured id; multi-user mode uses
        the caller's id and falls back to the configured one.
        """
        if not self.settings.multi_user_mode:
            return self.settings.user_id
        return user_id or self.settings.user_id

    async def get_connected_apps(self, user_id: Optional[str] = None) -> list[str]:
        """Slugs of toolkits with an ACTIVE connection. Failures yield []."""
        effective = self.effective_user_id(user_id)
        try:
            accounts = await self.provider.list_connections(effective, statuses=["ACTIVE"])
        except Exception as e:
            logger.error(f"Failed to load connected apps for {effective}: {e}")
            return []

        slugs: list[str] = []
        for account in accounts:
            if account.is_active and account.toolkit_slug and account.toolkit_slug not in slugs:
                slugs.append(account.toolkit_slug)
        logger.debug(f"Found {len(slugs)} connected apps for user {effective}: {', '.join(slugs)}")
        return slugs

    async def is_toolkit_connected(self, toolkit: str, user_id: Optional[str] = None) -> bool:
        connected = await self.get_connected_apps(user_id)
        return toolkit.lower() in {slug.lower() for slug in connected}

    async def get_tool_dependency_graph(
        self, tool_slug: str, user_id: Optional[str] = None
    ) -> Optional[DependencyGraph]:
        """Fetch a dependency graph, retrying server-class errors.

        Attempt ``n`` that fails with a server-class error waits
        ``n * backoff`` seconds before the next attempt, up to
        ``dependency_graph_max_attempts`` attempts. Any other failure, or
        running out of attempts, returns None.
        """
        effective = self.effective_user_id(user_id)
        max_attempts = self.settings.dependency_graph_max_attempts
        backoff = self.settings.dependency_graph_backoff_seconds

        attempt = 1
        last_error: Optional[Exception] = None
        while attempt <= max_attempts:
            try:
                graph = await self.provider.get_tool_dependency_graph(tool_slug, effective)
                logger.debug(f"Got dependency graph for {tool_slug} on attempt {attempt}")
                return graph
            except Exception as e:
                last_error = e
                logger.error(f"Error getting dependency graph for {tool_slug} (attempt {attempt}): {e}")
                if not _is_server_error(e) or attempt >= max_attempts:
                    break
                delay = backoff * attempt
                logger.info(
                    f"Retrying dependency graph fetch for {tool_slug} in {delay}s "
                    f"(attempt {attempt + 1}/{max_attempts})"
                )
                await self._sleep(delay)
                attempt += 1

        unavailable = DependencyGraphUnavailableError(tool_slug, attempt, cause=last_error)
        logger.warning(unavailable.message)
        return None

    async def get_toolkits_by_category(self, category: str, user_id: Optional[str] = None) -> list[str]:
        """Toolkit slugs for a category. Failures yield []."""
        try:
            apps = await self.provider.retrieve_toolkits(category, self.effective_user_id(user_id))
        except Exception as e:
            logger.error(f"Error retrieving toolkits for category '{category}': {e}")
            return []
        logger.debug(f"Found {len(apps)} toolkits for category '{category}': {', '.join(apps)}")
        return apps

    async def search_tools(self, use_case: str, toolkit: str, user_id: Optional[str] = None) -> ToolSearchResult:
        return await self.provider.search_tools(use_case, toolkit, self.effective_user_id(user_id))

    async def get_tools(self, tool_slugs: list[str], user_id: Optional[str] = None) -> dict[str, ToolDefinition]:
        return await self.provider.get_tools(tool_slugs, self.effective_user_id(user_id))

    async def create_plan(self, use_case: str, toolkit: str, user_id: Optional[str] = None) -> Optional[WorkflowPlan]:
        """Remote execution plan for a use case; failures yield None."""
        try:
            return await self.provider.create_plan(use_case, toolkit, self.effective_user_id(user_id))
        except Exception as e:
            logger.warning(f"Plan creation failed for {toolkit} '{use_case}': {e}")
            return None

    async def execute_tool(self, tool_slug: str, arguments: dict[str, Any], user_id: Optional[str] = None) -> dict[str, Any]:
        """Run one tool call; failures come back as an unsuccessful payload."""
        try:
            return await self.provider.execute_tool(tool_slug, arguments, self.effective_user_id(user_id))
        except Exception as e:
            logger.error(f"Failed to execute tool {tool_slug}: {e}")
            return {"successful": False, "data": None, "error": str(e)}

    def tool_executor(self, user_id: Optional[str] = None) -> Callable[[str, dict[str, Any]], Awaitable[dict[str, Any]]]:
        """Executor callback bound to a user, for tool-calling generation."""

        async def _execute(tool_slug: str, arguments: dict[str, Any]) -> dict[str, Any]:
            return await self.execute_tool(tool_slug, arguments, user_id)

        return _execute

    async def list_connections(
        self, toolkit: Optional[str] = None, user_id: Optional[str] = None
    ) -> list[ConnectedAccount]:
        return await self.provider.list_connections(self.effective_user_id(user_id), toolkit=toolkit)

    async def delete_connection(self, connection_id: str) -> None:
        await self.provider.delete_connection(connection_id)

    async def initiate_connection(self, toolkit: str, user_id: Optional[str] = None) -> ConnectionInitiation:
        return await self.provider.initiate_connection(toolkit, self.effective_user_id(user_id))
