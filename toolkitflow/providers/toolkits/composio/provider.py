"""Composio toolkit API provider.

Talks to the Composio v3 REST API over aiohttp. Discovery, dependency graphs,
connection initiation and planning go through Composio's own meta tools,
executed with the same endpoint as regular tools.
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional

import aiohttp

from toolkitflow.core.settings import DEFAULT_BASE_URL
from toolkitflow.providers.toolkits.base import ToolkitAPIProvider, ToolkitAPIProviderSettings
from toolkitflow.providers.toolkits.models import (
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

logger = logging.getLogger(__name__)

SEARCH_TOOLS = "COMPOSIO_SEARCH_TOOLS"
GET_DEPENDENCY_GRAPH = "COMPOSIO_GET_DEPENDENCY_GRAPH"
RETRIEVE_TOOLKITS = "COMPOSIO_RETRIEVE_TOOLKITS"
INITIATE_CONNECTION = "COMPOSIO_INITIATE_CONNECTION"
CREATE_PLAN = "COMPOSIO_CREATE_PLAN"


class ComposioProviderSettings(ToolkitAPIProviderSettings):
    """Settings for the Composio provider."""

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 60.0


def _toolkit_slug(item: Mapping[str, Any]) -> str:
    toolkit = item.get("toolkit")
    if isinstance(toolkit, Mapping):
        return str(toolkit.get("slug") or "")
    if isinstance(toolkit, str):
        return toolkit
    return str(item.get("toolkit_slug") or "")


class ComposioToolkitProvider(ToolkitAPIProvider[ComposioProviderSettings]):
    """aiohttp client for the Composio v3 API."""

    settings_class = ComposioProviderSettings

    def __init__(self, name: str = "composio", settings: Optional[ComposioProviderSettings] = None):
        super().__init__(name=name, settings=settings)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _initialize(self) -> None:
        if not self.settings.api_key:
            raise ValueError("Composio API key is not configured")
        self._session = aiohttp.ClientSession(
            headers={"x-api-key": self.settings.api_key, "Content-Type": "application/json"},
            timeout=aiohttp.ClientTimeout(total=self.settings.timeout),
        )

    async def _shutdown(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    def _url(self, path: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> Any:
        if self._session is None:
            raise self._api_error("Composio client not initialized", operation)

        try:
            async with self._session.request(method, self._url(path), params=params, json=json) as response:
                if response.status >= 400:
                    body = await response.text()
                    raise self._api_error(
                        f"HTTP {response.status}: {body[:300]}",
                        operation,
                        status_code=response.status,
                    )
                if response.status == 204:
                    return None
                return await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise self._api_error(f"Request to {path} failed: {e}", operation, cause=e) from e

    async def execute_tool(self, tool_slug: str, arguments: dict[str, Any], user_id: str) -> dict[str, Any]:
        payload = await self._request(
            "POST",
            f"tools/execute/{tool_slug}",
            operation="execute_tool",
            json={"user_id": user_id, "arguments": arguments},
        )
        if not isinstance(payload, dict):
            raise self._api_error(f"Unexpected payload from {tool_slug}", "execute_tool")
        return payload

    async def _execute_meta_tool(self, tool_slug: str, arguments: dict[str, Any], user_id: str, operation: str) -> dict[str, Any]:
        """Execute a meta tool and return its ``data`` section.

        Raises:
            ToolkitAPIError: If the request fails or the tool reports failure
        """
        payload = await self._request(
            "POST",
            f"tools/execute/{tool_slug}",
            operation=operation,
            json={"user_id": user_id, "arguments": arguments},
        )
        if not isinstance(payload, Mapping) or payload.get("successful") is not True:
            error = payload.get("error") if isinstance(payload, Mapping) else None
            raise self._api_error(f"{tool_slug} failed: {error or 'unknown error'}", operation)
        data = payload.get("data")
        return dict(data) if isinstance(data, Mapping) else {}

    async def search_tools(self, use_case: str, toolkit: str, user_id: str) -> ToolSearchResult:
        data = await self._execute_meta_tool(
            SEARCH_TOOLS,
            {"use_case": use_case, "toolkits": [toolkit.lower()]},
            user_id,
            operation="search_tools",
        )
        hits = [
            ToolSearchHit(
                tool=str(entry.get("tool_slug") or entry["tool"]),
                description=str(entry.get("description") or ""),
            )
            for entry in data.get("results") or []
            if isinstance(entry, Mapping) and (entry.get("tool_slug") or entry.get("tool"))
        ]
        reasoning = data.get("reasoning")
        result = ToolSearchResult(
            main_tool_slugs=[str(slug) for slug in data.get("main_tool_slugs") or [] if slug],
            hits=hits,
            reasoning=reasoning if isinstance(reasoning, str) else None,
        )
        logger.debug(f"Search for '{use_case}' in {toolkit}: {result.primary_tool_slugs}")
        return result

    async def get_tool_dependency_graph(self, tool_slug: str, user_id: str) -> DependencyGraph:
        data = await self._execute_meta_tool(
            GET_DEPENDENCY_GRAPH, {"tool_name": tool_slug}, user_id, operation="get_tool_dependency_graph"
        )
        parents = [
            DependencyTool(
                tool_name=str(parent["tool_name"]),
                description=str(parent.get("description") or ""),
                required=bool(parent.get("required", False)),
                reason=str(parent.get("reason") or ""),
            )
            for parent in data.get("parent_tools") or []
            if isinstance(parent, Mapping) and parent.get("tool_name")
        ]
        return DependencyGraph(tool_name=str(data.get("tool_name") or tool_slug), parent_tools=parents)

    async def get_tools(self, tool_slugs: list[str], user_id: str) -> dict[str, ToolDefinition]:
        if not tool_slugs:
            return {}
        payload = await self._request(
            "GET", "tools", operation="get_tools", params={"tool_slugs": ",".join(tool_slugs)}
        )
        items = payload.get("items", []) if isinstance(payload, Mapping) else []
        tools: dict[str, ToolDefinition] = {}
        for item in items:
            if not isinstance(item, Mapping) or not item.get("slug"):
                continue
            slug = str(item["slug"])
            parameters = item.get("input_parameters")
            tools[slug] = ToolDefinition(
                slug=slug,
                name=str(item.get("name") or slug),
                description=str(item.get("description") or ""),
                toolkit=_toolkit_slug(item),
                input_parameters=dict(parameters) if isinstance(parameters, Mapping) else {},
            )
        return tools

    async def list_connections(
        self,
        user_id: str,
        toolkit: Optional[str] = None,
        statuses: Optional[list[str]] = None,
    ) -> list[ConnectedAccount]:
        params = {"user_ids": user_id}
        if toolkit:
            params["toolkit_slugs"] = toolkit.lower()
        if statuses:
            params["statuses"] = ",".join(statuses)
        payload = await self._request("GET", "connected_accounts", operation="list_connections", params=params)
        items = payload.get("items", []) if isinstance(payload, Mapping) else []
        return [
            ConnectedAccount(
                id=str(item["id"]),
                toolkit_slug=_toolkit_slug(item),
                status=str(item.get("status") or ""),
                user_id=str(item["user_id"]) if item.get("user_id") else None,
            )
            for item in items
            if isinstance(item, Mapping) and item.get("id")
        ]

    async def delete_connection(self, connection_id: str) -> None:
        await self._request("DELETE", f"connected_accounts/{connection_id}", operation="delete_connection")

    async def initiate_connection(self, toolkit: str, user_id: str) -> ConnectionInitiation:
        data = await self._execute_meta_tool(
            INITIATE_CONNECTION, {"toolkit": toolkit.lower()}, user_id, operation="initiate_connection"
        )
        response = data.get("response_data")
        if not isinstance(response, Mapping):
            raise self._api_error(f"No connection details returned for {toolkit}", "initiate_connection")
        return ConnectionInitiation(
            toolkit=toolkit,
            connection_id=str(response["connection_id"]) if response.get("connection_id") else None,
            redirect_url=str(response["redirect_url"]) if response.get("redirect_url") else None,
            instruction=str(response.get("instruction") or ""),
            message=str(response.get("message") or ""),
            status=str(response.get("status") or ""),
        )

    async def retrieve_toolkits(self, category: str, user_id: str) -> list[str]:
        data = await self._execute_meta_tool(
            RETRIEVE_TOOLKITS, {"category": category}, user_id, operation="retrieve_toolkits"
        )
        return [str(app) for app in data.get("apps") or [] if app]

    async def create_plan(self, use_case: str, toolkit: str, user_id: str) -> Optional[WorkflowPlan]:
        data = await self._execute_meta_tool(
            CREATE_PLAN,
            {"use_case": use_case, "toolkits": [toolkit.lower()]},
            user_id,
            operation="create_plan",
        )
        instructions = data.get("workflow_instructions")
        plan = instructions.get("plan") if isinstance(instructions, Mapping) else None
        if not isinstance(plan, Mapping):
            return None
        steps = [
            WorkflowStep(
                step_id=str(step.get("step_id") or index + 1),
                name=str(step.get("name") or ""),
                intent=str(step.get("intent") or ""),
                tool=str(step.get("tool") or ""),
                dependencies=[str(dep) for dep in step.get("dependencies") or []],
                parallelizable=bool(step.get("parallelizable", False)),
            )
            for index, step in enumerate(plan.get("workflow_steps") or [])
            if isinstance(step, Mapping)
        ]
        critical = plan.get("critical_instructions")
        edge_cases = plan.get("edge_case_handling")
        return WorkflowPlan(
            workflow_steps=steps,
            critical_instructions=critical if isinstance(critical, str) else None,
            edge_case_handling=[str(e) for e in edge_cases] if isinstance(edge_cases, list) else [],
        )


__all__ = ["ComposioProviderSettings", "ComposioToolkitProvider"]
