"""Tool discovery and dependency resolution for workflow groups.

``DependencyResolver`` prepares one group: it searches tools for every use
case, expands the primary tools with their dependency-graph parents and
fetches all definitions in one batch. ``IterativeDependencyResolver`` is the
model-driven variant used for single use cases: it keeps asking whether the
held tools still lack inputs and fetches tools for the missing pieces until
nothing new turns up.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Optional

from toolkitflow.core.errors import NoToolsFoundError, ProviderError
from toolkitflow.providers.llm.base import LLMProvider
from toolkitflow.providers.toolkits.models import DependencyGraph, ToolDefinition, ToolSearchResult
from toolkitflow.resources.registry import prompt_registry

from ..models import (
    FixpointStopReason,
    IterativeResolution,
    PreparedGroup,
    ToolkitGroup,
)
from ..prompts import DependencyAnalysis
from ..service import ToolkitService
from .extractor import format_context_section

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 5


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(item for item in items if item))


def describe_tools(tools: dict[str, ToolDefinition]) -> str:
    """Render tool definitions with their parameters for an analysis prompt."""
    lines = []
    for slug, tool in tools.items():
        properties = tool.input_parameters.get("properties", {})
        required = set(tool.input_parameters.get("required", []))
        lines.append(f"- {slug}: {tool.description}")
        for param, schema in properties.items():
            marker = "required" if param in required else "optional"
            description = schema.get("description", "") if isinstance(schema, dict) else ""
            lines.append(f"    {param} ({marker}): {description}")
    return "\n".join(lines) if lines else "(none)"


class DependencyResolver:
    """Builds a PreparedGroup for a ToolkitGroup."""

    def __init__(self, service: ToolkitService, create_plans: bool = True):
        self.service = service
        self.create_plans = create_plans

    async def prepare_group(
        self,
        group: ToolkitGroup,
        user_id: Optional[str] = None,
        user_request: Optional[str] = None,
    ) -> PreparedGroup:
        """Resolve the tools a group needs.

        Args:
            group: The group to prepare
            user_id: Caller id, resolved through the service's user policy
            user_request: Original request, used for logging only

        Returns:
            The prepared group

        Raises:
            NoToolsFoundError: If a use case matches no tools, or no tool
                definitions could be fetched
        """
        toolkit = group.toolkit_name
        logger.info(f"Preparing {toolkit} group with {len(group.use_cases)} use case(s)")
        if user_request:
            logger.debug(f"Preparing for request: {user_request[:100]}")

        searches = await asyncio.gather(
            *(self._search(use_case, toolkit, user_id) for use_case in group.use_cases),
            return_exceptions=True,
        )
        for result in searches:
            if isinstance(result, BaseException):
                raise result

        primary_slugs = _unique(slug for search in searches for slug in search.primary_tool_slugs)
        logger.info(f"Main tools for {toolkit}: {', '.join(primary_slugs)}")

        graph_results = await asyncio.gather(
            *(self.service.get_tool_dependency_graph(slug, user_id) for slug in primary_slugs)
        )
        graphs: list[DependencyGraph] = [graph for graph in graph_results if graph is not None]
        parent_slugs = [name for graph in graphs for name in graph.parent_tool_names]
        tool_slugs = _unique([*primary_slugs, *parent_slugs])
        logger.debug(f"{toolkit}: {len(primary_slugs)} primary and {len(tool_slugs)} total tools")

        if self.create_plans:
            tools, plan = await asyncio.gather(
                self._fetch_tools(tool_slugs, toolkit, user_id),
                self.service.create_plan(group.combined_use_case, toolkit, user_id),
            )
        else:
            tools, plan = await self._fetch_tools(tool_slugs, toolkit, user_id), None

        reasoning = "\n".join(search.reasoning for search in searches if search.reasoning) or None
        return PreparedGroup(
            toolkit_name=toolkit,
            use_cases=list(group.use_cases),
            tools=tools,
            dependency_graphs=graphs,
            workflow_plan=plan,
            search_reasoning=reasoning,
        )

    async def _search(self, use_case: str, toolkit: str, user_id: Optional[str]) -> ToolSearchResult:
        try:
            result = await self.service.search_tools(use_case, toolkit, user_id)
        except Exception as e:
            logger.error(f"Tool search failed for {toolkit} '{use_case}': {e}")
            raise NoToolsFoundError(toolkit, use_case, cause=e) from e
        if not result.primary_tool_slugs:
            raise NoToolsFoundError(toolkit, use_case)
        return result

    async def _fetch_tools(
        self, tool_slugs: list[str], toolkit: str, user_id: Optional[str]
    ) -> dict[str, ToolDefinition]:
        try:
            tools = await self.service.get_tools(tool_slugs, user_id)
        except Exception as e:
            logger.error(f"Failed to fetch tool definitions for {toolkit}: {e}")
            raise NoToolsFoundError(toolkit, cause=e) from e
        if not tools:
            raise NoToolsFoundError(toolkit)
        return tools


class IterativeDependencyResolver:
    """Fetches tools for a use case until the model reports nothing missing.

    Each round asks the dependency-analysis prompt whether the held tools
    need entities no held tool provides. The loop stops when the answer is
    no, when a round adds no new tool, or after ``max_iterations`` rounds.
    """

    prompt_name = "dependency-analysis"

    def __init__(
        self,
        service: ToolkitService,
        llm: LLMProvider,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        temperature: Optional[float] = 0.3,
    ):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.service = service
        self.llm = llm
        self.max_iterations = max_iterations
        self.temperature = temperature

    async def resolve(
        self,
        use_case: str,
        toolkit: str,
        user_id: Optional[str] = None,
        conversation_context: str = "",
        user_request: Optional[str] = None,
    ) -> IterativeResolution:
        """Resolve tools for ``use_case`` and everything it depends on.

        Raises:
            NoToolsFoundError: If the initial use case yields no tools
        """
        tools = await self._tools_for(use_case, toolkit, user_id)
        if not tools:
            raise NoToolsFoundError(toolkit, use_case)

        resolved = [use_case]
        rounds = 0
        while rounds < self.max_iterations:
            follow_up = await self._analyze(tools, user_request or use_case, conversation_context)
            if follow_up is None:
                return IterativeResolution(
                    tools=tools,
                    rounds=rounds,
                    stop_reason=FixpointStopReason.NO_DEPENDENCIES,
                    resolved_use_cases=resolved,
                )

            rounds += 1
            logger.info(f"Dependency round {rounds}/{self.max_iterations} for {toolkit}: {follow_up}")
            found = await self._tools_for(follow_up, toolkit, user_id)
            added = {slug: tool for slug, tool in found.items() if slug not in tools}
            resolved.append(follow_up)
            if not added:
                logger.info(f"Dependency resolution for {toolkit} stagnated after {rounds} round(s)")
                return IterativeResolution(
                    tools=tools,
                    rounds=rounds,
                    stop_reason=FixpointStopReason.STAGNATED,
                    resolved_use_cases=resolved,
                )
            tools = {**tools, **added}

        logger.warning(f"Dependency resolution for {toolkit} hit the cap of {self.max_iterations} rounds")
        return IterativeResolution(
            tools=tools,
            rounds=rounds,
            stop_reason=FixpointStopReason.MAX_ITERATIONS,
            resolved_use_cases=resolved,
        )

    async def _tools_for(self, use_case: str, toolkit: str, user_id: Optional[str]) -> dict[str, ToolDefinition]:
        try:
            search = await self.service.search_tools(use_case, toolkit, user_id)
            slugs = search.primary_tool_slugs
            if not slugs:
                return {}
            return await self.service.get_tools(slugs, user_id)
        except Exception as e:
            logger.warning(f"Tool lookup failed for {toolkit} '{use_case}': {e}")
            return {}

    async def _analyze(
        self, tools: dict[str, ToolDefinition], user_request: str, conversation_context: str
    ) -> Optional[str]:
        """Return the follow-up use case, or None when nothing is missing."""
        try:
            analysis = await self.llm.generate_structured(
                prompt_registry.get(self.prompt_name),
                DependencyAnalysis,
                prompt_variables={
                    "user_request": user_request,
                    "context_section": format_context_section(conversation_context),
                    "retrieved_tools": describe_tools(tools),
                },
                temperature=self.temperature,
            )
        except ProviderError as e:
            logger.warning(f"Dependency analysis failed, using held tools: {e.message}")
            return None

        follow_up = analysis.use_case.strip()
        if not analysis.has_dependencies or not follow_up:
            return None
        return follow_up
