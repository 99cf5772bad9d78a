"""Plugin composition root.

``ToolkitPlugin`` builds every long-lived object once: settings, the remote
toolkit provider, the service, the execution history and name resolution
stores, the workflow components and the agent actions. The stores live as
long as the plugin; nothing is a module-level singleton.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Optional

from toolkitflow.core.settings import ToolkitFlowSettings, load_settings
from toolkitflow.providers.llm.base import LLMProvider
from toolkitflow.providers.toolkits.base import ToolkitAPIProvider
from toolkitflow.providers.toolkits.composio import ComposioProviderSettings, ComposioToolkitProvider
from toolkitflow.toolkits.actions import (
    BrowseToolkitsAction,
    ConnectToolkitAction,
    DisconnectToolkitAction,
    ExecuteToolkitToolsAction,
    ListConnectedToolkitsAction,
    ToolkitAction,
    ToolkitWorkflowAction,
)
from toolkitflow.toolkits.history import ExecutionHistoryStore
from toolkitflow.toolkits.models import ToolExecution
from toolkitflow.toolkits.resolver import ToolkitNameResolver
from toolkitflow.toolkits.service import Sleep, ToolkitService
from toolkitflow.toolkits.workflow import (
    DependencyResolver,
    IterativeDependencyResolver,
    SequentialExecutor,
    WorkflowExtractor,
    WorkflowOrchestrator,
)

logger = logging.getLogger(__name__)


class ToolkitPlugin:
    """Toolkit integration plugin for a conversational agent."""

    name = "toolkitflow"
    description = "Connect, browse and use third-party toolkits, including multi-step workflows"

    def __init__(
        self,
        llm: LLMProvider,
        settings: Optional[ToolkitFlowSettings] = None,
        provider: Optional[ToolkitAPIProvider] = None,
        sleep: Sleep = asyncio.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.settings = settings if settings is not None else load_settings()
        self.llm = llm
        self._owns_provider = provider is None
        self.provider = provider if provider is not None else self._build_provider()

        settings = self.settings
        self.service = ToolkitService(self.provider, settings, sleep=sleep)
        self.history = ExecutionHistoryStore(max_per_key=settings.history_limit)
        self.resolver = ToolkitNameResolver(clock=clock)

        self.dependency_resolver = DependencyResolver(self.service)
        self.iterative_resolver = IterativeDependencyResolver(
            self.service,
            llm,
            max_iterations=settings.max_dependency_iterations,
            temperature=settings.connection_extraction_temperature,
        )
        self.extractor = WorkflowExtractor(llm, temperature=settings.workflow_extraction_temperature)
        self.executor = SequentialExecutor(
            llm,
            self.service,
            self.history,
            self.dependency_resolver,
            execution_temperature=settings.tool_execution_temperature,
            narration_temperature=settings.response_temperature,
            max_intermediate_chars=settings.max_intermediate_chars,
            max_context_bytes=settings.max_context_bytes,
            recent_results_per_toolkit=settings.recent_results_per_toolkit,
        )
        self.orchestrator = WorkflowOrchestrator(self.service, self.extractor, self.executor)

        self.actions: list[ToolkitAction] = [
            ToolkitWorkflowAction(self.service, llm, settings, self.orchestrator),
            ExecuteToolkitToolsAction(
                self.service, llm, settings, self.history, self.dependency_resolver, self.iterative_resolver
            ),
            ConnectToolkitAction(self.service, llm, settings, self.resolver),
            DisconnectToolkitAction(self.service, llm, settings),
            ListConnectedToolkitsAction(self.service, llm, settings),
            BrowseToolkitsAction(self.service, llm, settings),
        ]

    def _build_provider(self) -> ComposioToolkitProvider:
        return ComposioToolkitProvider(
            settings=ComposioProviderSettings(
                api_key=self.settings.api_key,
                base_url=self.settings.base_url,
                timeout=self.settings.request_timeout_seconds,
            )
        )

    @property
    def initialized(self) -> bool:
        return self.service.initialized

    async def initialize(self) -> None:
        """Validate settings and initialize the providers.

        Raises:
            ConfigurationError: If the API key is missing
            ProviderError: If a provider fails to initialize
        """
        logging.getLogger("toolkitflow").setLevel(self.settings.log_level)
        if self._owns_provider:
            self.settings.require_api_key()
        await self.llm.initialize()
        await self.provider.initialize()
        logger.info(
            f"Toolkit plugin initialized (multi-user mode: {self.settings.multi_user_mode}, "
            f"user: {self.settings.user_id}, allowed toolkits: {len(self.settings.allowed_toolkits) or 'all'})"
        )

    async def shutdown(self) -> None:
        removed = self.resolver.clean_old_mappings(timedelta(days=self.settings.mapping_max_age_days))
        logger.debug(f"Removed {removed} stale toolkit mappings on shutdown")
        await self.provider.shutdown()
        await self.llm.shutdown()
        logger.info("Toolkit plugin shut down")

    def get_action(self, name: str) -> Optional[ToolkitAction]:
        """Find an action by name or simile."""
        key = name.upper()
        for action in self.actions:
            if action.name == key or key in action.similes:
                return action
        return None

    def recent_results(self, entity_id: str) -> dict[str, list[ToolExecution]]:
        """Recent executions per toolkit for an entity, for use as agent context."""
        return self.history.get_recent_executions(
            self.service.effective_user_id(entity_id),
            limit=self.settings.recent_results_per_toolkit,
        )
