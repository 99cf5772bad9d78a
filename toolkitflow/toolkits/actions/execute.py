"""EXECUTE_TOOLKIT_TOOLS: run one use case against one connected toolkit."""

import logging
from typing import Optional

from toolkitflow.core.errors import NoToolsFoundError
from toolkitflow.core.settings import ToolkitFlowSettings
from toolkitflow.providers.llm.base import LLMProvider
from toolkitflow.providers.toolkits.models import DependencyGraph, ToolDefinition
from toolkitflow.resources.registry import prompt_registry

from ..callbacks import ResponseCallback, send_error, send_success
from ..history import ExecutionHistoryStore
from ..models import ToolkitGroup, ToolResultEntry
from ..prompts import ToolkitUseCaseExtraction
from ..service import ToolkitService
from ..workflow.dependencies import DependencyResolver, IterativeDependencyResolver
from ..workflow.executor import format_dependency_section, format_history_section
from ..workflow.extractor import format_context_section
from .base import ActionRequest, ToolkitAction

logger = logging.getLogger(__name__)

EMPTY_RESPONSE = (
    "I executed the requested tools but couldn't generate a proper response. "
    "The tools may not have completed successfully."
)
REFERENCE_HINT = "If the request refers to earlier results, reuse the IDs and links from the recent executions.\n"


class ExecuteToolkitToolsAction(ToolkitAction):
    name = "EXECUTE_TOOLKIT_TOOLS"
    similes = ("USE_TOOLKIT", "CALL_TOOL", "INVOKE_TOOL", "RUN_TOOLKIT_ACTION")
    description = "Use a connected toolkit's tools to perform a single task"

    def __init__(
        self,
        service: ToolkitService,
        llm: LLMProvider,
        settings: ToolkitFlowSettings,
        history: ExecutionHistoryStore,
        dependency_resolver: DependencyResolver,
        iterative_resolver: IterativeDependencyResolver,
    ):
        super().__init__(service, llm, settings)
        self.history = history
        self.dependency_resolver = dependency_resolver
        self.iterative_resolver = iterative_resolver

    async def handle(self, request: ActionRequest, callback: Optional[ResponseCallback] = None) -> None:
        user_id = self.user_id(request)
        try:
            connected = await self.service.get_connected_apps(user_id)
            if not connected:
                await send_error(callback, "No apps are connected. Please connect apps first.")
                return

            conversation_context = self.conversation_context(request)
            extraction = await self.llm.generate_structured(
                prompt_registry.get("toolkit-use-case-extraction"),
                ToolkitUseCaseExtraction,
                prompt_variables={
                    "user_request": request.text,
                    "context_section": format_context_section(conversation_context),
                    "connected_apps": ", ".join(connected),
                },
                temperature=self.settings.toolkit_extraction_temperature,
            )
            toolkit_name = extraction.toolkit.strip()
            use_case = extraction.use_case.strip()
            if not toolkit_name or not use_case:
                logger.info(f"Incomplete toolkit extraction: {extraction.model_dump()}")
                await send_error(callback, "I couldn't tell which app and action to use. Could you rephrase?")
                return

            toolkit = next((app for app in connected if app.lower() == toolkit_name.lower()), None)
            if toolkit is None:
                logger.info(f"Model suggested {toolkit_name}, connected apps: {', '.join(connected)}")
                await send_error(callback, f"The {toolkit_name} app is not connected. Please connect it first.")
                return

            try:
                tools, graphs = await self._resolve_tools(toolkit, use_case, user_id, request.text, conversation_context)
            except NoToolsFoundError as e:
                await send_error(
                    callback,
                    f'I couldn\'t find any tools to help with: "{use_case}". Please try rephrasing your request.',
                    e,
                )
                return

            executions = self.history.get_toolkit_executions(user_id, toolkit)
            executions = executions[-self.settings.recent_results_per_toolkit:]
            logger.info(f"Found {len(executions)} previous executions for {toolkit}")

            response = await self.llm.generate_with_tools(
                prompt_registry.get("tool-execution"),
                tools,
                self.service.tool_executor(user_id),
                prompt_variables={
                    "context_section": f"{conversation_context}\n\n" if conversation_context else "",
                    "executions_section": format_history_section(toolkit, executions, self.settings.max_context_bytes),
                    "dependency_section": format_dependency_section(graphs),
                    "use_case": use_case,
                    "user_request": request.text,
                    "reference_hint": REFERENCE_HINT if executions else "",
                },
                tool_choice="auto",
                temperature=self.settings.tool_execution_temperature,
            )

            successful = [
                entry
                for entry in (ToolResultEntry.from_call_result(result) for result in response.tool_results)
                if entry.successful
            ]
            if successful:
                self.history.store_execution(user_id, toolkit, use_case, successful)
                logger.info(f"Stored {len(successful)} successful tool results for {toolkit}")

            text = response.text.strip()
            if not text:
                await send_error(callback, EMPTY_RESPONSE)
            else:
                await send_success(callback, text)
        except Exception as e:
            logger.error(f"Error in {self.name}: {e}")
            await send_error(callback, "Sorry, I encountered an error while trying to use the available tools.", e)

    async def _resolve_tools(
        self,
        toolkit: str,
        use_case: str,
        user_id: str,
        user_request: str,
        conversation_context: str,
    ) -> tuple[dict[str, ToolDefinition], list[DependencyGraph]]:
        if self.settings.dependency_resolution_mode == "iterative":
            resolution = await self.iterative_resolver.resolve(
                use_case, toolkit, user_id, conversation_context, user_request
            )
            logger.info(
                f"Iterative resolution for {toolkit}: {len(resolution.tools)} tools in "
                f"{resolution.rounds} round(s), stopped: {resolution.stop_reason.value}"
            )
            return resolution.tools, []

        prepared = await self.dependency_resolver.prepare_group(
            ToolkitGroup(toolkit_name=toolkit, use_cases=[use_case]), user_id, user_request
        )
        return prepared.tools, prepared.dependency_graphs
