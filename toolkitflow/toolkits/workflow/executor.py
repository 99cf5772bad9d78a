"""Sequential execution of prepared workflow groups.

One invocation moves through PREPARING (all groups prepared concurrently),
EXECUTING (groups run strictly in order, each seeing what earlier groups
produced) and DONE. A group that fails to prepare or execute is reported and
skipped; the invocation always reaches DONE.
"""

import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import Optional, Union

from toolkitflow.core.errors import (
    BaseError,
    ErrorManager,
    NarrationError,
    StepExecutionError,
    default_manager,
)
from toolkitflow.core.errors.errors import WORKFLOW_FLOW_NAME
from toolkitflow.providers.llm.base import LLMProvider
from toolkitflow.providers.llm.models import TextOnlyResponse, ToolCallResponse
from toolkitflow.providers.toolkits.models import DependencyGraph, WorkflowPlan
from toolkitflow.resources.registry import prompt_registry

from ..callbacks import ResponseCallback, send_error, send_success
from ..context import truncate_json, truncate_text
from ..history import ExecutionHistoryStore
from ..models import (
    GroupOutcome,
    GroupStatus,
    PreparedGroup,
    PreviousStepResult,
    ToolExecution,
    ToolkitGroup,
    ToolResultEntry,
    WorkflowInvocation,
    WorkflowResult,
    WorkflowState,
)
from ..service import ToolkitService
from .dependencies import DependencyResolver

logger = logging.getLogger(__name__)

NO_TEXT_RESPONSE = "Tools executed successfully but no formatted result was generated."

GroupLike = Union[ToolkitGroup, PreparedGroup]


def completed_message(toolkit: str) -> str:
    return f"Completed {toolkit}."


def format_previous_section(previous: Sequence[PreviousStepResult]) -> str:
    if not previous:
        return ""
    lines = ["Previous step results:"]
    for number, step in enumerate(previous, start=1):
        lines.append(f"Step {number} ({step.group_name}: {step.use_case}): {step.response_text}")
        for entry in step.tool_results:
            lines.append(f"  {entry.tool} result: {entry.result}")
    return "\n".join(lines) + "\n\n"


def format_history_section(toolkit: str, executions: Sequence[ToolExecution], max_bytes: int) -> str:
    if not executions:
        return ""
    lines = [f"Recent {toolkit} executions:"]
    for execution in executions:
        payload = [entry.model_dump() for entry in execution.results]
        text, _ = truncate_json(payload, max_bytes)
        lines.append(f"- {execution.use_case}: {text}")
    return "\n".join(lines) + "\n\n"


def format_dependency_section(graphs: Sequence[DependencyGraph]) -> str:
    lines = []
    for graph in graphs:
        for parent in graph.parent_tools:
            marker = "required" if parent.required else "optional"
            reason = f": {parent.reason}" if parent.reason else ""
            lines.append(f"- {graph.tool_name} needs {parent.tool_name} ({marker}){reason}")
    if not lines:
        return ""
    return "Tool dependencies (run these first when inputs are missing):\n" + "\n".join(lines) + "\n\n"


def format_plan_section(plan: Optional[WorkflowPlan]) -> str:
    if plan is None or not plan.workflow_steps:
        return ""
    lines = ["Execution plan:"]
    for step in plan.workflow_steps:
        after = f" (after {', '.join(step.dependencies)})" if step.dependencies else ""
        lines.append(f"- {step.step_id}: {step.tool} {step.intent}{after}".rstrip())
    if plan.critical_instructions:
        lines.append(f"Critical: {plan.critical_instructions}")
    for edge_case in plan.edge_case_handling:
        lines.append(f"Edge case: {edge_case}")
    return "\n".join(lines) + "\n\n"


class SequentialExecutor:
    """Runs workflow groups one after another against the tool-calling model."""

    def __init__(
        self,
        llm: LLMProvider,
        service: ToolkitService,
        history: ExecutionHistoryStore,
        resolver: DependencyResolver,
        error_manager: ErrorManager = default_manager,
        execution_temperature: Optional[float] = 0.5,
        narration_temperature: Optional[float] = 0.7,
        max_intermediate_chars: int = 500,
        max_context_bytes: int = 1000,
        recent_results_per_toolkit: int = 3,
    ):
        self.llm = llm
        self.service = service
        self.history = history
        self.resolver = resolver
        self.error_manager = error_manager
        self.execution_temperature = execution_temperature
        self.narration_temperature = narration_temperature
        self.max_intermediate_chars = max_intermediate_chars
        self.max_context_bytes = max_context_bytes
        self.recent_results_per_toolkit = recent_results_per_toolkit

    async def run(
        self,
        groups: Sequence[ToolkitGroup],
        invocation: WorkflowInvocation,
        callback: Optional[ResponseCallback] = None,
    ) -> WorkflowResult:
        """Prepare every group concurrently, then execute them in order."""
        logger.info(f"Workflow state: {WorkflowState.PREPARING.value} ({len(groups)} groups)")
        prepared = await asyncio.gather(
            *(
                self.resolver.prepare_group(group, invocation.user_id, invocation.user_request)
                for group in groups
            ),
            return_exceptions=True,
        )
        return await self._execute_all(groups, list(prepared), invocation, callback)

    async def execute_prepared(
        self,
        prepared: Sequence[PreparedGroup],
        invocation: WorkflowInvocation,
        callback: Optional[ResponseCallback] = None,
    ) -> WorkflowResult:
        """Execute already prepared groups in order."""
        return await self._execute_all(prepared, list(prepared), invocation, callback)

    async def _execute_all(
        self,
        groups: Sequence[GroupLike],
        prepared: list[Union[PreparedGroup, BaseException]],
        invocation: WorkflowInvocation,
        callback: Optional[ResponseCallback],
    ) -> WorkflowResult:
        total = len(groups)
        previous: list[PreviousStepResult] = []
        outcomes: list[GroupOutcome] = []

        for index, (group, item) in enumerate(zip(groups, prepared)):
            logger.info(f"Workflow state: {WorkflowState.EXECUTING.value}({index}) {group.toolkit_name}")
            is_last = index == total - 1

            if isinstance(item, BaseException):
                outcome = await self._report_failure(index, group, item, is_last, callback)
                outcomes.append(outcome)
                continue

            try:
                response = await self._execute_group(index, total, item, invocation, previous)
                step_result = self._record_results(item, invocation, response)
            except Exception as e:
                outcome = await self._report_failure(index, group, e, is_last, callback)
                outcomes.append(outcome)
                continue
            previous.append(step_result)

            text = response.text.strip() or (NO_TEXT_RESPONSE if response.tool_results else completed_message(item.toolkit_name))
            emitted = text
            next_group = _next_prepared(groups, prepared, index)
            if next_group is not None:
                narration = await self._narrate(index, total, item, step_result, next_group, invocation)
                emitted = f"{text}\n\n{narration}"
            await self._deliver(index, send_success(callback, emitted))

            outcomes.append(
                GroupOutcome(
                    index=index,
                    toolkit_name=item.toolkit_name,
                    use_cases=list(item.use_cases),
                    status=GroupStatus.SUCCEEDED,
                    response_text=text,
                )
            )

        result = WorkflowResult(state=WorkflowState.DONE, outcomes=outcomes)
        logger.info(
            f"Workflow state: {WorkflowState.DONE.value} "
            f"({result.succeeded} succeeded, {result.failed} failed)"
        )
        return result

    async def _execute_group(
        self,
        index: int,
        total: int,
        group: PreparedGroup,
        invocation: WorkflowInvocation,
        previous: Sequence[PreviousStepResult],
    ) -> Union[TextOnlyResponse, ToolCallResponse]:
        toolkit = group.toolkit_name
        executions = self.history.get_toolkit_executions(invocation.entity_id, toolkit)
        executions = executions[-self.recent_results_per_toolkit:]

        variables = {
            "context_section": f"{invocation.conversation_context}\n\n" if invocation.conversation_context else "",
            "user_request": invocation.user_request,
            "previous_section": format_previous_section(previous),
            "history_section": format_history_section(toolkit, executions, self.max_context_bytes),
            "dependency_section": format_dependency_section(group.dependency_graphs),
            "plan_section": format_plan_section(group.workflow_plan),
            "step_number": index + 1,
            "total_steps": total,
            "toolkit": toolkit,
            "use_cases": group.combined_use_case,
        }

        async with self.error_manager.error_boundary(
            flow_name=WORKFLOW_FLOW_NAME,
            component=StepExecutionError.component,
            operation=StepExecutionError.operation,
        ):
            logger.debug(f"Executing {toolkit} with {len(group.tools)} tools")
            try:
                return await self.llm.generate_with_tools(
                    prompt_registry.get("group-execution"),
                    group.tools,
                    self.service.tool_executor(invocation.user_id),
                    prompt_variables=variables,
                    tool_choice="auto",
                    temperature=self.execution_temperature,
                )
            except Exception as e:
                raise StepExecutionError(toolkit, index, cause=e) from e

    def _record_results(
        self,
        group: PreparedGroup,
        invocation: WorkflowInvocation,
        response: Union[TextOnlyResponse, ToolCallResponse],
    ) -> PreviousStepResult:
        entries = [ToolResultEntry.from_call_result(result) for result in response.tool_results]
        successful = [entry for entry in entries if entry.successful]
        if successful:
            self.history.store_execution(
                invocation.entity_id, group.toolkit_name, group.combined_use_case, successful
            )
            logger.info(f"Stored {len(successful)} successful {group.toolkit_name} result(s)")
        if len(successful) != len(entries):
            logger.warning(f"{len(entries) - len(successful)} {group.toolkit_name} result(s) were not successful")

        carried = [
            ToolResultEntry(tool=entry.tool, result=truncate_json(entry.result, self.max_context_bytes)[0])
            for entry in entries
        ]
        return PreviousStepResult(
            group_name=group.toolkit_name,
            use_case=group.combined_use_case,
            response_text=truncate_text(response.text.strip(), self.max_intermediate_chars),
            tool_results=carried,
        )

    async def _narrate(
        self,
        index: int,
        total: int,
        group: PreparedGroup,
        step_result: PreviousStepResult,
        next_group: GroupLike,
        invocation: WorkflowInvocation,
    ) -> str:
        try:
            text = await self.llm.generate(
                prompt_registry.get("step-transition"),
                prompt_variables={
                    "user_request": invocation.user_request,
                    "step_number": index + 1,
                    "total_steps": total,
                    "completed_toolkit": group.toolkit_name,
                    "completed_summary": step_result.response_text or completed_message(group.toolkit_name),
                    "next_toolkit": next_group.toolkit_name,
                    "next_use_cases": "; ".join(next_group.use_cases),
                },
                temperature=self.narration_temperature,
            )
        except Exception as e:
            logger.warning(NarrationError(f"Transition narration failed: {e}", cause=e).message)
            return completed_message(group.toolkit_name)
        return text.strip() or completed_message(group.toolkit_name)

    async def _report_failure(
        self,
        index: int,
        group: GroupLike,
        error: BaseException,
        is_last: bool,
        callback: Optional[ResponseCallback],
    ) -> GroupOutcome:
        message = error.message if isinstance(error, BaseError) else str(error)
        logger.error(f"Step {index + 1} ({group.toolkit_name}) failed: {message}")
        text = f"I couldn't complete the {group.toolkit_name} step ({'; '.join(group.use_cases)})."
        if not is_last:
            text += " Continuing with the remaining steps."
        await self._deliver(index, send_error(callback, text, error))
        return GroupOutcome(
            index=index,
            toolkit_name=group.toolkit_name,
            use_cases=list(group.use_cases),
            status=GroupStatus.FAILED,
            error=message,
        )

    async def _deliver(self, index: int, emission: Awaitable[None]) -> None:
        # A broken callback must not stop the remaining groups
        try:
            await emission
        except Exception as e:
            logger.warning(f"Response callback failed for step {index + 1}: {e}")


def _next_prepared(
    groups: Sequence[GroupLike],
    prepared: Sequence[Union[PreparedGroup, BaseException]],
    index: int,
) -> Optional[GroupLike]:
    """The next group that prepared successfully, if any."""
    for group, item in zip(groups[index + 1:], prepared[index + 1:]):
        if not isinstance(item, BaseException):
            return group
    return None
