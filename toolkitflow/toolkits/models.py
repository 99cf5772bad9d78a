"""Models for toolkit workflows: steps, groups, history records and mappings."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from toolkitflow.core.models import MutableStrictBaseModel, StrictBaseModel
from toolkitflow.providers.llm.models import ToolCallResult
from toolkitflow.providers.toolkits.models import DependencyGraph, ToolDefinition, WorkflowPlan


class ExtractedStep(StrictBaseModel):
    """One (toolkit, use case) pair extracted from a user request."""

    toolkit_name: str = Field(..., min_length=1)
    use_case: str = Field(..., min_length=1)


class ToolkitGroup(StrictBaseModel):
    """Contiguous run of extracted steps that share a toolkit."""

    toolkit_name: str
    use_cases: list[str] = Field(default_factory=list)

    @property
    def combined_use_case(self) -> str:
        return "; ".join(self.use_cases)


class PreparedGroup(ToolkitGroup):
    """A group with its tools resolved and ready to execute."""

    tools: dict[str, ToolDefinition] = Field(default_factory=dict)
    dependency_graphs: list[DependencyGraph] = Field(default_factory=list)
    workflow_plan: Optional[WorkflowPlan] = None
    search_reasoning: Optional[str] = None


class ToolResultEntry(StrictBaseModel):
    """A tool name paired with the payload it returned."""

    tool: str
    result: Any = None

    @property
    def successful(self) -> bool:
        return isinstance(self.result, dict) and self.result.get("successful") is True

    @classmethod
    def from_call_result(cls, call_result: ToolCallResult) -> "ToolResultEntry":
        return cls(tool=call_result.tool_name, result=call_result.output)


class ToolExecution(StrictBaseModel):
    """A stored record of one execution against a toolkit."""

    timestamp: datetime = Field(default_factory=datetime.now)
    use_case: str
    entity_id: str
    toolkit: str
    results: list[ToolResultEntry] = Field(default_factory=list)


class MappingConfidence(str, Enum):
    """Confidence in a resolved toolkit name."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _CONFIDENCE_RANK[self]


_CONFIDENCE_RANK = {
    MappingConfidence.LOW: 0,
    MappingConfidence.MEDIUM: 1,
    MappingConfidence.HIGH: 2,
}


class ToolkitMapping(MutableStrictBaseModel):
    """Cached resolution from a user term to a canonical toolkit name."""

    search_term: str
    resolved_toolkit: str
    confidence: MappingConfidence = MappingConfidence.MEDIUM
    last_used: datetime = Field(default_factory=datetime.now)
    usage_count: int = 1
    category: Optional[str] = None
    variations: list[str] = Field(default_factory=list)


class PreviousStepResult(StrictBaseModel):
    """What an earlier group produced, carried forward to later groups."""

    group_name: str
    use_case: str
    response_text: str
    tool_results: list[ToolResultEntry] = Field(default_factory=list)


class WorkflowState(str, Enum):
    """Lifecycle of one workflow invocation."""

    PREPARING = "preparing"
    EXECUTING = "executing"
    DONE = "done"


class GroupStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class GroupOutcome(StrictBaseModel):
    """Result of executing (or failing to prepare) one group."""

    index: int
    toolkit_name: str
    use_cases: list[str]
    status: GroupStatus
    response_text: str = ""
    error: Optional[str] = None


class WorkflowResult(StrictBaseModel):
    """Final state of a workflow invocation."""

    state: WorkflowState
    outcomes: list[GroupOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is GroupStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status is GroupStatus.FAILED)


class FixpointStopReason(str, Enum):
    """Why iterative dependency resolution stopped."""

    NO_DEPENDENCIES = "no_dependencies"
    STAGNATED = "stagnated"
    MAX_ITERATIONS = "max_iterations"


class IterativeResolution(StrictBaseModel):
    """Tools gathered by iterative dependency resolution."""

    tools: dict[str, ToolDefinition] = Field(default_factory=dict)
    rounds: int = 0
    stop_reason: FixpointStopReason
    resolved_use_cases: list[str] = Field(default_factory=list)


class WorkflowInvocation(StrictBaseModel):
    """Per-request inputs shared by every group of a workflow."""

    user_request: str
    entity_id: str = Field(..., description="Key for execution history")
    user_id: Optional[str] = Field(default=None, description="Caller id for toolkit API calls")
    conversation_context: str = ""
