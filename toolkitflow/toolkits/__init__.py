"""Toolkit integration: service, stores, prompts, workflow and actions."""

from . import prompts  # noqa: F401  registers the toolkit prompts
from .history import ExecutionHistoryStore
from .models import (
    ExtractedStep,
    GroupOutcome,
    GroupStatus,
    PreparedGroup,
    PreviousStepResult,
    ToolExecution,
    ToolkitGroup,
    ToolkitMapping,
    WorkflowInvocation,
    WorkflowResult,
    WorkflowState,
)
from .resolver import ToolkitNameResolver
from .service import ToolkitService

__all__ = [
    "ExecutionHistoryStore",
    "ExtractedStep",
    "GroupOutcome",
    "GroupStatus",
    "PreparedGroup",
    "PreviousStepResult",
    "ToolExecution",
    "ToolkitGroup",
    "ToolkitMapping",
    "ToolkitNameResolver",
    "ToolkitService",
    "WorkflowInvocation",
    "WorkflowResult",
    "WorkflowState",
]
