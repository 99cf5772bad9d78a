"""Models for data exchanged with the remote toolkit API."""

from typing import Any, Optional

from pydantic import Field

from toolkitflow.core.models import StrictBaseModel

ACTIVE_STATUS = "ACTIVE"


class ToolDefinition(StrictBaseModel):
    """An executable tool as returned by the tool catalogue."""

    slug: str = Field(..., description="Unique tool id, e.g. LINEAR_LIST_ISSUES")
    name: str = Field(default="", description="Human readable name")
    description: str = Field(default="", description="What the tool does")
    toolkit: str = Field(default="", description="Toolkit slug the tool belongs to")
    input_parameters: dict[str, Any] = Field(default_factory=dict, description="JSON schema of the arguments")


class ToolSearchHit(StrictBaseModel):
    """One ranked tool from a tool search."""

    tool: str = Field(..., description="Tool slug")
    description: str = Field(default="")


class ToolSearchResult(StrictBaseModel):
    """Result of searching tools for a use case inside one toolkit."""

    main_tool_slugs: list[str] = Field(default_factory=list, description="Tools the search considers primary")
    hits: list[ToolSearchHit] = Field(default_factory=list, description="Ranked hits, best first")
    reasoning: Optional[str] = Field(default=None, description="Search reasoning, if provided")

    @property
    def primary_tool_slugs(self) -> list[str]:
        """Declared primary tools, else the top-ranked hit."""
        if self.main_tool_slugs:
            return list(self.main_tool_slugs)
        if self.hits:
            return [self.hits[0].tool]
        return []


class DependencyTool(StrictBaseModel):
    """A parent tool another tool depends on."""

    tool_name: str
    description: str = ""
    required: bool = False
    reason: str = ""


class DependencyGraph(StrictBaseModel):
    """Parent tools that must or may run before a tool."""

    tool_name: str
    parent_tools: list[DependencyTool] = Field(default_factory=list)

    @property
    def parent_tool_names(self) -> list[str]:
        return [parent.tool_name for parent in self.parent_tools]


class ConnectedAccount(StrictBaseModel):
    """A user's connection to a toolkit."""

    id: str
    toolkit_slug: str
    status: str = Field(default=ACTIVE_STATUS, description="ACTIVE, INITIATED, FAILED, EXPIRED...")
    user_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status.upper() == ACTIVE_STATUS


class ConnectionInitiation(StrictBaseModel):
    """Details returned when a new connection is initiated."""

    toolkit: str
    connection_id: Optional[str] = None
    redirect_url: Optional[str] = None
    instruction: str = ""
    message: str = ""
    status: str = ""


class WorkflowStep(StrictBaseModel):
    """One step of a remotely created workflow plan."""

    step_id: str
    name: str = ""
    intent: str = ""
    tool: str = ""
    dependencies: list[str] = Field(default_factory=list)
    parallelizable: bool = False


class WorkflowPlan(StrictBaseModel):
    """Execution plan produced by the remote planner for a use case."""

    workflow_steps: list[WorkflowStep] = Field(default_factory=list)
    critical_instructions: Optional[str] = None
    edge_case_handling: list[str] = Field(default_factory=list)
