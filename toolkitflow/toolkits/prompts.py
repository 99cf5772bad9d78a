"""Prompts and structured output models for toolkit actions and workflows."""

from typing import ClassVar, Optional

from pydantic import AliasChoices, ConfigDict, Field

from toolkitflow.core.models import StrictBaseModel
from toolkitflow.resources.decorators import prompt

from .models import MappingConfidence


class LLMOutputModel(StrictBaseModel):
    """Base for model outputs: unknown keys are ignored instead of rejected."""

    model_config = ConfigDict(extra="ignore")


class ExtractedToolkitStep(LLMOutputModel):
    name: str = ""
    use_case: str = ""


class WorkflowExtractionResponse(LLMOutputModel):
    toolkits: list[ExtractedToolkitStep] = Field(default_factory=list)


class ToolkitUseCaseExtraction(LLMOutputModel):
    toolkit: str = ""
    use_case: str = ""


class DependencyAnalysis(LLMOutputModel):
    has_dependencies: bool = Field(
        default=False, validation_alias=AliasChoices("hasDependencies", "has_dependencies")
    )
    use_case: str = Field(default="", validation_alias=AliasChoices("useCase", "use_case"))


class ToolkitExtraction(LLMOutputModel):
    toolkit: str = ""
    confidence: MappingConfidence = MappingConfidence.LOW


class ToolkitSelection(LLMOutputModel):
    selected_toolkit: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("selectedToolkit", "selected_toolkit")
    )
    confidence: MappingConfidence = MappingConfidence.LOW


class CategoryExtraction(LLMOutputModel):
    category: str = ""
    confidence: MappingConfidence = MappingConfidence.LOW


@prompt("workflow-extraction")
class WorkflowExtractionPrompt:
    """Extract every (toolkit, use case) step from a request, in order."""

    template: ClassVar[str] = """Extract ALL toolkits and use cases from the request. Always return an array, in the order the steps must run.

Request: "{{user_request}}"
{{context_section}}
Apps: {{connected_apps}}

RULES FOR USE_CASE GENERATION:
1. Use only standard action patterns that work across all toolkits:
   - "create [resource]", "update [resource]", "get [resource]", "list [resources]"
   - "delete [resource]", "send [content]", "search [resource]", "add [item]", "remove [item]"
2. Never include specific details in use_case:
   BAD: "notify team about deployment on slack"
   GOOD: "send message"
3. Identify the core action regardless of context:
   - "Inform the team" -> "send message"
   - "Track this bug" -> "create issue"
4. Only use apps from the list above. If the same app is needed twice at different points, list it twice.

JSON format (always an array):
{
  "toolkits": [
    { "name": "app_name", "use_case": "action resource" }
  ]
}

Examples:
"Track bug in Linear" -> {"toolkits": [{"name": "linear", "use_case": "create issue"}]}
"Put sales data in Google Sheets and inform team on Slack" -> {"toolkits": [
  {"name": "googlesheets", "use_case": "create spreadsheet"},
  {"name": "slack", "use_case": "send message"}
]}

Return JSON only:"""


@prompt("toolkit-use-case-extraction")
class ToolkitUseCaseExtractionPrompt:
    """Extract a single toolkit and use case."""

    template: ClassVar[str] = """Extract toolkit and use case from request.

Request: "{{user_request}}"
{{context_section}}
Apps: {{connected_apps}}

Rules:
- Select ONE app from the list above
- Use verb + action format

JSON format:
{
  "toolkit": "app_name",
  "use_case": "verb + action"
}

Examples:
"Create issue in Linear" -> {"toolkit": "linear", "use_case": "create issue"}
"Send message to engineering channel" -> {"toolkit": "slack", "use_case": "send message to channel"}

Return JSON only:"""


@prompt("dependency-analysis")
class DependencyAnalysisPrompt:
    """Decide whether the held tools still need entities fetched by other tools."""

    template: ClassVar[str] = """Create a use case from tool parameter descriptions.

Request: {{user_request}}
{{context_section}}

Current tools:
{{retrieved_tools}}

Analysis rules:
1. Check what data already exists vs what is needed
2. For each _id, _ref, _key parameter:
   - Required and missing -> add to use case
   - Optional, mentioned by the user and missing -> add to use case
   - Already provided -> skip
3. Read parameter descriptions for tool hints
4. Create a use case only for missing pieces

In use cases, use resource names, not "ID":
- Wrong: "Get project ID"
- Right: "Get project"

Return JSON:
{
  "hasDependencies": boolean,
  "useCase": "Complete sentence with resource names, no technical IDs"
}"""


@prompt("group-execution")
class GroupExecutionPrompt:
    """Execute one group of a multi-step workflow."""

    template: ClassVar[str] = """{{context_section}}Original user request: "{{user_request}}"

{{previous_section}}{{history_section}}{{dependency_section}}{{plan_section}}Step {{step_number}} of {{total_steps}}: use {{toolkit}} to {{use_cases}}

INSTRUCTIONS:
1. Use the provided {{toolkit}} tools to complete this part of the workflow
2. Use IDs, names and links from previous steps and recent executions instead of asking for them
3. Call prerequisite tools first when a required parameter is missing
4. Focus on completing this step while keeping the original request in mind
5. Reply with the key results only (names, IDs, links), in the user's language

Execute the tools and provide the result."""


@prompt("tool-execution")
class ToolExecutionPrompt:
    """Execute a single use case with history context."""

    template: ClassVar[str] = """{{context_section}}{{executions_section}}{{dependency_section}}Task: {{use_case}}
Original user request: "{{user_request}}"

Use the provided tools to complete the user request.
{{reference_hint}}Include relevant details and links in your response."""


@prompt("step-transition")
class StepTransitionPrompt:
    """Short narration between two workflow groups."""

    template: ClassVar[str] = """User request: "{{user_request}}"

Just completed step {{step_number}}/{{total_steps}} with {{completed_toolkit}}: {{completed_summary}}
Next: {{next_toolkit}} to {{next_use_cases}}

Instructions:
- ONE SHORT SENTENCE ONLY (max 15 words)
- Say what finished and what happens next
- Match the user's language

Generate only the sentence."""


@prompt("toolkit-extraction")
class ToolkitExtractionPrompt:
    """Extract the toolkit name a user wants to work with."""

    template: ClassVar[str] = """Extract the toolkit/app name that the user wants to work with from this message.

## USER MESSAGE
{{user_message}}

## INSTRUCTIONS
1. Look for app/service names like gmail, slack, github, linear, notion, google_calendar
2. Consider variations: "Google Mail" -> gmail, "Google Calendar" -> google_calendar
3. Confidence: high (clear name), medium (implied), low (no clear toolkit)

## RESPONSE FORMAT
{
  "toolkit": "toolkit_name_in_lowercase",
  "confidence": "high|medium|low"
}

If no clear toolkit is mentioned:
{"toolkit": "", "confidence": "low"}"""


@prompt("toolkit-selection")
class ToolkitSelectionPrompt:
    """Pick the best toolkit from a list of candidates."""

    template: ClassVar[str] = """## USER MESSAGE
{{user_message}}

## AVAILABLE TOOLKITS
{{available_toolkits}}

## TASK
{{task}}

## RESPONSE FORMAT
{
  "selectedToolkit": "exact_toolkit_name_from_list",
  "confidence": "high|medium|low"
}

If no toolkit matches:
{"selectedToolkit": null, "confidence": "low"}"""


@prompt("toolkit-category-extraction")
class ToolkitCategoryExtractionPrompt:
    """Extract the category a user wants to browse toolkits for."""

    template: ClassVar[str] = """Extract the category/use case from this message for browsing toolkits.

## USER MESSAGE
{{user_message}}

## INSTRUCTIONS
1. Extract the core functionality the user wants (e.g. "send email", "project management")
2. Keep it simple and descriptive
3. Confidence: high (clear), medium (implied), low (vague)

JSON: {"category": "use_case", "confidence": "high|medium|low"}

"What email apps?" -> {"category": "send email", "confidence": "high"}
"What can I connect?" -> {"category": "", "confidence": "low"}"""


@prompt("connection-response")
class ConnectionResponsePrompt:
    """Explain a newly initiated connection to the user."""

    template: ClassVar[str] = """Format this toolkit connection response for the user in a helpful, natural way.

User's original message: "{{user_message}}"
Respond in the same language as the user's message.

## CONNECTION DETAILS
- Toolkit: {{toolkit}}
- Status: {{status}}
- Message: {{message}}
- Redirect URL: {{redirect_url}}
- Instruction: {{instruction}}

Confirm the connection was initiated, give the redirect URL as a link and explain what the user needs to do next. Avoid technical jargon."""


@prompt("toolkit-removal-response")
class ToolkitRemovalResponsePrompt:
    """Report the result of disconnecting a toolkit."""

    template: ClassVar[str] = """Format a response for the user about removing a toolkit connection.

User's original message: "{{user_message}}"
Respond in the same language as the user's message.

## REMOVAL DETAILS
- Toolkit: {{toolkit}}
- Successfully deleted connections: {{deleted_count}}
- Total connections found: {{total_connections}}
- Errors encountered: {{errors_count}}

Confirm the disconnection when connections were deleted, mention the number removed when there were several and mention errors briefly. Keep it friendly and clear."""


@prompt("toolkit-browse-response")
class ToolkitBrowseResponsePrompt:
    """Present available toolkits for a category."""

    template: ClassVar[str] = """Format a response for the user showing available toolkits for a category.

User's original message: "{{user_message}}"
Respond in the same language as the user's message.

## BROWSE RESULTS
- Category: {{category}}
- Available toolkits: {{toolkits}}
- Count: {{count}} apps found

Mention the category, list the toolkits readably and explain how to connect one."""


@prompt("connected-toolkits-response")
class ConnectedToolkitsResponsePrompt:
    """Present the user's connected toolkits."""

    template: ClassVar[str] = """Format a response showing the user's connected apps.

User's original message: "{{user_message}}"
Respond in the same language as the user's message.

## CONNECTED APPS
- Apps: {{connected_apps}}
- Count: {{count}} apps connected

Show how many apps are connected and list them. Mention that apps can be disconnected or new ones connected. If none are connected, encourage connecting some."""
