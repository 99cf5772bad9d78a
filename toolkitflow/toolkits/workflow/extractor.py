"""Extraction of ordered (toolkit, use case) steps from a user request."""

import logging
from collections.abc import Iterable
from typing import Optional

from toolkitflow.core.errors import (
    ExtractionFailedError,
    ProviderError,
    ToolkitNotConnectedError,
)
from toolkitflow.providers.llm.base import LLMProvider
from toolkitflow.resources.registry import prompt_registry

from ..models import ExtractedStep
from ..prompts import WorkflowExtractionResponse

logger = logging.getLogger(__name__)


def format_context_section(conversation_context: str) -> str:
    return f"\n{conversation_context}\n" if conversation_context else ""


class WorkflowExtractor:
    """Turns a free-form request into validated, ordered workflow steps.

    Language understanding is delegated to the model; this class owns the
    validation: the output must be a non-empty list of steps, and every step
    must name a connected toolkit.
    """

    prompt_name = "workflow-extraction"

    def __init__(self, llm: LLMProvider, temperature: Optional[float] = 0.7):
        self.llm = llm
        self.temperature = temperature

    async def extract(
        self,
        connected_toolkits: Iterable[str],
        conversation_context: str,
        user_request: str,
    ) -> list[ExtractedStep]:
        """Extract steps in the order the model returned them.

        Args:
            connected_toolkits: Toolkit slugs the user has connected
            conversation_context: Rendered recent conversation, may be empty
            user_request: The user's request

        Returns:
            Steps carrying the connected set's spelling of each toolkit

        Raises:
            ExtractionFailedError: If the model call fails or yields no steps
            ToolkitNotConnectedError: If any step names an unconnected toolkit
        """
        connected = list(dict.fromkeys(connected_toolkits))
        prompt = prompt_registry.get(self.prompt_name)

        try:
            response = await self.llm.generate_structured(
                prompt,
                WorkflowExtractionResponse,
                prompt_variables={
                    "user_request": user_request,
                    "context_section": format_context_section(conversation_context),
                    "connected_apps": ", ".join(connected),
                },
                temperature=self.temperature,
            )
        except ProviderError as e:
            logger.error(f"Workflow extraction call failed: {e.message}")
            raise ExtractionFailedError("Could not understand which apps and actions to use", cause=e) from e

        raw_steps = [
            (item.name.strip(), item.use_case.strip())
            for item in response.toolkits
            if item.name.strip() and item.use_case.strip()
        ]
        if not raw_steps:
            raise ExtractionFailedError("No workflow steps could be extracted from the request")
        if len(raw_steps) != len(response.toolkits):
            logger.warning(f"Dropped {len(response.toolkits) - len(raw_steps)} incomplete extracted step(s)")

        canonical = {name.lower(): name for name in connected}
        missing: list[str] = []
        steps: list[ExtractedStep] = []
        for name, use_case in raw_steps:
            resolved = canonical.get(name.lower())
            if resolved is None:
                if name not in missing:
                    missing.append(name)
                continue
            steps.append(ExtractedStep(toolkit_name=resolved, use_case=use_case))

        if missing:
            raise ToolkitNotConnectedError(missing, connected)

        logger.info(
            f"Extracted {len(steps)} workflow steps: "
            + " -> ".join(f"{step.toolkit_name}: {step.use_case}" for step in steps)
        )
        return steps
