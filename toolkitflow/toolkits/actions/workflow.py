"""USE_TOOLKIT_WORKFLOW: multi-step requests spanning several toolkits."""

import logging
from typing import Optional

from toolkitflow.core.errors import (
    ExtractionFailedError,
    NoConnectedToolkitsError,
    ToolkitNotConnectedError,
)
from toolkitflow.core.settings import ToolkitFlowSettings
from toolkitflow.providers.llm.base import LLMProvider

from ..callbacks import ResponseCallback, send_error
from ..service import ToolkitService
from ..workflow.orchestrator import WorkflowOrchestrator
from .base import ActionRequest, ToolkitAction

logger = logging.getLogger(__name__)


class ToolkitWorkflowAction(ToolkitAction):
    name = "USE_TOOLKIT_WORKFLOW"
    similes = ("MULTI_STEP_TOOLKIT", "CHAIN_TOOLKITS", "TOOLKIT_SEQUENCE", "RUN_WORKFLOW")
    description = "Run a request that needs several toolkit steps, in order, carrying results forward"

    def __init__(
        self,
        service: ToolkitService,
        llm: LLMProvider,
        settings: ToolkitFlowSettings,
        orchestrator: WorkflowOrchestrator,
    ):
        super().__init__(service, llm, settings)
        self.orchestrator = orchestrator

    async def handle(self, request: ActionRequest, callback: Optional[ResponseCallback] = None) -> None:
        user_id = self.user_id(request)
        try:
            result = await self.orchestrator.run(
                request.text,
                entity_id=user_id,
                user_id=user_id,
                conversation_context=self.conversation_context(request),
                callback=callback,
            )
            logger.info(f"Workflow finished: {result.succeeded} succeeded, {result.failed} failed")
        except NoConnectedToolkitsError as e:
            await send_error(callback, "No apps are connected. Please connect apps first.", e)
        except ToolkitNotConnectedError as e:
            missing = ", ".join(e.missing_toolkits)
            await send_error(
                callback,
                f"These apps are not connected: {missing}. Please connect them first.",
                e,
            )
        except ExtractionFailedError as e:
            await send_error(
                callback,
                "I couldn't work out which apps and steps your request needs. Could you rephrase it?",
                e,
            )
        except Exception as e:
            logger.error(f"Error in {self.name}: {e}")
            await send_error(callback, "Sorry, I encountered an error while running the workflow.", e)
