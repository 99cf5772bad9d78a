"""Multi-step toolkit workflow: extract, group, prepare and execute."""

import logging
from typing import Optional

from toolkitflow.core.errors import NoConnectedToolkitsError

from ..callbacks import ResponseCallback
from ..models import WorkflowInvocation, WorkflowResult
from ..service import ToolkitService
from .executor import SequentialExecutor
from .extractor import WorkflowExtractor
from .grouping import group_consecutive_steps

logger = logging.getLogger(__name__)


class WorkflowOrchestrator:
    """Runs a free-form request as an ordered multi-toolkit workflow.

    Validation failures (no connected toolkits, no extractable steps, steps
    naming unconnected toolkits) abort before any group runs and propagate
    to the caller. Once groups exist, the executor always completes.
    """

    def __init__(
        self,
        service: ToolkitService,
        extractor: WorkflowExtractor,
        executor: SequentialExecutor,
    ):
        self.service = service
        self.extractor = extractor
        self.executor = executor

    async def run(
        self,
        user_request: str,
        entity_id: str,
        user_id: Optional[str] = None,
        conversation_context: str = "",
        callback: Optional[ResponseCallback] = None,
    ) -> WorkflowResult:
        """Execute a request end to end.

        Raises:
            NoConnectedToolkitsError: If the user has no active connections
            ExtractionFailedError: If no steps could be extracted
            ToolkitNotConnectedError: If steps name unconnected toolkits
        """
        connected = await self.service.get_connected_apps(user_id)
        if not connected:
            raise NoConnectedToolkitsError("No apps are connected")

        steps = await self.extractor.extract(connected, conversation_context, user_request)
        groups = group_consecutive_steps(steps)
        logger.info(
            f"Executing {len(groups)} groups: "
            + " -> ".join(f"{group.toolkit_name}({len(group.use_cases)})" for group in groups)
        )

        invocation = WorkflowInvocation(
            user_request=user_request,
            entity_id=entity_id,
            user_id=user_id,
            conversation_context=conversation_context,
        )
        return await self.executor.run(groups, invocation, callback)
