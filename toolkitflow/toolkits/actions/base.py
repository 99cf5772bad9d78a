"""Base class and request model for agent actions."""

import logging
from typing import Any, ClassVar, Optional

from pydantic import Field

from toolkitflow.core.models import StrictBaseModel
from toolkitflow.core.settings import ToolkitFlowSettings
from toolkitflow.providers.llm.base import LLMProvider
from toolkitflow.resources.registry import prompt_registry

from ..callbacks import ResponseCallback
from ..context import ConversationMessage, build_conversation_context
from ..service import ToolkitService

logger = logging.getLogger(__name__)


class ActionRequest(StrictBaseModel):
    """An incoming user message routed to an action."""

    text: str
    entity_id: str = Field(..., description="Id of the user who sent the message")
    agent_id: str = Field(default="agent", description="Id of the agent handling the message")
    recent_messages: list[ConversationMessage] = Field(default_factory=list)


class ToolkitAction:
    """An agent action backed by the toolkit service.

    Subclasses declare ``name``, ``similes`` and ``description`` and
    implement ``handle``. Handlers report to the user only through the
    callback; they never raise for expected failures.
    """

    name: ClassVar[str] = ""
    similes: ClassVar[tuple[str, ...]] = ()
    description: ClassVar[str] = ""
    requires_multi_user: ClassVar[bool] = False

    def __init__(self, service: ToolkitService, llm: LLMProvider, settings: ToolkitFlowSettings):
        self.service = service
        self.llm = llm
        self.settings = settings

    async def validate(self, request: ActionRequest) -> bool:
        if not self.service.initialized:
            return False
        if self.requires_multi_user and not self.service.multi_user_mode:
            return False
        return True

    async def handle(self, request: ActionRequest, callback: Optional[ResponseCallback] = None) -> None:
        raise NotImplementedError("Subclasses must implement handle()")

    def user_id(self, request: ActionRequest) -> str:
        """Id API calls for this request run under."""
        user_id = self.service.effective_user_id(request.entity_id)
        logger.info(f"[{self.name}] multi-user mode: {self.service.multi_user_mode}, effective user: {user_id}")
        return user_id

    def conversation_context(self, request: ActionRequest) -> str:
        return build_conversation_context(
            request.recent_messages,
            request.entity_id,
            request.agent_id,
            self.settings.recent_exchanges_limit,
        )

    @property
    def allowed_toolkits(self) -> list[str]:
        return self.settings.allowed_toolkits

    async def format_response(
        self,
        prompt_name: str,
        fallback: str,
        temperature: Optional[float] = None,
        **variables: Any,
    ) -> str:
        """Render a user-facing reply through the model, falling back to ``fallback``."""
        try:
            text = await self.llm.generate(
                prompt_registry.get(prompt_name),
                prompt_variables=variables,
                temperature=self.settings.response_temperature if temperature is None else temperature,
            )
        except Exception as e:
            logger.warning(f"[{self.name}] response formatting failed, using fallback: {e}")
            return fallback
        return text.strip() or fallback
