"""CONNECT_TOOLKIT: connect a new toolkit for the user."""

import logging
from typing import Optional

from toolkitflow.core.errors import ProviderError
from toolkitflow.core.settings import ToolkitFlowSettings
from toolkitflow.providers.llm.base import LLMProvider
from toolkitflow.resources.registry import prompt_registry

from ..callbacks import ResponseCallback, send_error, send_success
from ..models import MappingConfidence, ToolkitMapping
from ..prompts import ToolkitExtraction, ToolkitSelection
from ..resolver import ToolkitNameResolver
from ..service import ToolkitService
from .base import ActionRequest, ToolkitAction

logger = logging.getLogger(__name__)

SELECT_FROM_ALLOWED = (
    "Identify the toolkit the user wants to connect and select the best match from the list above. "
    "Use the exact name from the list."
)
SELECT_FROM_CANDIDATES = "Select the toolkit from the list above that best matches what the user wants to connect."


class ConnectToolkitAction(ToolkitAction):
    name = "CONNECT_TOOLKIT"
    similes = (
        "ADD_TOOLKIT",
        "CONNECT_APP",
        "ADD_APP",
        "CONNECT_INTEGRATION",
        "ADD_INTEGRATION",
        "SETUP_TOOLKIT",
        "INSTALL_TOOLKIT",
    )
    description = "Add and connect a new toolkit/app integration for the user"
    requires_multi_user = True

    def __init__(
        self,
        service: ToolkitService,
        llm: LLMProvider,
        settings: ToolkitFlowSettings,
        resolver: ToolkitNameResolver,
    ):
        super().__init__(service, llm, settings)
        self.resolver = resolver

    async def handle(self, request: ActionRequest, callback: Optional[ResponseCallback] = None) -> None:
        user_id = self.user_id(request)
        try:
            toolkit = await self.resolve_toolkit(request, user_id, callback)
            if toolkit is None:
                return

            connections = await self.service.list_connections(toolkit.lower(), user_id)
            if any(connection.is_active for connection in connections):
                logger.info(f"User {user_id} already has an ACTIVE connection for {toolkit}")
                await send_success(callback, f"The {toolkit} toolkit is already connected and active for your account.")
                return

            stale = [connection for connection in connections if not connection.is_active]
            for connection in stale:
                try:
                    await self.service.delete_connection(connection.id)
                    logger.info(f"Deleted non-active connection {connection.id} ({connection.status}) for {toolkit}")
                except Exception as e:
                    logger.warning(f"Failed to delete connection {connection.id}: {e}")

            try:
                initiation = await self.service.initiate_connection(toolkit.lower(), user_id)
            except ProviderError as e:
                logger.error(f"Connection initiation for {toolkit} failed: {e.message}")
                await send_error(callback, f"Failed to initiate connection for {toolkit}. Please try again.", e)
                return

            text = await self.format_response(
                "connection-response",
                fallback=initiation.message or f"Open {initiation.redirect_url} to connect {toolkit}.",
                user_message=request.text,
                toolkit=toolkit,
                status=initiation.status,
                message=initiation.message,
                redirect_url=initiation.redirect_url or "",
                instruction=initiation.instruction,
            )
            await send_success(callback, text)
        except Exception as e:
            logger.error(f"Error in {self.name}: {e}")
            await send_error(callback, "Sorry, I encountered an error while trying to connect the toolkit.", e)

    async def resolve_toolkit(
        self, request: ActionRequest, user_id: str, callback: Optional[ResponseCallback]
    ) -> Optional[str]:
        """Canonical toolkit slug the user asked for, or None after reporting why not."""
        if self.allowed_toolkits:
            logger.info(f"Selecting directly from {len(self.allowed_toolkits)} allowed toolkits")
            selection = await self._select(request.text, self.allowed_toolkits, SELECT_FROM_ALLOWED)
            if not selection.selected_toolkit or selection.confidence is MappingConfidence.LOW:
                await send_error(
                    callback,
                    "Could not match your request to any allowed toolkit. "
                    f"Available options: {', '.join(self.allowed_toolkits)}",
                )
                return None
            return selection.selected_toolkit

        extraction = await self.llm.generate_structured(
            prompt_registry.get("toolkit-extraction"),
            ToolkitExtraction,
            prompt_variables={"user_message": request.text},
            temperature=self.settings.connection_extraction_temperature,
        )
        term = extraction.toolkit.strip()
        if not term or extraction.confidence is MappingConfidence.LOW:
            await send_error(
                callback,
                'Please specify which toolkit/app you want to connect (e.g., "connect Gmail", "add Slack integration")',
            )
            return None

        cached = self.resolver.get_mapping(term)
        if cached is not None:
            logger.info(f"Cache hit: {term} -> {cached.resolved_toolkit}")
            return cached.resolved_toolkit

        candidates = await self.service.get_toolkits_by_category(term.lower(), user_id)
        if not candidates:
            await send_error(
                callback,
                f'No toolkits found matching "{term}". Please try a different name or check available toolkits.',
            )
            return None
        self.resolver.update_available_toolkits(candidates)

        selection = await self._select(request.text, candidates, SELECT_FROM_CANDIDATES)
        if not selection.selected_toolkit:
            await send_error(
                callback,
                f'Could not determine the appropriate toolkit for "{term}". Available options: {", ".join(candidates)}',
            )
            return None

        self.resolver.store_mapping(
            ToolkitMapping(
                search_term=term.lower(),
                resolved_toolkit=selection.selected_toolkit,
                confidence=selection.confidence,
            )
        )
        return selection.selected_toolkit

    async def _select(self, user_message: str, toolkits: list[str], task: str) -> ToolkitSelection:
        return await self.llm.generate_structured(
            prompt_registry.get("toolkit-selection"),
            ToolkitSelection,
            prompt_variables={
                "user_message": user_message,
                "available_toolkits": "\n".join(f"- {toolkit}" for toolkit in toolkits),
                "task": task,
            },
            temperature=self.settings.connection_extraction_temperature,
        )
