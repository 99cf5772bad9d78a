"""DISCONNECT_TOOLKIT: remove every connection the user has for a toolkit."""

import logging
from typing import Optional

from toolkitflow.resources.registry import prompt_registry

from ..callbacks import ResponseCallback, send_error, send_success
from ..models import MappingConfidence
from ..prompts import ToolkitExtraction
from .base import ActionRequest, ToolkitAction

logger = logging.getLogger(__name__)


class DisconnectToolkitAction(ToolkitAction):
    name = "DISCONNECT_TOOLKIT"
    similes = (
        "REMOVE_TOOLKIT",
        "DISCONNECT_APP",
        "REMOVE_APP",
        "DELETE_INTEGRATION",
        "UNINSTALL_TOOLKIT",
    )
    description = "Disconnect and remove a toolkit/app integration for the user"
    requires_multi_user = True

    async def handle(self, request: ActionRequest, callback: Optional[ResponseCallback] = None) -> None:
        user_id = self.user_id(request)
        try:
            extraction = await self.llm.generate_structured(
                prompt_registry.get("toolkit-extraction"),
                ToolkitExtraction,
                prompt_variables={"user_message": request.text},
                temperature=self.settings.removal_response_temperature,
            )
            toolkit = extraction.toolkit.strip()
            if not toolkit or extraction.confidence is MappingConfidence.LOW:
                await send_error(
                    callback,
                    'Please specify which toolkit/app you want to disconnect (e.g., "remove Gmail", "disconnect Slack")',
                )
                return

            allowed = [name.lower() for name in self.allowed_toolkits]
            if allowed and toolkit.lower() not in allowed:
                await send_error(
                    callback,
                    f"The {toolkit} toolkit is not available. Available toolkits: {', '.join(self.allowed_toolkits)}",
                )
                return

            connections = await self.service.list_connections(toolkit.lower(), user_id)
            if not connections:
                await send_success(callback, f"No connections found for {toolkit}.")
                return
            if len(connections) > 1:
                logger.warning(f"Found {len(connections)} connections for {toolkit}, expected at most 1")

            deleted = 0
            errors = 0
            for connection in connections:
                try:
                    await self.service.delete_connection(connection.id)
                    deleted += 1
                    logger.info(f"Deleted connection {connection.id} ({connection.status}) for {toolkit}")
                except Exception as e:
                    errors += 1
                    logger.error(f"Failed to delete connection {connection.id}: {e}")

            if deleted == 0:
                await send_error(callback, f"Failed to remove {toolkit} connections. Please try again.")
                return

            text = await self.format_response(
                "toolkit-removal-response",
                fallback=f"Successfully removed {deleted} {toolkit} connection(s).",
                temperature=self.settings.removal_response_temperature,
                user_message=request.text,
                toolkit=toolkit,
                deleted_count=deleted,
                total_connections=len(connections),
                errors_count=errors,
            )
            await send_success(callback, text)
        except Exception as e:
            logger.error(f"Error in {self.name}: {e}")
            await send_error(callback, "Sorry, I encountered an error while trying to remove the toolkit.", e)
