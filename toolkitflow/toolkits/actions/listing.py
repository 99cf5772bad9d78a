"""Read-only actions: list connected toolkits and browse available ones."""

import logging
from typing import Optional

from toolkitflow.resources.registry import prompt_registry

from ..callbacks import ResponseCallback, send_error, send_success
from ..models import MappingConfidence
from ..prompts import CategoryExtraction
from .base import ActionRequest, ToolkitAction

logger = logging.getLogger(__name__)


class ListConnectedToolkitsAction(ToolkitAction):
    name = "LIST_CONNECTED_TOOLKITS"
    similes = ("LIST_CONNECTED_APPS", "SHOW_CONNECTED_APPS", "MY_INTEGRATIONS", "CONNECTED_TOOLKITS")
    description = "List all connected apps and integrations"

    async def handle(self, request: ActionRequest, callback: Optional[ResponseCallback] = None) -> None:
        try:
            connected = await self.service.get_connected_apps(self.user_id(request))
            if not connected:
                await send_success(callback, "No apps are currently connected.")
                return

            text = await self.format_response(
                "connected-toolkits-response",
                fallback=", ".join(connected),
                user_message=request.text,
                connected_apps=", ".join(connected),
                count=len(connected),
            )
            await send_success(callback, text)
        except Exception as e:
            logger.error(f"Error retrieving connected apps: {e}")
            await send_error(
                callback,
                "Sorry, I encountered an error while retrieving your connected apps. Please try again later.",
                e,
            )


class BrowseToolkitsAction(ToolkitAction):
    name = "BROWSE_TOOLKITS"
    similes = ("WHAT_APPS_CAN", "SHOW_AVAILABLE_TOOLS", "CATALOG_APPS", "AVAILABLE_TOOLKITS")
    description = "Browse and discover available toolkits by category or functionality"

    async def handle(self, request: ActionRequest, callback: Optional[ResponseCallback] = None) -> None:
        try:
            extraction = await self.llm.generate_structured(
                prompt_registry.get("toolkit-category-extraction"),
                CategoryExtraction,
                prompt_variables={"user_message": request.text},
                temperature=self.settings.toolkit_extraction_temperature,
            )
            category = extraction.category.strip()
            if not category or extraction.confidence is MappingConfidence.LOW:
                await send_error(
                    callback,
                    "Please specify what type of apps you're looking for. Examples: \"email apps\", "
                    "\"project management tools\", \"calendar apps\", \"communication tools\", etc.",
                )
                return

            if self.allowed_toolkits:
                toolkits = list(self.allowed_toolkits)
                logger.info(f"Using allowed toolkits list ({len(toolkits)}) instead of the API")
            else:
                toolkits = await self.service.get_toolkits_by_category(category, self.user_id(request))

            if toolkits:
                fallback = f"Found {len(toolkits)} apps for {category}: {', '.join(toolkits)}"
            else:
                fallback = f'No toolkits found for "{category}"'
            text = await self.format_response(
                "toolkit-browse-response",
                fallback=fallback,
                user_message=request.text,
                category=category,
                toolkits=", ".join(toolkits) or "none",
                count=len(toolkits),
            )
            await send_success(callback, text)
        except Exception as e:
            logger.error(f"Error browsing toolkits: {e}")
            await send_error(
                callback,
                "Sorry, I encountered an error while browsing available toolkits. Please try again.",
                e,
            )
