"""Response callback payloads sent back to the host agent."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional

from toolkitflow.core.models import StrictBaseModel

logger = logging.getLogger(__name__)

ResponseCallback = Callable[[dict[str, Any]], Awaitable[Any]]


class CallbackContent(StrictBaseModel):
    text: str
    kind: str = "result"
    error: Optional[str] = None


class CallbackPayload(StrictBaseModel):
    """Shape of every emission: ``{text, content: {text, kind, error?}}``."""

    text: str
    content: CallbackContent


async def send_success(callback: Optional[ResponseCallback], text: str, kind: str = "result") -> None:
    if callback is None:
        return
    payload = CallbackPayload(text=text, content=CallbackContent(text=text, kind=kind))
    await callback(payload.model_dump(exclude_none=True))


async def send_error(
    callback: Optional[ResponseCallback],
    text: str,
    error: Optional[BaseException] = None,
    kind: str = "error",
) -> None:
    if callback is None:
        logger.debug(f"No callback for error response: {text}")
        return
    content = CallbackContent(text=text, kind=kind, error=str(error) if error is not None else text)
    await callback(CallbackPayload(text=text, content=content).model_dump(exclude_none=True))
