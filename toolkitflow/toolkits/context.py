"""Helpers that build bounded context strings for model prompts."""

import json
from collections.abc import Sequence
from typing import Any

from pydantic import Field

from toolkitflow.core.models import StrictBaseModel

TRUNCATION_MARKER = "... [truncated]"
RECENT_MESSAGE_WINDOW = 10


class ConversationMessage(StrictBaseModel):
    """A message from the recent conversation."""

    entity_id: str
    text: str = ""


class ConversationExchange(StrictBaseModel):
    user: str
    agent: str


class ConversationWindow(StrictBaseModel):
    """Recent user/agent exchanges rendered as prompt context."""

    exchanges: list[ConversationExchange] = Field(default_factory=list)

    def render(self) -> str:
        if not self.exchanges:
            return ""
        body = "\n\n".join(f"User: {ex.user}\nAgent: {ex.agent}" for ex in self.exchanges)
        return f"Recent conversation:\n{body}"


def build_conversation_context(
    messages: Sequence[ConversationMessage],
    entity_id: str,
    agent_id: str,
    max_exchanges: int = 3,
) -> str:
    """Render the last complete user -> agent exchanges.

    Only messages from the user or the agent are considered, and of those
    only the last ten. A user message counts when an agent reply follows it.
    """
    relevant = [m for m in messages if m.entity_id in (entity_id, agent_id)][-RECENT_MESSAGE_WINDOW:]

    exchanges: list[ConversationExchange] = []
    for index, message in enumerate(relevant):
        if message.entity_id != entity_id:
            continue
        reply = next((m for m in relevant[index + 1:] if m.entity_id == agent_id), None)
        if reply is not None:
            exchanges.append(ConversationExchange(user=message.text, agent=reply.text))

    return ConversationWindow(exchanges=exchanges[-max_exchanges:]).render()


def truncate_text(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return f"{text[:max_chars]}{TRUNCATION_MARKER}"


def truncate_json(value: Any, max_bytes: int) -> tuple[str, bool]:
    """Serialize a value compactly and cut it to ``max_bytes`` UTF-8 bytes.

    Returns:
        The (possibly truncated) JSON text and whether it was truncated
    """
    text = json.dumps(value, default=str, ensure_ascii=False, separators=(",", ":"))
    encoded = text.encode("utf-8")
    if len(encoded) <= max_bytes:
        return text, False
    cut = encoded[:max_bytes].decode("utf-8", errors="ignore")
    return f"{cut}{TRUNCATION_MARKER}", True
