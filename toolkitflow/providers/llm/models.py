"""Model response types returned by LLM providers.

A model call either produced plain text or went through tool calls. The two
shapes are a tagged union discriminated by ``kind``; raw provider output is
coerced into one of them by ``parse_model_response``.
"""

from collections.abc import Mapping
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field

from toolkitflow.core.models import StrictBaseModel


class ToolCall(StrictBaseModel):
    """A tool invocation requested by the model."""

    tool_call_id: str = Field(default="", description="Provider assigned call id")
    tool_name: str = Field(..., description="Tool slug")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Call arguments")


class ToolCallResult(StrictBaseModel):
    """Outcome of one tool call."""

    tool_call_id: str = Field(default="", description="Provider assigned call id")
    tool_name: str = Field(..., description="Tool slug")
    output: Any = Field(default=None, description="Raw tool payload")

    @property
    def successful(self) -> bool:
        """True only when the payload explicitly reports ``successful: true``."""
        return isinstance(self.output, Mapping) and self.output.get("successful") is True


class TextOnlyResponse(StrictBaseModel):
    """Model output without tool activity."""

    kind: Literal["text"] = "text"
    text: str = ""

    @property
    def tool_results(self) -> list[ToolCallResult]:
        return []


class ToolCallResponse(StrictBaseModel):
    """Model output produced through tool calls."""

    kind: Literal["tool_calls"] = "tool_calls"
    text: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    tool_results: list[ToolCallResult] = Field(default_factory=list)


ModelResponse = Annotated[Union[TextOnlyResponse, ToolCallResponse], Field(discriminator="kind")]


def _first_present(data: Mapping[str, Any], *keys: str) -> Optional[Any]:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _parse_tool_call(entry: Mapping[str, Any]) -> ToolCall:
    arguments = _first_present(entry, "arguments", "args", "input")
    return ToolCall(
        tool_call_id=str(_first_present(entry, "tool_call_id", "toolCallId", "id") or ""),
        tool_name=str(_first_present(entry, "tool_name", "toolName", "name") or ""),
        arguments=dict(arguments) if isinstance(arguments, Mapping) else {},
    )


def _parse_tool_result(entry: Mapping[str, Any]) -> ToolCallResult:
    return ToolCallResult(
        tool_call_id=str(_first_present(entry, "tool_call_id", "toolCallId", "id") or ""),
        tool_name=str(_first_present(entry, "tool_name", "toolName", "name") or ""),
        output=_first_present(entry, "output", "result"),
    )


def parse_model_response(raw: Any) -> Union[TextOnlyResponse, ToolCallResponse]:
    """Coerce raw provider output into a ModelResponse.

    Accepts an existing response model, a plain string, or a mapping with
    ``text`` and optional ``tool_calls``/``tool_results`` (camelCase
    ``toolCalls``/``toolResults`` are accepted too).

    Raises:
        TypeError: If the output has none of the recognised shapes
    """
    if isinstance(raw, (TextOnlyResponse, ToolCallResponse)):
        return raw
    if isinstance(raw, str):
        return TextOnlyResponse(text=raw)
    if isinstance(raw, Mapping):
        text = raw.get("text")
        text = text if isinstance(text, str) else ""
        calls = _first_present(raw, "tool_calls", "toolCalls")
        results = _first_present(raw, "tool_results", "toolResults")
        if calls is None and results is None:
            return TextOnlyResponse(text=text)
        return ToolCallResponse(
            text=text,
            tool_calls=[_parse_tool_call(c) for c in calls or [] if isinstance(c, Mapping)],
            tool_results=[_parse_tool_result(r) for r in results or [] if isinstance(r, Mapping)],
        )
    raise TypeError(f"Unrecognised model output of type {type(raw).__name__}")
