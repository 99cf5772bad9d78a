"""LLM provider base class.

This module defines the model contract the toolkit components rely on:
plain text generation, structured generation into a Pydantic model, and a
tool-calling generation that runs tools through an executor callback. How
the model is hosted is up to the subclass.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Generic, Optional, TypeVar, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from toolkitflow.core.errors import ProviderError
from toolkitflow.providers.core.base import Provider, ProviderSettings
from toolkitflow.providers.toolkits.models import ToolDefinition
from toolkitflow.resources.models import PromptResource

from .models import TextOnlyResponse, ToolCallResponse, parse_model_response

logger = logging.getLogger(__name__)

ToolExecutor = Callable[[str, dict[str, Any]], Awaitable[Any]]


class LLMProviderSettings(ProviderSettings):
    """Settings for LLM providers."""

    temperature: float = Field(
        default=0.7,
        description="Sampling temperature used when a call does not pass one",
    )

    @field_validator("temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        """Validate temperature."""
        if v < 0 or v > 2:
            raise ValueError("Temperature must be between 0 and 2")
        return v


SettingsT = TypeVar("SettingsT", bound=LLMProviderSettings)
ModelType = TypeVar("ModelType", bound=BaseModel)


class LLMProvider(Provider[SettingsT], Generic[SettingsT]):
    """Base class for LLM backends.

    Public methods render the prompt, delegate to the ``_generate*`` hooks
    and normalise their raw output. Any failure surfaces as ProviderError.
    """

    settings_class = LLMProviderSettings

    def __init__(self, name: str = "llm", settings: Optional[SettingsT] = None):
        super().__init__(name=name, provider_type="llm", settings=settings)

    def _render(self, prompt: PromptResource, prompt_variables: Optional[dict[str, Any]]) -> str:
        try:
            return prompt.format(**(prompt_variables or {}))
        except ValueError as e:
            raise self._provider_error(str(e), operation="render_prompt", error_type="PromptError", cause=e) from e

    def _temperature(self, temperature: Optional[float]) -> float:
        return self.settings.temperature if temperature is None else temperature

    async def generate(
        self,
        prompt: PromptResource,
        prompt_variables: Optional[dict[str, Any]] = None,
        temperature: Optional[float] = None,
    ) -> str:
        """Generate a text response from the LLM.

        Args:
            prompt: The prompt resource to render
            prompt_variables: Values for the prompt placeholders
            temperature: Sampling temperature override

        Returns:
            Generated text

        Raises:
            ProviderError: If generation fails
        """
        text = self._render(prompt, prompt_variables)
        try:
            raw = await self._generate(text, self._temperature(temperature))
            return parse_model_response(raw).text
        except ProviderError:
            raise
        except Exception as e:
            raise self._provider_error(f"Generation failed: {e}", operation="generate", cause=e) from e

    async def generate_structured(
        self,
        prompt: PromptResource,
        output_type: type[ModelType],
        prompt_variables: Optional[dict[str, Any]] = None,
        temperature: Optional[float] = None,
    ) -> ModelType:
        """Generate a structured response from the LLM.

        Args:
            prompt: The prompt resource to render
            output_type: Pydantic model to parse the response into
            prompt_variables: Values for the prompt placeholders
            temperature: Sampling temperature override

        Returns:
            Pydantic model instance parsed from response

        Raises:
            ProviderError: If generation or parsing fails
        """
        text = self._render(prompt, prompt_variables)
        schema = output_type.model_json_schema()
        try:
            raw = await self._generate_structured(text, schema, self._temperature(temperature))
        except ProviderError:
            raise
        except Exception as e:
            raise self._provider_error(
                f"Structured generation failed: {e}", operation="generate_structured", cause=e
            ) from e

        try:
            if isinstance(raw, output_type):
                return raw
            if isinstance(raw, (str, bytes)):
                return output_type.model_validate_json(raw, strict=False)
            return output_type.model_validate(raw, strict=False)
        except ValidationError as e:
            logger.warning(f"Model output did not match {output_type.__name__}: {e}")
            raise self._provider_error(
                f"Output did not match {output_type.__name__}",
                operation="generate_structured",
                error_type="ParsingError",
                cause=e,
            ) from e

    async def generate_with_tools(
        self,
        prompt: PromptResource,
        tools: Mapping[str, ToolDefinition],
        tool_executor: ToolExecutor,
        prompt_variables: Optional[dict[str, Any]] = None,
        tool_choice: str = "auto",
        temperature: Optional[float] = None,
    ) -> Union[TextOnlyResponse, ToolCallResponse]:
        """Generate with tool calling enabled.

        The model decides which tools to call (``tool_choice="auto"``); each
        call is run through ``tool_executor(tool_slug, arguments)``.

        Returns:
            A TextOnlyResponse or a ToolCallResponse

        Raises:
            ProviderError: If the call fails or returns an unrecognised shape
        """
        text = self._render(prompt, prompt_variables)
        logger.debug(f"Calling model with {len(tools)} tools ({len(text)} prompt chars)")
        try:
            raw = await self._generate_with_tools(
                text, dict(tools), tool_executor, tool_choice, self._temperature(temperature)
            )
            return parse_model_response(raw)
        except ProviderError:
            raise
        except Exception as e:
            raise self._provider_error(
                f"Tool-calling generation failed: {e}", operation="generate_with_tools", cause=e
            ) from e

    async def _generate(self, prompt: str, temperature: float) -> Any:
        """Return raw text output for a rendered prompt."""
        raise NotImplementedError("Subclasses must implement _generate()")

    async def _generate_structured(self, prompt: str, schema: dict[str, Any], temperature: float) -> Any:
        """Return raw structured output (mapping or JSON text) matching ``schema``."""
        raise NotImplementedError("Subclasses must implement _generate_structured()")

    async def _generate_with_tools(
        self,
        prompt: str,
        tools: dict[str, ToolDefinition],
        tool_executor: ToolExecutor,
        tool_choice: str,
        temperature: float,
    ) -> Any:
        """Return raw tool-calling output: text or a mapping with tool calls and results."""
        raise NotImplementedError("Subclasses must implement _generate_with_tools()")

