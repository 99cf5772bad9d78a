"""Tests for the LLM provider contract and response parsing."""

import pytest
from pydantic import BaseModel

from toolkitflow.core.errors import ProviderError
from toolkitflow.providers.llm import (
    LLMProvider,
    LLMProviderSettings,
    TextOnlyResponse,
    ToolCallResponse,
    parse_model_response,
)
from toolkitflow.resources import PromptResource

from ..test_utils import make_tool, tool_call_output


class Verdict(BaseModel):
    answer: str
    score: int = 0


class ScriptedProvider(LLMProvider):
    """Returns a fixed raw output from every hook."""

    def __init__(self, raw):
        super().__init__(name="scripted")
        self.raw = raw
        self.calls = []

    async def _generate(self, prompt, temperature):
        self.calls.append(("generate", prompt, temperature))
        return self.raw

    async def _generate_structured(self, prompt, schema, temperature):
        self.calls.append(("structured", prompt, schema))
        return self.raw

    async def _generate_with_tools(self, prompt, tools, tool_executor, tool_choice, temperature):
        self.calls.append(("tools", prompt, sorted(tools), tool_choice))
        return self.raw


GREETING = PromptResource(name="greeting", template="Say hi to {{name}}")


class TestParseModelResponse:
    """Test parse_model_response."""

    def test_plain_string(self):
        response = parse_model_response("hello")
        assert isinstance(response, TextOnlyResponse)
        assert response.text == "hello"

    def test_mapping_without_tools(self):
        response = parse_model_response({"text": "hello"})
        assert isinstance(response, TextOnlyResponse)

    def test_camel_case_tool_output(self):
        response = parse_model_response(
            tool_call_output("done", ("LINEAR_CREATE_ISSUE", {"successful": True, "data": {"id": "ISS-1"}}))
        )

        assert isinstance(response, ToolCallResponse)
        assert response.tool_calls[0].tool_name == "LINEAR_CREATE_ISSUE"
        assert response.tool_results[0].tool_call_id == "call-0"
        assert response.tool_results[0].successful

    def test_snake_case_tool_output(self):
        response = parse_model_response({
            "text": "",
            "tool_calls": [{"id": "c1", "name": "SLACK_SEND_MESSAGE", "input": {"channel": "#eng"}}],
            "tool_results": [{"id": "c1", "name": "SLACK_SEND_MESSAGE", "output": {"successful": False}}],
        })

        assert response.tool_calls[0].arguments == {"channel": "#eng"}
        assert not response.tool_results[0].successful

    def test_existing_response_is_returned(self):
        response = TextOnlyResponse(text="x")
        assert parse_model_response(response) is response

    def test_unknown_shape(self):
        with pytest.raises(TypeError):
            parse_model_response(42)


class TestLLMProvider:
    """Test the public LLMProvider methods."""

    @pytest.mark.asyncio
    async def test_generate_renders_prompt(self):
        provider = ScriptedProvider("Hi Ada!")

        text = await provider.generate(GREETING, {"name": "Ada"}, temperature=0.2)

        assert text == "Hi Ada!"
        assert provider.calls == [("generate", "Say hi to Ada", 0.2)]

    @pytest.mark.asyncio
    async def test_default_temperature(self):
        provider = ScriptedProvider("ok")
        await provider.generate(GREETING, {"name": "Ada"})
        assert provider.calls[0][2] == LLMProviderSettings().temperature

    @pytest.mark.asyncio
    async def test_missing_prompt_variable(self):
        with pytest.raises(ProviderError) as exc_info:
            await ScriptedProvider("ok").generate(GREETING, {})

        assert exc_info.value.context.data.error_type == "PromptError"

    @pytest.mark.asyncio
    async def test_structured_from_mapping(self):
        provider = ScriptedProvider({"answer": "yes", "score": "3"})

        verdict = await provider.generate_structured(GREETING, Verdict, {"name": "Ada"})

        assert verdict == Verdict(answer="yes", score=3)
        assert provider.calls[0][2]["title"] == "Verdict"

    @pytest.mark.asyncio
    async def test_structured_from_json_text(self):
        verdict = await ScriptedProvider('{"answer": "no"}').generate_structured(GREETING, Verdict, {"name": "A"})
        assert verdict.answer == "no"

    @pytest.mark.asyncio
    async def test_structured_mismatch(self):
        with pytest.raises(ProviderError) as exc_info:
            await ScriptedProvider({"score": 1}).generate_structured(GREETING, Verdict, {"name": "A"})

        assert exc_info.value.context.data.error_type == "ParsingError"

    @pytest.mark.asyncio
    async def test_with_tools(self):
        provider = ScriptedProvider(tool_call_output("sent", ("SLACK_SEND_MESSAGE", {"successful": True})))

        async def executor(slug, arguments):
            return {"successful": True}

        response = await provider.generate_with_tools(
            GREETING, {"SLACK_SEND_MESSAGE": make_tool("SLACK_SEND_MESSAGE")}, executor, {"name": "Ada"}
        )

        assert isinstance(response, ToolCallResponse)
        assert provider.calls == [("tools", "Say hi to Ada", ["SLACK_SEND_MESSAGE"], "auto")]

    @pytest.mark.asyncio
    async def test_backend_failure_is_wrapped(self):
        class FailingProvider(ScriptedProvider):
            async def _generate(self, prompt, temperature):
                raise RuntimeError("socket closed")

        with pytest.raises(ProviderError) as exc_info:
            await FailingProvider("x").generate(GREETING, {"name": "Ada"})

        assert isinstance(exc_info.value.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_lifecycle(self):
        provider = ScriptedProvider("x")

        await provider.initialize()
        assert provider.initialized
        await provider.shutdown()
        assert not provider.initialized

    def test_temperature_validation(self):
        with pytest.raises(ValueError):
            LLMProviderSettings(temperature=3.0)
