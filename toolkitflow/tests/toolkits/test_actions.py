"""Tests for the agent actions."""

import pytest

from toolkitflow.core.errors import ErrorManager
from toolkitflow.core.settings import ToolkitFlowSettings
from toolkitflow.providers.toolkits.models import ConnectedAccount
from toolkitflow.toolkits.actions import (
    ActionRequest,
    BrowseToolkitsAction,
    ConnectToolkitAction,
    DisconnectToolkitAction,
    ExecuteToolkitToolsAction,
    ListConnectedToolkitsAction,
    ToolkitWorkflowAction,
)
from toolkitflow.toolkits.actions.execute import EMPTY_RESPONSE
from toolkitflow.toolkits.context import ConversationMessage
from toolkitflow.toolkits.models import MappingConfidence, ToolkitMapping, ToolResultEntry
from toolkitflow.toolkits.resolver import ToolkitNameResolver
from toolkitflow.toolkits.service import ToolkitService
from toolkitflow.toolkits.workflow import (
    DependencyResolver,
    IterativeDependencyResolver,
    SequentialExecutor,
    WorkflowExtractor,
    WorkflowOrchestrator,
)

from ..test_utils import FakeLLMProvider, api_error, make_search, make_tool, provider_error, tool_call_output


def request(text, **kwargs):
    return ActionRequest(text=text, entity_id="user-1", **kwargs)


def high(toolkit):
    return {"toolkit": toolkit, "confidence": "high"}


def selected(toolkit, confidence="high"):
    return {"selectedToolkit": toolkit, "confidence": confidence}


class TestValidate:
    """Test ToolkitAction.validate."""

    @pytest.mark.asyncio
    async def test_requires_initialized_service(self, service, settings, toolkit_api):
        action = ListConnectedToolkitsAction(service, FakeLLMProvider(), settings)

        assert not await action.validate(request("list my apps"))
        await toolkit_api.initialize()
        assert await action.validate(request("list my apps"))

    @pytest.mark.asyncio
    async def test_connection_management_needs_multi_user_mode(self, toolkit_api, fake_sleep):
        settings = ToolkitFlowSettings(api_key="k", multi_user_mode=False)
        service = ToolkitService(toolkit_api, settings, sleep=fake_sleep)
        await toolkit_api.initialize()
        llm = FakeLLMProvider()

        assert not await ConnectToolkitAction(service, llm, settings, ToolkitNameResolver()).validate(request("x"))
        assert not await DisconnectToolkitAction(service, llm, settings).validate(request("x"))
        assert await ListConnectedToolkitsAction(service, llm, settings).validate(request("x"))


class TestListConnectedToolkits:
    @pytest.mark.asyncio
    async def test_no_connections(self, service, settings, toolkit_api, recorder):
        toolkit_api.connections = []
        action = ListConnectedToolkitsAction(service, FakeLLMProvider(), settings)

        await action.handle(request("what apps do I have?"), recorder)

        assert recorder.texts == ["No apps are currently connected."]

    @pytest.mark.asyncio
    async def test_formats_connected_apps(self, service, settings, recorder):
        llm = FakeLLMProvider({"connected-toolkits-response": "You have 2 apps: Linear and Slack."})

        await ListConnectedToolkitsAction(service, llm, settings).handle(request("what apps do I have?"), recorder)

        assert recorder.texts == ["You have 2 apps: Linear and Slack."]
        assert "linear, slack" in llm.prompts_named("connected-toolkits-response")[0]

    @pytest.mark.asyncio
    async def test_formatting_failure_falls_back(self, service, settings, recorder):
        llm = FakeLLMProvider({"connected-toolkits-response": provider_error()})

        await ListConnectedToolkitsAction(service, llm, settings).handle(request("apps?"), recorder)

        assert recorder.texts == ["linear, slack"]
        assert recorder.errors == []


class TestBrowseToolkits:
    @pytest.mark.asyncio
    async def test_browses_category(self, service, settings, toolkit_api, recorder):
        toolkit_api.toolkits_by_category = {"send email": ["gmail", "outlook"]}
        llm = FakeLLMProvider({
            "toolkit-category-extraction": {"category": "send email", "confidence": "high"},
            "toolkit-browse-response": "Email apps: Gmail, Outlook.",
        })

        await BrowseToolkitsAction(service, llm, settings).handle(request("what email apps are there?"), recorder)

        assert recorder.texts == ["Email apps: Gmail, Outlook."]
        assert toolkit_api.calls_to("retrieve_toolkits") == [("send email", "user-1")]

    @pytest.mark.asyncio
    async def test_allowed_list_replaces_catalogue(self, service, toolkit_api, recorder):
        settings = ToolkitFlowSettings(api_key="k", multi_user_mode=True, allowed_toolkits=["gmail", "slack"])
        llm = FakeLLMProvider({
            "toolkit-category-extraction": {"category": "messaging", "confidence": "medium"},
            "toolkit-browse-response": provider_error(),
        })

        await BrowseToolkitsAction(service, llm, settings).handle(request("messaging apps?"), recorder)

        assert recorder.texts == ["Found 2 apps for messaging: gmail, slack"]
        assert toolkit_api.calls_to("retrieve_toolkits") == []

    @pytest.mark.asyncio
    async def test_vague_request_asks_for_category(self, service, settings, recorder):
        llm = FakeLLMProvider({"toolkit-category-extraction": {"category": "", "confidence": "low"}})

        await BrowseToolkitsAction(service, llm, settings).handle(request("what can I connect?"), recorder)

        assert len(recorder.errors) == 1
        assert "Please specify" in recorder.texts[0]


@pytest.fixture
def resolver(clock):
    return ToolkitNameResolver(clock=clock)


class TestConnectToolkit:
    """Test ConnectToolkitAction."""

    @pytest.mark.asyncio
    async def test_initiates_new_connection(self, service, settings, toolkit_api, resolver, recorder):
        toolkit_api.toolkits_by_category = {"github": ["github", "github_enterprise"]}
        llm = FakeLLMProvider({
            "toolkit-extraction": high("github"),
            "toolkit-selection": selected("github"),
            "connection-response": "Open https://connect.example.com/github to finish connecting GitHub.",
        })

        await ConnectToolkitAction(service, llm, settings, resolver).handle(request("connect github"), recorder)

        assert recorder.texts == ["Open https://connect.example.com/github to finish connecting GitHub."]
        assert toolkit_api.calls_to("initiate_connection") == [("github", "user-1")]
        assert "https://connect.example.com/github" in llm.prompts_named("connection-response")[0]
        mapping = resolver.get_mapping("github")
        assert mapping.resolved_toolkit == "github"
        assert mapping.confidence is MappingConfidence.HIGH

    @pytest.mark.asyncio
    async def test_already_active(self, service, settings, toolkit_api, resolver, recorder):
        toolkit_api.toolkits_by_category = {"linear": ["linear"]}
        llm = FakeLLMProvider({"toolkit-extraction": high("linear"), "toolkit-selection": selected("linear")})

        await ConnectToolkitAction(service, llm, settings, resolver).handle(request("connect linear"), recorder)

        assert recorder.texts == ["The linear toolkit is already connected and active for your account."]
        assert toolkit_api.calls_to("initiate_connection") == []

    @pytest.mark.asyncio
    async def test_stale_connections_are_replaced(self, service, settings, toolkit_api, resolver, recorder):
        toolkit_api.connections.append(
            ConnectedAccount(id="ca-gh-old", toolkit_slug="github", status="EXPIRED", user_id="user-1")
        )
        resolver.store_mapping(ToolkitMapping(search_term="github", resolved_toolkit="github"))
        llm = FakeLLMProvider({"toolkit-extraction": high("GitHub"), "connection-response": "Link sent."})

        await ConnectToolkitAction(service, llm, settings, resolver).handle(request("reconnect github"), recorder)

        assert toolkit_api.deleted == ["ca-gh-old"]
        assert recorder.texts == ["Link sent."]

    @pytest.mark.asyncio
    async def test_stale_deletion_failure_does_not_block(self, service, settings, toolkit_api, resolver, recorder):
        toolkit_api.connections.append(
            ConnectedAccount(id="ca-gh-old", toolkit_slug="github", status="FAILED", user_id="user-1")
        )
        toolkit_api.delete_errors = {"ca-gh-old": api_error("gone", status_code=404)}
        resolver.store_mapping(ToolkitMapping(search_term="github", resolved_toolkit="github"))
        llm = FakeLLMProvider({"toolkit-extraction": high("github"), "connection-response": "Link sent."})

        await ConnectToolkitAction(service, llm, settings, resolver).handle(request("connect github"), recorder)

        assert toolkit_api.calls_to("initiate_connection") == [("github", "user-1")]
        assert recorder.texts == ["Link sent."]

    @pytest.mark.asyncio
    async def test_cached_mapping_skips_catalogue(self, service, settings, toolkit_api, resolver, recorder):
        resolver.store_mapping(ToolkitMapping(search_term="gcal", resolved_toolkit="googlecalendar"))
        llm = FakeLLMProvider({"toolkit-extraction": high("gcal"), "connection-response": "Link sent."})

        await ConnectToolkitAction(service, llm, settings, resolver).handle(request("connect gcal"), recorder)

        assert toolkit_api.calls_to("retrieve_toolkits") == []
        assert toolkit_api.calls_to("initiate_connection") == [("googlecalendar", "user-1")]

    @pytest.mark.asyncio
    async def test_unclear_request(self, service, settings, resolver, recorder):
        llm = FakeLLMProvider({"toolkit-extraction": {"toolkit": "", "confidence": "low"}})

        await ConnectToolkitAction(service, llm, settings, resolver).handle(request("connect something"), recorder)

        assert "Please specify which toolkit/app you want to connect" in recorder.errors[0]["text"]

    @pytest.mark.asyncio
    async def test_unknown_toolkit(self, service, settings, resolver, recorder):
        llm = FakeLLMProvider({"toolkit-extraction": high("frobnicator")})

        await ConnectToolkitAction(service, llm, settings, resolver).handle(request("connect frobnicator"), recorder)

        assert recorder.errors[0]["text"].startswith('No toolkits found matching "frobnicator"')

    @pytest.mark.asyncio
    async def test_allowed_list_selection(self, toolkit_api, fake_sleep, resolver, recorder):
        settings = ToolkitFlowSettings(api_key="k", multi_user_mode=True, allowed_toolkits=["gmail", "slack"])
        service = ToolkitService(toolkit_api, settings, sleep=fake_sleep)
        llm = FakeLLMProvider({"toolkit-selection": selected("gmail"), "connection-response": "Link sent."})

        await ConnectToolkitAction(service, llm, settings, resolver).handle(request("hook up my email"), recorder)

        assert toolkit_api.calls_to("initiate_connection") == [("gmail", "user-1")]
        assert "- gmail\n- slack" in llm.prompts_named("toolkit-selection")[0]

    @pytest.mark.asyncio
    async def test_allowed_list_low_confidence(self, toolkit_api, fake_sleep, resolver, recorder):
        settings = ToolkitFlowSettings(api_key="k", multi_user_mode=True, allowed_toolkits=["gmail", "slack"])
        service = ToolkitService(toolkit_api, settings, sleep=fake_sleep)
        llm = FakeLLMProvider({"toolkit-selection": selected("gmail", "low")})

        await ConnectToolkitAction(service, llm, settings, resolver).handle(request("connect jira"), recorder)

        assert recorder.errors[0]["text"].endswith("Available options: gmail, slack")
        assert toolkit_api.calls_to("initiate_connection") == []

    @pytest.mark.asyncio
    async def test_initiation_failure(self, service, settings, toolkit_api, resolver, recorder):
        toolkit_api.initiation = api_error("auth config missing", status_code=400)
        resolver.store_mapping(ToolkitMapping(search_term="github", resolved_toolkit="github"))
        llm = FakeLLMProvider({"toolkit-extraction": high("github")})

        await ConnectToolkitAction(service, llm, settings, resolver).handle(request("connect github"), recorder)

        assert recorder.texts == ["Failed to initiate connection for github. Please try again."]


class TestDisconnectToolkit:
    """Test DisconnectToolkitAction."""

    @pytest.mark.asyncio
    async def test_removes_every_connection(self, service, settings, toolkit_api, recorder):
        toolkit_api.connections.append(
            ConnectedAccount(id="ca-linear-2", toolkit_slug="linear", status="EXPIRED", user_id="user-1")
        )
        llm = FakeLLMProvider({"toolkit-extraction": high("Linear"), "toolkit-removal-response": provider_error()})

        await DisconnectToolkitAction(service, llm, settings).handle(request("remove linear"), recorder)

        assert toolkit_api.deleted == ["ca-linear", "ca-linear-2"]
        assert recorder.texts == ["Successfully removed 2 Linear connection(s)."]

    @pytest.mark.asyncio
    async def test_nothing_to_remove(self, service, settings, recorder):
        llm = FakeLLMProvider({"toolkit-extraction": high("github")})

        await DisconnectToolkitAction(service, llm, settings).handle(request("remove github"), recorder)

        assert recorder.texts == ["No connections found for github."]
        assert recorder.errors == []

    @pytest.mark.asyncio
    async def test_partial_failure_is_reported(self, service, settings, toolkit_api, recorder):
        toolkit_api.connections.append(
            ConnectedAccount(id="ca-linear-2", toolkit_slug="linear", status="ACTIVE", user_id="user-1")
        )
        toolkit_api.delete_errors = {"ca-linear-2": api_error("locked", status_code=409)}
        llm = FakeLLMProvider({"toolkit-extraction": high("linear"), "toolkit-removal-response": "Removed one."})

        await DisconnectToolkitAction(service, llm, settings).handle(request("remove linear"), recorder)

        assert recorder.texts == ["Removed one."]
        prompt = llm.prompts_named("toolkit-removal-response")[0]
        assert "Successfully deleted connections: 1" in prompt
        assert "Errors encountered: 1" in prompt

    @pytest.mark.asyncio
    async def test_all_deletions_failing(self, service, settings, toolkit_api, recorder):
        toolkit_api.delete_errors = {"ca-slack": api_error("locked", status_code=409)}
        llm = FakeLLMProvider({"toolkit-extraction": high("slack")})

        await DisconnectToolkitAction(service, llm, settings).handle(request("remove slack"), recorder)

        assert recorder.errors[0]["text"] == "Failed to remove slack connections. Please try again."

    @pytest.mark.asyncio
    async def test_toolkit_outside_allowed_list(self, toolkit_api, fake_sleep, recorder):
        settings = ToolkitFlowSettings(api_key="k", multi_user_mode=True, allowed_toolkits=["gmail"])
        service = ToolkitService(toolkit_api, settings, sleep=fake_sleep)
        llm = FakeLLMProvider({"toolkit-extraction": high("linear")})

        await DisconnectToolkitAction(service, llm, settings).handle(request("remove linear"), recorder)

        assert "not available" in recorder.errors[0]["text"]
        assert toolkit_api.deleted == []


@pytest.fixture
def execute_api(toolkit_api):
    toolkit_api.searches = {
        ("linear", "create issue"): make_search("LINEAR_CREATE_ISSUE"),
        ("linear", "list teams"): make_search("LINEAR_LIST_TEAMS"),
    }
    toolkit_api.tools = {
        "LINEAR_CREATE_ISSUE": make_tool("LINEAR_CREATE_ISSUE", team_id={"description": "Team"}),
        "LINEAR_LIST_TEAMS": make_tool("LINEAR_LIST_TEAMS"),
    }
    return toolkit_api


def build_execute(llm, service, settings, history):
    return ExecuteToolkitToolsAction(
        service,
        llm,
        settings,
        history,
        DependencyResolver(service),
        IterativeDependencyResolver(service, llm),
    )


class TestExecuteToolkitTools:
    """Test ExecuteToolkitToolsAction."""

    @pytest.mark.asyncio
    async def test_executes_and_records(self, execute_api, service, settings, history, recorder):
        llm = FakeLLMProvider({
            "toolkit-use-case-extraction": {"toolkit": "Linear", "use_case": "create issue"},
            "tool-execution": tool_call_output(
                "Created ISS-7", ("LINEAR_CREATE_ISSUE", {"successful": True, "data": {"id": "ISS-7"}})
            ),
        })

        await build_execute(llm, service, settings, history).handle(request("file a linear bug"), recorder)

        assert recorder.texts == ["Created ISS-7"]
        records = history.get_toolkit_executions("user-1", "linear")
        assert [r.use_case for r in records] == ["create issue"]
        assert llm.tool_sets[0][1] == ["LINEAR_CREATE_ISSUE"]

    @pytest.mark.asyncio
    async def test_previous_results_are_offered(self, execute_api, service, settings, history, recorder):
        history.store_execution(
            "user-1", "linear", "create issue", [ToolResultEntry(tool="LINEAR_CREATE_ISSUE", result={"successful": True, "data": {"id": "ISS-7"}})]
        )
        llm = FakeLLMProvider({
            "toolkit-use-case-extraction": {"toolkit": "linear", "use_case": "create issue"},
            "tool-execution": "Done",
        })

        await build_execute(llm, service, settings, history).handle(request("do the same again"), recorder)

        prompt = llm.prompts_named("tool-execution")[0]
        assert "ISS-7" in prompt
        assert "reuse the IDs and links" in prompt

    @pytest.mark.asyncio
    async def test_conversation_context_is_used(self, execute_api, service, settings, history, recorder):
        llm = FakeLLMProvider({
            "toolkit-use-case-extraction": {"toolkit": "linear", "use_case": "create issue"},
            "tool-execution": "Done",
        })
        messages = [
            ConversationMessage(entity_id="user-1", text="the login page crashes"),
            ConversationMessage(entity_id="agent", text="sorry to hear"),
        ]

        await build_execute(llm, service, settings, history).handle(
            request("file it in linear", recent_messages=messages), recorder
        )

        assert "the login page crashes" in llm.prompts_named("toolkit-use-case-extraction")[0]
        assert "the login page crashes" in llm.prompts_named("tool-execution")[0]

    @pytest.mark.asyncio
    async def test_iterative_mode(self, execute_api, toolkit_api, fake_sleep, history, recorder):
        settings = ToolkitFlowSettings(api_key="k", multi_user_mode=True, dependency_resolution_mode="iterative")
        service = ToolkitService(toolkit_api, settings, sleep=fake_sleep)
        llm = FakeLLMProvider({
            "toolkit-use-case-extraction": {"toolkit": "linear", "use_case": "create issue"},
            "dependency-analysis": [{"hasDependencies": True, "useCase": "list teams"}, {"hasDependencies": False}],
            "tool-execution": "Created",
        })

        await build_execute(llm, service, settings, history).handle(request("file a linear bug"), recorder)

        assert set(llm.tool_sets[0][1]) == {"LINEAR_CREATE_ISSUE", "LINEAR_LIST_TEAMS"}
        assert toolkit_api.calls_to("get_tool_dependency_graph") == []
        assert recorder.texts == ["Created"]

    @pytest.mark.asyncio
    async def test_unconnected_toolkit(self, execute_api, service, settings, history, recorder):
        llm = FakeLLMProvider({"toolkit-use-case-extraction": {"toolkit": "github", "use_case": "open a PR"}})

        await build_execute(llm, service, settings, history).handle(request("open a PR"), recorder)

        assert recorder.errors[0]["text"] == "The github app is not connected. Please connect it first."

    @pytest.mark.asyncio
    async def test_no_tools_found(self, execute_api, service, settings, history, recorder):
        llm = FakeLLMProvider({"toolkit-use-case-extraction": {"toolkit": "linear", "use_case": "teleport"}})

        await build_execute(llm, service, settings, history).handle(request("teleport me"), recorder)

        assert recorder.errors[0]["text"].startswith('I couldn\'t find any tools to help with: "teleport"')

    @pytest.mark.asyncio
    async def test_empty_model_text(self, execute_api, service, settings, history, recorder):
        llm = FakeLLMProvider({
            "toolkit-use-case-extraction": {"toolkit": "linear", "use_case": "create issue"},
            "tool-execution": "",
        })

        await build_execute(llm, service, settings, history).handle(request("file a bug"), recorder)

        assert recorder.errors[0]["text"] == EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_no_connected_apps(self, execute_api, service, settings, history, recorder):
        execute_api.connections = []

        await build_execute(FakeLLMProvider(), service, settings, history).handle(request("file a bug"), recorder)

        assert recorder.errors[0]["text"] == "No apps are connected. Please connect apps first."

    @pytest.mark.asyncio
    async def test_model_failure_is_reported(self, execute_api, service, settings, history, recorder):
        llm = FakeLLMProvider({
            "toolkit-use-case-extraction": {"toolkit": "linear", "use_case": "create issue"},
            "tool-execution": provider_error(),
        })

        await build_execute(llm, service, settings, history).handle(request("file a bug"), recorder)

        assert recorder.errors[0]["text"].startswith("Sorry, I encountered an error")


def build_workflow_action(llm, service, settings, history):
    executor = SequentialExecutor(llm, service, history, DependencyResolver(service), error_manager=ErrorManager())
    orchestrator = WorkflowOrchestrator(service, WorkflowExtractor(llm), executor)
    return ToolkitWorkflowAction(service, llm, settings, orchestrator)


class TestToolkitWorkflowAction:
    """Test ToolkitWorkflowAction error mapping."""

    @pytest.mark.asyncio
    async def test_runs_workflow(self, execute_api, service, settings, history, recorder):
        llm = FakeLLMProvider({
            "workflow-extraction": {"toolkits": [{"name": "linear", "use_case": "create issue"}]},
            "group-execution": "Created ISS-9",
        })

        await build_workflow_action(llm, service, settings, history).handle(request("file a bug"), recorder)

        assert recorder.texts == ["Created ISS-9"]

    @pytest.mark.asyncio
    async def test_no_connected_apps(self, service, settings, toolkit_api, history, recorder):
        toolkit_api.connections = []

        await build_workflow_action(FakeLLMProvider(), service, settings, history).handle(request("x"), recorder)

        assert recorder.texts == ["No apps are connected. Please connect apps first."]

    @pytest.mark.asyncio
    async def test_unconnected_apps(self, service, settings, history, recorder):
        llm = FakeLLMProvider({
            "workflow-extraction": {
                "toolkits": [{"name": "jira", "use_case": "create ticket"}, {"name": "notion", "use_case": "log"}],
            },
        })

        await build_workflow_action(llm, service, settings, history).handle(request("x"), recorder)

        assert recorder.texts == ["These apps are not connected: jira, notion. Please connect them first."]

    @pytest.mark.asyncio
    async def test_extraction_failure(self, service, settings, history, recorder):
        llm = FakeLLMProvider({"workflow-extraction": provider_error()})

        await build_workflow_action(llm, service, settings, history).handle(request("x"), recorder)

        assert "Could you rephrase it?" in recorder.texts[0]
        assert len(recorder.errors) == 1
