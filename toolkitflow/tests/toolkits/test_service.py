"""Tests for the toolkit service facade."""

import pytest

from toolkitflow.core.settings import ToolkitFlowSettings
from toolkitflow.providers.toolkits.models import ConnectedAccount
from toolkitflow.toolkits.service import ToolkitService

from ..test_utils import api_error, make_graph


class TestEffectiveUserId:
    def test_multi_user_uses_caller(self, service):
        assert service.effective_user_id("user-1") == "user-1"

    def test_multi_user_falls_back_to_configured(self, service):
        assert service.effective_user_id(None) == "default-user"

    def test_single_user_collapses_every_caller(self, toolkit_api, fake_sleep):
        settings = ToolkitFlowSettings(api_key="k", user_id="owner", multi_user_mode=False)
        service = ToolkitService(toolkit_api, settings, sleep=fake_sleep)

        assert service.effective_user_id("user-1") == "owner"
        assert service.effective_user_id("user-2") == "owner"
        assert not service.multi_user_mode


class TestConnectedApps:
    """Test get_connected_apps and is_toolkit_connected."""

    @pytest.mark.asyncio
    async def test_lists_active_slugs(self, service, toolkit_api):
        toolkit_api.connections.append(
            ConnectedAccount(id="ca-gh", toolkit_slug="github", status="EXPIRED", user_id="user-1")
        )

        apps = await service.get_connected_apps("user-1")

        assert apps == ["linear", "slack"]
        assert toolkit_api.calls_to("list_connections") == [("user-1", None, ("ACTIVE",))]

    @pytest.mark.asyncio
    async def test_duplicate_connections_are_listed_once(self, service, toolkit_api):
        toolkit_api.connections.append(
            ConnectedAccount(id="ca-linear-2", toolkit_slug="linear", status="ACTIVE", user_id="user-1")
        )
        assert await service.get_connected_apps("user-1") == ["linear", "slack"]

    @pytest.mark.asyncio
    async def test_other_users_see_nothing(self, service):
        assert await service.get_connected_apps("user-2") == []

    @pytest.mark.asyncio
    async def test_failure_yields_empty_list(self, service, toolkit_api):
        toolkit_api.list_error = api_error("boom", status_code=500)
        assert await service.get_connected_apps("user-1") == []

    @pytest.mark.asyncio
    async def test_is_toolkit_connected_ignores_case(self, service):
        assert await service.is_toolkit_connected("Linear", "user-1")
        assert not await service.is_toolkit_connected("github", "user-1")


class TestDependencyGraph:
    """Test retry behaviour of get_tool_dependency_graph."""

    @pytest.mark.asyncio
    async def test_success_without_retry(self, service, toolkit_api, fake_sleep):
        toolkit_api.graphs = {"LINEAR_CREATE_ISSUE": make_graph("LINEAR_CREATE_ISSUE", "LINEAR_LIST_TEAMS")}

        graph = await service.get_tool_dependency_graph("LINEAR_CREATE_ISSUE", "user-1")

        assert graph.parent_tool_names == ["LINEAR_LIST_TEAMS"]
        assert fake_sleep.delays == []

    @pytest.mark.asyncio
    async def test_server_error_is_retried_with_backoff(self, service, toolkit_api, fake_sleep):
        toolkit_api.graphs = {
            "LINEAR_CREATE_ISSUE": [
                api_error("server error", status_code=500),
                make_graph("LINEAR_CREATE_ISSUE", "LINEAR_LIST_TEAMS"),
            ],
        }

        graph = await service.get_tool_dependency_graph("LINEAR_CREATE_ISSUE", "user-1")

        assert graph is not None
        assert fake_sleep.delays == [1.0]
        assert len(toolkit_api.calls_to("get_tool_dependency_graph")) == 2

    @pytest.mark.asyncio
    async def test_server_error_in_message_is_retried(self, service, toolkit_api, fake_sleep):
        toolkit_api.graphs = {
            "LINEAR_CREATE_ISSUE": [RuntimeError("upstream returned 500"), make_graph("LINEAR_CREATE_ISSUE")],
        }

        assert await service.get_tool_dependency_graph("LINEAR_CREATE_ISSUE", "user-1") is not None
        assert fake_sleep.delays == [1.0]

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, service, toolkit_api, fake_sleep):
        toolkit_api.graphs = {"LINEAR_CREATE_ISSUE": api_error("not found", status_code=404)}

        assert await service.get_tool_dependency_graph("LINEAR_CREATE_ISSUE", "user-1") is None
        assert fake_sleep.delays == []
        assert len(toolkit_api.calls_to("get_tool_dependency_graph")) == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, toolkit_api, fake_sleep):
        settings = ToolkitFlowSettings(
            api_key="k", multi_user_mode=True, dependency_graph_max_attempts=3, dependency_graph_backoff_seconds=0.5
        )
        service = ToolkitService(toolkit_api, settings, sleep=fake_sleep)
        toolkit_api.graphs = {"LINEAR_CREATE_ISSUE": [api_error("down", status_code=503)]}

        assert await service.get_tool_dependency_graph("LINEAR_CREATE_ISSUE", "user-1") is None
        assert fake_sleep.delays == [0.5, 1.0]
        assert len(toolkit_api.calls_to("get_tool_dependency_graph")) == 3


class TestSoftFailures:
    @pytest.mark.asyncio
    async def test_toolkits_by_category(self, service, toolkit_api):
        toolkit_api.toolkits_by_category = {"email": ["gmail", "outlook"]}

        assert await service.get_toolkits_by_category("email", "user-1") == ["gmail", "outlook"]
        assert await service.get_toolkits_by_category("nothing", "user-1") == []

    @pytest.mark.asyncio
    async def test_execute_tool_failure_becomes_unsuccessful_payload(self, service, toolkit_api):
        toolkit_api.execution_results = {"LINEAR_CREATE_ISSUE": api_error("rejected", status_code=400)}

        result = await service.execute_tool("LINEAR_CREATE_ISSUE", {"title": "Bug"}, "user-1")

        assert result["successful"] is False
        assert "rejected" in result["error"]

    @pytest.mark.asyncio
    async def test_tool_executor_is_bound_to_user(self, service, toolkit_api):
        execute = service.tool_executor("user-1")

        await execute("LINEAR_CREATE_ISSUE", {"title": "Bug"})

        assert toolkit_api.calls_to("execute_tool") == [("LINEAR_CREATE_ISSUE", {"title": "Bug"}, "user-1")]

    @pytest.mark.asyncio
    async def test_calls_use_effective_user(self, toolkit_api, fake_sleep):
        settings = ToolkitFlowSettings(api_key="k", user_id="owner", multi_user_mode=False)
        service = ToolkitService(toolkit_api, settings, sleep=fake_sleep)

        await service.search_tools("create issue", "linear", "user-1")
        await service.initiate_connection("linear", "user-1")

        assert toolkit_api.calls_to("search_tools") == [("create issue", "linear", "owner")]
        assert toolkit_api.calls_to("initiate_connection") == [("linear", "owner")]
