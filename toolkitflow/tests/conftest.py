"""Shared pytest fixtures."""

from datetime import datetime

import pytest

from toolkitflow.core.settings import ToolkitFlowSettings
from toolkitflow.providers.toolkits.models import ConnectedAccount
from toolkitflow.toolkits import prompts  # noqa: F401  registers prompts
from toolkitflow.toolkits.history import ExecutionHistoryStore
from toolkitflow.toolkits.service import ToolkitService

from .test_utils import FakeLLMProvider, FakeToolkitProvider, Recorder


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def settings():
    return ToolkitFlowSettings(
        api_key="test-key",
        user_id="default-user",
        multi_user_mode=True,
        allowed_toolkits=[],
    )


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 6, 1, 12, 0, 0))


@pytest.fixture
def toolkit_api():
    api = FakeToolkitProvider()
    api.connections = [
        ConnectedAccount(id="ca-linear", toolkit_slug="linear", status="ACTIVE", user_id="user-1"),
        ConnectedAccount(id="ca-slack", toolkit_slug="slack", status="ACTIVE", user_id="user-1"),
    ]
    return api


@pytest.fixture
def llm():
    return FakeLLMProvider()


@pytest.fixture
def service(toolkit_api, settings, fake_sleep):
    return ToolkitService(toolkit_api, settings, sleep=fake_sleep)


@pytest.fixture
def history():
    return ExecutionHistoryStore()


@pytest.fixture
def recorder():
    return Recorder()
