"""Agent actions exposed by the toolkit plugin."""

from .base import ActionRequest, ToolkitAction
from .connect import ConnectToolkitAction
from .disconnect import DisconnectToolkitAction
from .execute import ExecuteToolkitToolsAction
from .listing import BrowseToolkitsAction, ListConnectedToolkitsAction
from .workflow import ToolkitWorkflowAction

__all__ = [
    "ActionRequest",
    "BrowseToolkitsAction",
    "ConnectToolkitAction",
    "DisconnectToolkitAction",
    "ExecuteToolkitToolsAction",
    "ListConnectedToolkitsAction",
    "ToolkitAction",
    "ToolkitWorkflowAction",
]
