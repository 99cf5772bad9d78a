"""toolkitflow - toolkit integration plugin with a multi-step workflow orchestrator.

The package lets a conversational agent discover, connect, disconnect and
invoke third-party toolkits through a remote tool-execution API. The LLM is
used for intent extraction, toolkit name resolution, planning and response
formatting.
"""

from .plugin import ToolkitPlugin

__version__ = "0.1.0"

__all__ = ["ToolkitPlugin", "__version__"]
