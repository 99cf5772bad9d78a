"""Error hierarchy and error management."""

from .errors import (
    BaseError,
    ConfigurationError,
    DependencyGraphUnavailableError,
    ErrorContext,
    ErrorManager,
    ExecutionError,
    ExtractionFailedError,
    NarrationError,
    NoConnectedToolkitsError,
    NoToolsFoundError,
    ProviderError,
    StepExecutionError,
    ToolkitAPIError,
    ToolkitNotConnectedError,
    WorkflowError,
    default_logging_handler,
    default_manager,
)
from .models import (
    ConfigurationErrorContext,
    ErrorContextData,
    ProviderErrorContext,
)

__all__ = [
    "BaseError",
    "ConfigurationError",
    "ConfigurationErrorContext",
    "DependencyGraphUnavailableError",
    "ErrorContext",
    "ErrorContextData",
    "ErrorManager",
    "ExecutionError",
    "ExtractionFailedError",
    "NarrationError",
    "NoConnectedToolkitsError",
    "NoToolsFoundError",
    "ProviderError",
    "ProviderErrorContext",
    "StepExecutionError",
    "ToolkitAPIError",
    "ToolkitNotConnectedError",
    "WorkflowError",
    "default_logging_handler",
    "default_manager",
]
