"""Base error classes with structured error context and management.

This module provides the foundation for error handling in toolkitflow:
the framework error types, the workflow error taxonomy raised by the
orchestrator components, and an error manager offering error boundaries.
"""

import inspect
import logging
import traceback
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

from .models import (
    ConfigurationErrorContext,
    ErrorContextData,
    ProviderErrorContext,
)

logger = logging.getLogger(__name__)

WORKFLOW_FLOW_NAME = "toolkit_workflow"


class ErrorContext:
    """Structured error context backed by a strict Pydantic model."""

    def __init__(self, context_data: ErrorContextData):
        """Initialize error context.

        Args:
            context_data: Required error context data
        """
        self._data = context_data

    @classmethod
    def create(
        cls, flow_name: str, error_type: str, error_location: str, component: str, operation: str
    ) -> "ErrorContext":
        """Create a new error context with required data.

        Args:
            flow_name: Name of the workflow
            error_type: Type of error
            error_location: Location in code
            component: Component raising error
            operation: Operation being performed

        Returns:
            New ErrorContext instance
        """
        context_data = ErrorContextData(
            flow_name=flow_name,
            error_type=error_type,
            error_location=error_location,
            component=component,
            operation=operation,
        )
        return cls(context_data)

    @property
    def data(self) -> ErrorContextData:
        """Get the context data."""
        return self._data

    @property
    def timestamp(self) -> datetime:
        """Get the context creation timestamp."""
        return self._data.timestamp

    def __str__(self) -> str:
        return f"ErrorContext({self._data.model_dump()})"


class BaseError(Exception):
    """Base class for all toolkitflow errors.

    Carries a message, a structured context and an optional cause so that
    errors can be logged and reported uniformly.
    """

    def __init__(self, message: str, context: ErrorContext, cause: Exception | None = None):
        """Initialize error.

        Args:
            message: Error message
            context: Required error context
            cause: Optional cause exception
        """
        self.message = message
        self.context = context
        self.cause = cause
        self.timestamp = datetime.now()
        self.traceback = self._capture_traceback()

        super().__init__(message)

    def _capture_traceback(self) -> str:
        """Capture the current traceback."""
        return traceback.format_exc()

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary.

        Returns:
            Dictionary representation of error
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context.data.model_dump(),
            "cause": str(self.cause) if self.cause else None,
            "traceback": self.traceback,
        }

    def __str__(self) -> str:
        cause_str = f" (caused by: {self.cause})" if self.cause else ""
        return f"{self.__class__.__name__}: {self.message}{cause_str}"


class ExecutionError(BaseError):
    """Error raised when execution inside an error boundary fails."""


class ConfigurationError(BaseError):
    """Error raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        context: ErrorContext,
        config_context: ConfigurationErrorContext,
        cause: Exception | None = None,
    ):
        """Initialize configuration error.

        Args:
            message: Error message
            context: Required error context
            config_context: Required configuration error context
            cause: Optional cause exception
        """
        self.config_context = config_context
        super().__init__(message, context, cause)


class ProviderError(BaseError):
    """Error raised when provider operations fail."""

    def __init__(
        self,
        message: str,
        context: ErrorContext,
        provider_context: ProviderErrorContext,
        cause: Exception | None = None,
    ):
        """Initialize provider error.

        Args:
            message: Error message
            context: Required error context
            provider_context: Required provider error context
            cause: Optional cause exception
        """
        self.provider_context = provider_context
        super().__init__(message, context, cause)


class ToolkitAPIError(ProviderError):
    """Error raised by the remote toolkit API.

    ``status_code`` holds the HTTP status when the failure came from an HTTP
    response; it is ``None`` for transport failures and tool-level errors.
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext,
        provider_context: ProviderErrorContext,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, context, provider_context, cause)

    @property
    def is_server_error(self) -> bool:
        """Whether the failure is a server-class (5xx) error."""
        if self.status_code is not None:
            return self.status_code >= 500
        return "500" in self.message


class WorkflowError(BaseError):
    """Base class for errors raised by the workflow components.

    Subclasses declare the component and operation they belong to; a context
    is built from those when the caller does not supply one.
    """

    component: str = "WorkflowOrchestrator"
    operation: str = "run"

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        if context is None:
            context = ErrorContext.create(
                flow_name=WORKFLOW_FLOW_NAME,
                error_type=type(self).__name__,
                error_location=f"{self.component}.{self.operation}",
                component=self.component,
                operation=self.operation,
            )
        super().__init__(message, context, cause)


class ExtractionFailedError(WorkflowError):
    """The model could not produce a usable list of workflow steps."""

    component = "WorkflowExtractor"
    operation = "extract"


class ToolkitNotConnectedError(WorkflowError):
    """One or more extracted steps reference toolkits the user has not connected."""

    component = "WorkflowExtractor"
    operation = "validate_connections"

    def __init__(
        self,
        missing_toolkits: list[str],
        connected_toolkits: list[str],
        context: ErrorContext | None = None,
    ):
        self.missing_toolkits = list(missing_toolkits)
        self.connected_toolkits = list(connected_toolkits)
        message = (
            f"Toolkits not connected: {', '.join(self.missing_toolkits)}. "
            f"Connected: {', '.join(self.connected_toolkits) or 'none'}"
        )
        super().__init__(message, context)


class NoConnectedToolkitsError(WorkflowError):
    """The user has no active connections at all."""

    component = "ToolkitService"
    operation = "get_connected_apps"


class NoToolsFoundError(WorkflowError):
    """A use case yielded no executable tools."""

    component = "DependencyResolver"
    operation = "prepare_group"

    def __init__(
        self,
        toolkit_name: str,
        use_case: str | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        self.toolkit_name = toolkit_name
        self.use_case = use_case
        if use_case:
            message = f"No tools found in {toolkit_name} for: {use_case}"
        else:
            message = f"No tool definitions available for {toolkit_name}"
        super().__init__(message, context, cause)


class DependencyGraphUnavailableError(WorkflowError):
    """The dependency graph for a tool could not be fetched.

    This error is never raised to callers; it is logged and the graph is
    treated as absent.
    """

    component = "ToolkitService"
    operation = "get_tool_dependency_graph"

    def __init__(self, tool_name: str, attempts: int, cause: Exception | None = None):
        self.tool_name = tool_name
        self.attempts = attempts
        super().__init__(
            f"Dependency graph unavailable for {tool_name} after {attempts} attempt(s)",
            cause=cause,
        )


class StepExecutionError(WorkflowError):
    """The model call for a single group failed."""

    component = "SequentialExecutor"
    operation = "execute_group"

    def __init__(self, toolkit_name: str, group_index: int, cause: Exception | None = None):
        self.toolkit_name = toolkit_name
        self.group_index = group_index
        super().__init__(f"Execution failed for {toolkit_name} (step {group_index + 1})", cause=cause)


class NarrationError(WorkflowError):
    """Transition narration between groups could not be generated."""

    component = "SequentialExecutor"
    operation = "narrate_transition"


ErrorHandlerFunc = Callable[[BaseError, dict[str, Any]], None | dict[str, Any]]
AsyncErrorHandlerFunc = Callable[
    [BaseError, dict[str, Any]], Awaitable[None | dict[str, Any]]
]

ErrorHandler = ErrorHandlerFunc | AsyncErrorHandlerFunc


class ErrorManager:
    """Centralized error management with customizable handlers.

    Error boundaries run every registered handler for an error and then
    re-raise it. Non-framework exceptions are converted into
    ``ExecutionError`` first.
    """

    def __init__(self) -> None:
        self._handlers: dict[type[BaseError], list[ErrorHandler]] = {}
        self._global_handlers: list[ErrorHandler] = []

    def register(self, error_type: type[BaseError], handler: ErrorHandler) -> None:
        """Register an error handler for a specific error type.

        Args:
            error_type: Type of error to handle
            handler: Handler function or coroutine
        """
        self._handlers.setdefault(error_type, []).append(handler)

    def register_global(self, handler: ErrorHandler) -> None:
        """Register a global error handler that processes all errors."""
        self._global_handlers.append(handler)

    async def _handle_error(self, error: BaseError, context: dict[str, Any]) -> None:
        handlers: list[ErrorHandler] = []
        for error_type, type_handlers in self._handlers.items():
            if isinstance(error, error_type):
                handlers.extend(type_handlers)
        handlers.extend(self._global_handlers)

        for handler in handlers:
            try:
                if inspect.iscoroutinefunction(handler):
                    await handler(error, context)
                else:
                    handler(error, context)
            except Exception as e:
                # Handler failures must not mask the original error
                logger.error(f"Error in error handler: {e}")
                logger.error(traceback.format_exc())

    @asynccontextmanager
    async def error_boundary(
        self, flow_name: str, component: str, operation: str
    ) -> AsyncIterator[None]:
        """Create an error boundary that handles errors with registered handlers.

        Args:
            flow_name: Name of the workflow
            component: Component name
            operation: Operation being performed

        Yields:
            None

        Raises:
            BaseError: Propagated after handling
        """
        context = {"flow_name": flow_name, "component": component, "operation": operation}

        try:
            yield

        except BaseError as e:
            await self._handle_error(e, context)
            raise

        except Exception as e:
            error_context = ErrorContext.create(
                flow_name=flow_name,
                error_type=type(e).__name__,
                error_location=f"{component}.{operation}",
                component=component,
                operation=operation,
            )
            error = ExecutionError(message=str(e), context=error_context, cause=e)
            await self._handle_error(error, context)
            raise error from e


default_manager = ErrorManager()


def default_logging_handler(error: BaseError, context: dict[str, Any]) -> None:
    """Default logging handler for errors.

    Args:
        error: Error to log
        context: Context data
    """
    logger.error(f"{error.__class__.__name__}: {error.message}")
    if error.cause:
        logger.debug(f"Caused by: {error.cause}")
    if error.context:
        logger.debug(f"Context: {error.context.data.model_dump()}")


default_manager.register_global(default_logging_handler)
