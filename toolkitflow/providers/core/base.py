"""Provider base implementation with configuration and lifecycle management.

Every provider (LLM, remote toolkit API) shares the same lifecycle:
``initialize()`` is idempotent and guarded by a lock, ``shutdown()`` never
raises, and failures are reported as ``ProviderError`` carrying a
``ProviderErrorContext``.
"""

import asyncio
import logging
from typing import Generic, Optional, TypeVar

from pydantic import Field

from toolkitflow.core.errors import ErrorContext, ProviderError, ProviderErrorContext
from toolkitflow.core.models import StrictBaseModel

logger = logging.getLogger(__name__)


class ProviderSettings(StrictBaseModel):
    """Base settings for providers.

    Contains only fields that apply to all provider types.
    """

    timeout: float = Field(default=300.0, description="Operation timeout in seconds")


T = TypeVar("T", bound=ProviderSettings)


class Provider(Generic[T]):
    """Base class for all providers with lifecycle management."""

    settings_class: type[ProviderSettings] = ProviderSettings

    def __init__(self, name: str, provider_type: str, settings: Optional[T] = None):
        self.name = name
        self.provider_type = provider_type
        self.settings: T = settings if settings is not None else self.settings_class()  # type: ignore[assignment]
        self._initialized = False
        self._setup_lock = asyncio.Lock()
        logger.debug(f"Created provider: {name} ({provider_type}) with settings: {self.settings}")

    @property
    def initialized(self) -> bool:
        """Check if provider is initialized."""
        return self._initialized

    async def initialize(self) -> None:
        """Initialize the provider once.

        Raises:
            ProviderError: If initialization fails
        """
        if self._initialized:
            return

        async with self._setup_lock:
            if self._initialized:
                return
            try:
                await self._initialize()
                self._initialized = True
                logger.info(f"Provider '{self.name}' initialized successfully")
            except Exception as e:
                logger.error(f"Failed to initialize provider '{self.name}': {str(e)}")
                raise self._provider_error(
                    f"Failed to initialize provider: {str(e)}",
                    operation="initialize",
                    error_type="InitializationError",
                    cause=e,
                ) from e

    async def shutdown(self) -> None:
        """Close provider resources. Shutdown errors are logged, not raised."""
        if not self._initialized:
            return

        try:
            await self._shutdown()
            self._initialized = False
            logger.info(f"Provider '{self.name}' shut down successfully")
        except Exception as e:
            logger.error(f"Error shutting down provider '{self.name}': {str(e)}")

    async def _initialize(self) -> None:
        """Concrete initialization logic. Default implementation does nothing."""

    async def _shutdown(self) -> None:
        """Concrete shutdown logic. Default implementation does nothing."""

    def _provider_error(
        self,
        message: str,
        operation: str,
        error_type: str = "ProviderError",
        cause: Optional[Exception] = None,
        retry_count: int = 0,
    ) -> ProviderError:
        """Build a ProviderError with this provider's context."""
        return ProviderError(
            message=message,
            context=ErrorContext.create(
                flow_name="provider",
                error_type=error_type,
                error_location=f"{self.__class__.__name__}.{operation}",
                component=self.name,
                operation=operation,
            ),
            provider_context=ProviderErrorContext(
                provider_name=self.name,
                provider_type=self.provider_type,
                operation=operation,
                retry_count=retry_count,
            ),
            cause=cause,
        )
