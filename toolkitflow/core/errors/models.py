"""Strict Pydantic models for error handling."""

from datetime import datetime

from pydantic import Field

from toolkitflow.core.models import StrictBaseModel


class ErrorContextData(StrictBaseModel):
    """Strict error context data model."""

    flow_name: str = Field(..., description="Name of the workflow where the error occurred")
    error_type: str = Field(..., description="Type of error")
    error_location: str = Field(..., description="Location in code where error occurred")
    timestamp: datetime = Field(default_factory=datetime.now, description="When error occurred")

    component: str = Field(..., description="Component that raised the error")
    operation: str = Field(..., description="Operation being performed")


class ProviderErrorContext(StrictBaseModel):
    """Strict provider error context."""

    provider_name: str = Field(..., description="Name of the provider")
    provider_type: str = Field(..., description="Type of provider")
    operation: str = Field(..., description="Operation that failed")
    retry_count: int = Field(..., description="Number of retries attempted")


class ConfigurationErrorContext(StrictBaseModel):
    """Strict configuration error context."""

    config_key: str = Field(..., description="Configuration key that failed")
    config_section: str = Field(..., description="Configuration section")
    expected_type: str = Field(..., description="Expected type of configuration")
    actual_value: str = Field(..., description="Actual value provided")
