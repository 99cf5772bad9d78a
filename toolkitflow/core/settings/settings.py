"""Settings and configuration management for toolkitflow.

Settings are read from environment variables (``COMPOSIO_*`` names), an
optional ``.env`` file and an optional YAML/JSON configuration file. File
values override environment values.
"""

import json
import logging
from pathlib import Path
from typing import Annotated, Any, Literal, Optional

import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from toolkitflow.core.errors import ConfigurationError, ConfigurationErrorContext, ErrorContext

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://backend.composio.dev/api/v3"


class ToolkitFlowSettings(BaseSettings):
    """Settings for the toolkit plugin and its workflow orchestrator."""

    # Remote API
    api_key: Optional[str] = Field(default=None, validation_alias=AliasChoices("COMPOSIO_API_KEY", "api_key"))
    base_url: str = Field(default=DEFAULT_BASE_URL, validation_alias=AliasChoices("COMPOSIO_BASE_URL", "base_url"))
    request_timeout_seconds: float = Field(default=60.0, validation_alias=AliasChoices("COMPOSIO_REQUEST_TIMEOUT", "request_timeout_seconds"))

    # Users
    user_id: str = Field(default="default", validation_alias=AliasChoices("COMPOSIO_USER_ID", "COMPOSIO_DEFAULT_USER_ID", "user_id"))
    multi_user_mode: bool = Field(default=False, validation_alias=AliasChoices("COMPOSIO_MULTI_USER_MODE", "multi_user_mode"))
    allowed_toolkits: Annotated[list[str], NoDecode] = Field(default_factory=list, validation_alias=AliasChoices("COMPOSIO_ALLOWED_TOOLKITS", "allowed_toolkits"))

    # LLM temperatures
    workflow_extraction_temperature: float = Field(default=0.7, validation_alias=AliasChoices("COMPOSIO_WORKFLOW_EXTRACTION_TEMPERATURE", "workflow_extraction_temperature"))
    toolkit_extraction_temperature: float = Field(default=0.7, validation_alias=AliasChoices("COMPOSIO_TOOLKIT_EXTRACTION_TEMPERATURE", "toolkit_extraction_temperature"))
    tool_execution_temperature: float = Field(default=0.5, validation_alias=AliasChoices("COMPOSIO_TOOL_EXECUTION_TEMPERATURE", "tool_execution_temperature"))
    connection_extraction_temperature: float = Field(default=0.3, validation_alias=AliasChoices("COMPOSIO_TOOLKIT_CONNECTION_EXTRACTION_TEMPERATURE", "connection_extraction_temperature"))
    response_temperature: float = Field(default=0.7, validation_alias=AliasChoices("COMPOSIO_TOOLKIT_CONNECTION_RESPONSE_TEMPERATURE", "response_temperature"))
    removal_response_temperature: float = Field(default=0.7, validation_alias=AliasChoices("COMPOSIO_TOOLKIT_REMOVAL_RESPONSE_TEMPERATURE", "removal_response_temperature"))

    # Workflow
    history_limit: int = Field(default=5, validation_alias=AliasChoices("COMPOSIO_HISTORY_LIMIT", "history_limit"))
    recent_results_per_toolkit: int = Field(default=3, validation_alias=AliasChoices("COMPOSIO_RECENT_RESULTS_PER_TOOLKIT", "recent_results_per_toolkit"))
    dependency_graph_max_attempts: int = Field(default=2, validation_alias=AliasChoices("COMPOSIO_DEPENDENCY_GRAPH_MAX_ATTEMPTS", "dependency_graph_max_attempts"))
    dependency_graph_backoff_seconds: float = Field(default=1.0, validation_alias=AliasChoices("COMPOSIO_DEPENDENCY_GRAPH_BACKOFF", "dependency_graph_backoff_seconds"))
    max_dependency_iterations: int = Field(default=5, validation_alias=AliasChoices("COMPOSIO_MAX_DEPENDENCY_ITERATIONS", "max_dependency_iterations"))
    dependency_resolution_mode: Literal["graph", "iterative"] = Field(default="graph", validation_alias=AliasChoices("COMPOSIO_DEPENDENCY_RESOLUTION_MODE", "dependency_resolution_mode"))
    max_context_bytes: int = Field(default=1000, validation_alias=AliasChoices("COMPOSIO_MAX_CONTEXT_BYTES", "max_context_bytes"))
    max_intermediate_chars: int = Field(default=500, validation_alias=AliasChoices("COMPOSIO_MAX_INTERMEDIATE_CHARS", "max_intermediate_chars"))
    recent_exchanges_limit: int = Field(default=3, validation_alias=AliasChoices("COMPOSIO_RECENT_EXCHANGES", "recent_exchanges_limit"))
    mapping_max_age_days: int = Field(default=30, validation_alias=AliasChoices("COMPOSIO_MAPPING_MAX_AGE_DAYS", "mapping_max_age_days"))

    log_level: str = Field(default="INFO", validation_alias=AliasChoices("COMPOSIO_LOG_LEVEL", "log_level"))

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("allowed_toolkits", mode="before")
    @classmethod
    def split_allowed_toolkits(cls, v: Any) -> Any:
        """Accept a comma separated string as well as a list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator(
        "history_limit",
        "recent_results_per_toolkit",
        "dependency_graph_max_attempts",
        "max_dependency_iterations",
        "max_context_bytes",
        "max_intermediate_chars",
        "recent_exchanges_limit",
        "mapping_max_age_days",
    )
    @classmethod
    def validate_positive_integers(cls, v: int) -> int:
        """Validate positive integer fields."""
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator(
        "workflow_extraction_temperature",
        "toolkit_extraction_temperature",
        "tool_execution_temperature",
        "connection_extraction_temperature",
        "response_temperature",
        "removal_response_temperature",
    )
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        """Validate temperature range."""
        if not (0.0 <= v <= 2.0):
            raise ValueError("Temperature must be between 0.0 and 2.0")
        return v

    def require_api_key(self) -> str:
        """Return the API key or raise ConfigurationError when it is missing."""
        if not self.api_key:
            raise ConfigurationError(
                message="COMPOSIO_API_KEY is required",
                context=ErrorContext.create(
                    flow_name="plugin_setup",
                    error_type="MissingSetting",
                    error_location="ToolkitFlowSettings.require_api_key",
                    component="ToolkitFlowSettings",
                    operation="require_api_key",
                ),
                config_context=ConfigurationErrorContext(
                    config_key="api_key",
                    config_section="composio",
                    expected_type="str",
                    actual_value="None",
                ),
            )
        return self.api_key


def _read_config_file(config_file: Path) -> dict[str, Any]:
    with open(config_file, "r") as f:
        if config_file.suffix.lower() in [".yml", ".yaml"]:
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {config_file} must contain a mapping")
    # A file may keep plugin settings under a top level "composio" section
    section = data.get("composio")
    return section if isinstance(section, dict) else data


def load_settings(config_file: Optional[Path] = None, **overrides: Any) -> ToolkitFlowSettings:
    """Load settings from the environment, an optional file and explicit overrides.

    Args:
        config_file: Optional YAML or JSON configuration file
        **overrides: Values that take precedence over every other source

    Returns:
        Validated settings instance

    Raises:
        ConfigurationError: If the file cannot be read or the values are invalid
    """
    values: dict[str, Any] = {}
    if config_file is not None:
        config_file = Path(config_file)
        try:
            values.update(_read_config_file(config_file))
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Failed to load configuration from file {config_file}: {e}")
            raise ConfigurationError(
                message=f"Could not read configuration file {config_file}",
                context=ErrorContext.create(
                    flow_name="plugin_setup",
                    error_type=type(e).__name__,
                    error_location="load_settings",
                    component="ToolkitFlowSettings",
                    operation="load_settings",
                ),
                config_context=ConfigurationErrorContext(
                    config_key="config_file",
                    config_section="composio",
                    expected_type="yaml|json mapping",
                    actual_value=str(config_file),
                ),
                cause=e,
            ) from e
    values.update(overrides)

    try:
        settings = ToolkitFlowSettings(**values)
    except ValueError as e:
        raise ConfigurationError(
            message=f"Invalid toolkit settings: {e}",
            context=ErrorContext.create(
                flow_name="plugin_setup",
                error_type=type(e).__name__,
                error_location="load_settings",
                component="ToolkitFlowSettings",
                operation="load_settings",
            ),
            config_context=ConfigurationErrorContext(
                config_key="*",
                config_section="composio",
                expected_type="ToolkitFlowSettings",
                actual_value=", ".join(sorted(values)),
            ),
            cause=e,
        ) from e

    logger.info("Configuration loaded successfully")
    return settings
