"""Base models for everything toolkitflow passes between components.

Extracted steps, prepared groups, history records and cached mappings are
all validated when built, so a malformed model reply or API payload fails
where it enters the system rather than inside a running workflow.
"""

from pydantic import BaseModel, ConfigDict


def strict_config(frozen: bool) -> ConfigDict:
    """Strict validation with unknown fields rejected.

    Enum members stay enum objects (``MappingConfidence.rank`` relies on it).
    """
    return ConfigDict(
        strict=True,
        extra="forbid",
        validate_assignment=True,
        validate_default=True,
        frozen=frozen,
        use_enum_values=False,
        arbitrary_types_allowed=False,
    )


class StrictBaseModel(BaseModel):
    """Immutable strict model; copies are made with ``model_copy(update=...)``."""

    model_config = strict_config(frozen=True)


class MutableStrictBaseModel(BaseModel):
    """Strict model whose fields may be reassigned, still validated on assignment.

    Only resolver mappings need this, for their usage counters.
    """

    model_config = strict_config(frozen=False)


__all__ = [
    "StrictBaseModel",
    "MutableStrictBaseModel",
    "strict_config",
]
