"""Prompt resource model."""

import logging
import re
from typing import Any

from pydantic import Field

from toolkitflow.core.models import StrictBaseModel

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


class PromptResource(StrictBaseModel):
    """A registered prompt template using ``{{variable}}`` placeholders.

    Double braces keep templates free to contain literal JSON examples.
    """

    name: str = Field(..., description="Unique prompt name")
    template: str = Field(..., description="Template text with {{variable}} placeholders")
    description: str = Field(default="", description="What the prompt is used for")

    @property
    def variables(self) -> set[str]:
        """Names of all placeholders in the template."""
        return set(_PLACEHOLDER.findall(self.template))

    def format(self, **variables: Any) -> str:
        """Render the template.

        Args:
            **variables: Placeholder values; non-string values are str()-ed

        Returns:
            The rendered prompt

        Raises:
            ValueError: If a placeholder in the template has no value
        """
        missing = self.variables - set(variables)
        if missing:
            raise ValueError(
                f"Prompt '{self.name}' is missing values for: {', '.join(sorted(missing))}"
            )

        def _replace(match: re.Match[str]) -> str:
            return str(variables[match.group(1)])

        rendered = _PLACEHOLDER.sub(_replace, self.template)
        logger.debug(f"Rendered prompt '{self.name}' ({len(rendered)} chars)")
        return rendered
