"""Positional grouping of extracted workflow steps."""

from collections.abc import Iterable

from ..models import ExtractedStep, ToolkitGroup


def group_consecutive_steps(steps: Iterable[ExtractedStep]) -> list[ToolkitGroup]:
    """Collapse runs of consecutive same-toolkit steps into groups.

    Steps for the same toolkit separated by another toolkit's step stay in
    separate groups, so execution order across toolkits is preserved:
    linear, slack, linear gives three groups.

    Args:
        steps: Extracted steps in execution order

    Returns:
        Groups in execution order
    """
    groups: list[ToolkitGroup] = []
    current_toolkit: str | None = None
    current_use_cases: list[str] = []

    for step in steps:
        if step.toolkit_name != current_toolkit:
            if current_toolkit is not None:
                groups.append(ToolkitGroup(toolkit_name=current_toolkit, use_cases=current_use_cases))
            current_toolkit = step.toolkit_name
            current_use_cases = []
        current_use_cases.append(step.use_case)

    if current_toolkit is not None:
        groups.append(ToolkitGroup(toolkit_name=current_toolkit, use_cases=current_use_cases))
    return groups


def flatten_groups(groups: Iterable[ToolkitGroup]) -> list[ExtractedStep]:
    """Inverse of ``group_consecutive_steps``."""
    return [
        ExtractedStep(toolkit_name=group.toolkit_name, use_case=use_case)
        for group in groups
        for use_case in group.use_cases
    ]
