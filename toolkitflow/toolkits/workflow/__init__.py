"""Multi-step workflow components."""

from .dependencies import DependencyResolver, IterativeDependencyResolver
from .executor import SequentialExecutor
from .extractor import WorkflowExtractor
from .grouping import flatten_groups, group_consecutive_steps
from .orchestrator import WorkflowOrchestrator

__all__ = [
    "DependencyResolver",
    "IterativeDependencyResolver",
    "SequentialExecutor",
    "WorkflowExtractor",
    "WorkflowOrchestrator",
    "flatten_groups",
    "group_consecutive_steps",
]
