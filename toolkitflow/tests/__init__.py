"""Test suite for toolkitflow.

Covers the workflow components (extraction, grouping, dependency resolution,
sequential execution), the history and name-resolution stores, the toolkit
service and provider, settings, prompts and the agent actions.
"""

import logging

# Keep test output quiet
logging.basicConfig(level=logging.WARNING)
