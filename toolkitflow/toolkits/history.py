"""Bounded per-entity, per-toolkit history of tool executions.

Later workflow steps use the history as context, e.g. the id of an issue
created a minute ago. Each (entity, toolkit) key keeps at most ``max_per_key``
records; the oldest stored record is evicted first.
"""

import logging
import threading
from collections import deque
from collections.abc import Iterable
from typing import Any, Optional

from .models import ToolExecution, ToolResultEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_EXECUTIONS = 5
DEFAULT_RECENT_LIMIT = 3


def _is_usable(result: Any) -> bool:
    # Objects without a "successful" flag are treated as usable
    if not isinstance(result, dict):
        return False
    return result.get("successful", True) is True


class ExecutionHistoryStore:
    """In-memory execution history keyed by entity and toolkit."""

    def __init__(self, max_per_key: int = DEFAULT_MAX_EXECUTIONS):
        if max_per_key <= 0:
            raise ValueError("max_per_key must be positive")
        self._max_per_key = max_per_key
        self._executions: dict[str, dict[str, deque[ToolExecution]]] = {}
        self._lock = threading.RLock()

    @property
    def max_per_key(self) -> int:
        return self._max_per_key

    def store_execution(
        self,
        entity_id: str,
        toolkit: str,
        use_case: str,
        results: Iterable[ToolResultEntry],
    ) -> ToolExecution:
        """Append a record, evicting the oldest one past the cap."""
        record = ToolExecution(
            use_case=use_case,
            entity_id=entity_id,
            toolkit=toolkit,
            results=list(results),
        )
        with self._lock:
            by_toolkit = self._executions.setdefault(entity_id, {})
            records = by_toolkit.get(toolkit)
            if records is None:
                records = deque(maxlen=self._max_per_key)
                by_toolkit[toolkit] = records
            records.append(record)
            size = len(records)
        logger.debug(f"Stored execution for {entity_id}/{toolkit} ({size}/{self._max_per_key})")
        return record

    def get_toolkit_executions(self, entity_id: str, toolkit: str) -> list[ToolExecution]:
        """Return records for a key with only their usable results.

        Records with no usable result left are dropped. Stored records are
        never modified; filtered copies are returned.
        """
        with self._lock:
            records = list(self._executions.get(entity_id, {}).get(toolkit, ()))

        filtered: list[ToolExecution] = []
        for record in records:
            kept = [entry for entry in record.results if _is_usable(entry.result)]
            if kept:
                filtered.append(record.model_copy(update={"results": kept}))
        return filtered

    def get_recent_executions(
        self, entity_id: str, limit: int = DEFAULT_RECENT_LIMIT
    ) -> dict[str, list[ToolExecution]]:
        """Return the last ``limit`` records for every toolkit of an entity."""
        with self._lock:
            by_toolkit = self._executions.get(entity_id, {})
            return {toolkit: list(records)[-limit:] for toolkit, records in by_toolkit.items()}

    def clear_toolkit_executions(self, entity_id: str, toolkit: str) -> None:
        with self._lock:
            by_toolkit: Optional[dict[str, deque[ToolExecution]]] = self._executions.get(entity_id)
            if by_toolkit is not None:
                by_toolkit.pop(toolkit, None)

    def clear_all(self) -> None:
        with self._lock:
            self._executions.clear()
        logger.info("Execution history cleared")
