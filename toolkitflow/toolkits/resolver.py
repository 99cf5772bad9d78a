"""Learning cache from user-supplied toolkit names to canonical toolkit slugs.

Users say "google calendar", "Google-Calendar" or "googlecalendar" for the
same toolkit. Resolved names are cached under the lowercased term plus a set
of separator variations, and lookups fall back to a separator-insensitive
comparison.
"""

import logging
import re
import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from typing import Optional

from toolkitflow.core.models import StrictBaseModel

from .models import MappingConfidence, ToolkitMapping

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = timedelta(days=30)
_SEPARATORS = re.compile(r"[-_\s]+")


def normalize_search_term(term: str) -> str:
    """Lowercase a term and strip '-', '_' and whitespace."""
    return _SEPARATORS.sub("", term.lower())


def generate_variations(search_term: str) -> list[str]:
    """Separator-swapped and separator-free spellings of a term."""
    term = search_term.lower()
    variations: list[str] = []
    separators = ["_", " ", "-"]
    for sep in separators:
        if sep in term:
            for other in separators:
                if other != sep:
                    variations.append(term.replace(sep, other))
    stripped = normalize_search_term(term)
    if stripped != term:
        variations.append(stripped)
    # Preserve order, drop duplicates and the term itself
    seen = {term}
    unique = []
    for variation in variations:
        if variation not in seen:
            seen.add(variation)
            unique.append(variation)
    return unique


class ResolverStats(StrictBaseModel):
    total_mappings: int
    unique_toolkits: int
    avg_usage_count: float


class ToolkitNameResolver:
    """Caches and fuzzy-matches toolkit search terms."""

    def __init__(self, clock: Callable[[], datetime] = datetime.now):
        self._clock = clock
        self._mappings: dict[str, ToolkitMapping] = {}
        self._available_toolkits: set[str] = set()
        self._last_updated: Optional[datetime] = None
        self._lock = threading.RLock()

    def get_mapping(self, search_term: str) -> Optional[ToolkitMapping]:
        """Look up a term: exact (case-insensitive) first, then normalized.

        A hit bumps usage and ``last_used``. A normalized hit also stores an
        exact entry for the literal term. Returns a copy of the mapping.
        """
        key = search_term.lower()
        with self._lock:
            exact = self._mappings.get(key)
            if exact is not None:
                self._touch(exact)
                logger.info(f"Exact match found for '{search_term}': {exact.resolved_toolkit}")
                return exact.model_copy()

            normalized = normalize_search_term(search_term)
            for candidate_key, mapping in list(self._mappings.items()):
                if normalize_search_term(candidate_key) != normalized:
                    continue
                self._touch(mapping)
                logger.info(f"Fuzzy match found for '{search_term}': {mapping.resolved_toolkit}")
                self.store_mapping(mapping.model_copy(update={"search_term": key, "usage_count": 1}))
                return mapping.model_copy()

        logger.info(f"No cached mapping found for '{search_term}'")
        return None

    def store_mapping(self, mapping: ToolkitMapping) -> ToolkitMapping:
        """Insert a mapping or bump an identical one, then seed its variations."""
        key = mapping.search_term.lower()
        now = self._clock()
        with self._lock:
            existing = self._mappings.get(key)
            if existing is not None and existing.resolved_toolkit == mapping.resolved_toolkit:
                existing.usage_count += 1
                existing.last_used = now
                if mapping.confidence.rank > existing.confidence.rank:
                    existing.confidence = mapping.confidence
                if mapping.category and not existing.category:
                    existing.category = mapping.category
                stored = existing
                logger.info(f"Updated existing mapping for '{key}': usage count = {existing.usage_count}")
            else:
                stored = mapping.model_copy(update={"search_term": key, "last_used": now})
                self._mappings[key] = stored
                logger.info(f"Stored new mapping: '{key}' -> '{mapping.resolved_toolkit}'")

            variations = generate_variations(key)
            stored.variations = variations
            for variation in variations:
                if variation not in self._mappings:
                    self._mappings[variation] = stored.model_copy(
                        update={"search_term": variation, "usage_count": 0, "variations": []}
                    )
            return stored.model_copy()

    def clean_old_mappings(self, max_age: timedelta = DEFAULT_MAX_AGE) -> int:
        """Remove mappings that are old, rarely used and not high-confidence.

        Returns:
            Number of removed entries
        """
        cutoff = self._clock() - max_age
        with self._lock:
            stale = [
                key
                for key, mapping in self._mappings.items()
                if mapping.usage_count < 2
                and mapping.last_used < cutoff
                and mapping.confidence is not MappingConfidence.HIGH
            ]
            for key in stale:
                del self._mappings[key]
        if stale:
            logger.info(f"Cleaned up {len(stale)} old mappings")
        return len(stale)

    def update_available_toolkits(self, toolkits: Iterable[str]) -> None:
        with self._lock:
            names = [toolkit.lower() for toolkit in toolkits]
            self._available_toolkits.update(names)
            self._last_updated = self._clock()
        logger.info(f"Updated available toolkits: {len(names)} toolkits")

    def get_available_toolkits(self) -> list[str]:
        with self._lock:
            return sorted(self._available_toolkits)

    @property
    def last_updated(self) -> Optional[datetime]:
        return self._last_updated

    def get_stats(self) -> ResolverStats:
        with self._lock:
            mappings = list(self._mappings.values())
        total_usage = sum(mapping.usage_count for mapping in mappings)
        return ResolverStats(
            total_mappings=len(mappings),
            unique_toolkits=len({mapping.resolved_toolkit for mapping in mappings}),
            avg_usage_count=total_usage / len(mappings) if mappings else 0.0,
        )

    def clear_all(self) -> None:
        with self._lock:
            self._mappings.clear()
            self._available_toolkits.clear()
            self._last_updated = None
        logger.info("Cleared all mappings and toolkits")

    def _touch(self, mapping: ToolkitMapping) -> None:
        mapping.usage_count += 1
        mapping.last_used = self._clock()
