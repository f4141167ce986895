"""
Short-lived memoization of effective values per patient.

A hit returns the stored object unchanged, so callers can observe it by a
stable ``computed_at``. Every writer of context, tags or overrides calls
``invalidate`` right after its durable write.
"""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from vitals.domain.models import CacheEntry, EffectiveValues

logger = structlog.get_logger(__name__)


class EffectiveValueCache:
    def __init__(
        self,
        compute: Callable[[str], EffectiveValues],
        ttl_seconds: float = 2.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.compute = compute
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock or (lambda: datetime.now(UTC))
        self.logger = logger.bind(component="effective_value_cache")
        self._entries: dict[str, CacheEntry] = {}
        self._hits = 0
        self._misses = 0

    def get_effective_values(self, patient_id: str, force_refresh: bool = False) -> EffectiveValues:
        entry = self._entries.get(patient_id)
        if entry is not None and not force_refresh and self.clock() - entry.computed_at < self.ttl:
            self._hits += 1
            return entry.values

        self._misses += 1
        values = self.compute(patient_id)
        self._entries[patient_id] = CacheEntry(values=values, computed_at=values.computed_at)
        self.logger.debug(
            "effective_values_computed",
            patient_id=patient_id,
            forced=force_refresh,
            data_source=values.data_source,
        )
        return values

    def invalidate(self, patient_id: str) -> None:
        self._entries.pop(patient_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, int]:
        return {"entries": len(self._entries), "hits": self._hits, "misses": self._misses}
