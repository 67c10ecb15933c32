# src/sinkhub/storage/memory.py
"""Fast in-memory storage engine.

A bounded ring of record maps with insertion times. Used by storage sinks
configured with ``engine: memory``, and as the reference implementation of
StorageProtocol in tests.
"""

import time
from collections import deque
from collections.abc import Callable, Mapping
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

LAYOUT_VERSION = "1"


class InMemoryStorage:
    """Ring-buffer StorageProtocol implementation.

    Args:
        max_records: Capacity; the oldest record is evicted on overflow.
        clock: Seconds since the epoch, for age-based purge.
    """

    def __init__(self, max_records: int = 10_000, *, clock: Callable[[], float] = time.time) -> None:
        if max_records < 1:
            raise ValueError(f"max_records must be >= 1, got {max_records}")
        self._records: deque[tuple[float, dict[str, Any]]] = deque(maxlen=max_records)
        self._clock = clock
        self.initialized = False
        self.version = LAYOUT_VERSION

    def initialize(self) -> None:
        self.initialized = True

    def finalize(self) -> None:
        self._records.clear()
        self.initialized = False

    def update(self, from_version: str) -> None:
        if from_version != self.version:
            logger.info("Storage layout updated", from_version=from_version, to_version=self.version)
        self.version = LAYOUT_VERSION

    def insert(self, record: Mapping[str, Any]) -> None:
        self._records.append((self._clock(), dict(record)))

    @staticmethod
    def _matches(record: Mapping[str, Any], filters: Mapping[str, Any] | None) -> bool:
        if not filters:
            return True
        return all(key in record and record[key] == value for key, value in filters.items())

    def list(
        self,
        filters: Mapping[str, Any] | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Matching records, newest first."""
        matching = [dict(record) for _, record in reversed(self._records) if self._matches(record, filters)]
        end = None if limit is None else offset + limit
        return matching[offset:end]

    def count(self, filters: Mapping[str, Any] | None = None) -> int:
        return sum(1 for _, record in self._records if self._matches(record, filters))

    def purge(self, max_age_seconds: float | None = None, max_count: int | None = None) -> int:
        """Drop records older than max_age_seconds, then all but the newest max_count.

        Returns:
            Number of records removed.
        """
        before = len(self._records)
        if max_age_seconds is not None:
            cutoff = self._clock() - max_age_seconds
            kept = [entry for entry in self._records if entry[0] >= cutoff]
            self._records = deque(kept, maxlen=self._records.maxlen)
        if max_count is not None:
            excess = len(self._records) - max(max_count, 0)
            for _ in range(max(excess, 0)):
                self._records.popleft()
        removed = before - len(self._records)
        if removed:
            logger.debug("Storage purged", removed=removed, remaining=len(self._records))
        return removed

    def __len__(self) -> int:
        return len(self._records)
