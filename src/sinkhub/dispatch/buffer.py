# src/sinkhub/dispatch/buffer.py
"""Bounded buffer for deferred sink payloads.

Ring buffer that drops the oldest payload on overflow, so a runaway process
cannot grow a sink's pending batch without limit.

Key design decisions:
- Ring buffer via deque(maxlen=N): automatic oldest-first eviction
- Overflow is counted by checking was_full BEFORE append (deque evicts during)
- Aggregate logging: one warning per 100 drops
"""

from collections import deque
from collections.abc import Iterator
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class BoundedBuffer:
    """Ring buffer that drops oldest payloads on overflow.

    Thread Safety:
        NOT thread-safe. Sinks run on the calling thread only.

    Attributes:
        dropped_count: Total number of payloads dropped due to overflow.

    Example:
        buffer = BoundedBuffer(max_size=1000)
        buffer.append(payload)
        batch = buffer.drain()
    """

    _LOG_INTERVAL = 100

    def __init__(self, max_size: int = 10_000, *, owner: str = "") -> None:
        """Initialize the bounded buffer.

        Args:
            max_size: Maximum number of payloads kept. Defaults to 10,000.
            owner: Sink id, for diagnostics.

        Raises:
            ValueError: If max_size < 1.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._buffer: deque[Any] = deque(maxlen=max_size)
        self._owner = owner
        self._dropped_count: int = 0
        self._last_logged_drop_count: int = 0

    def append(self, payload: Any) -> None:
        was_full = len(self._buffer) == self._buffer.maxlen
        self._buffer.append(payload)
        if was_full:
            self._dropped_count += 1
            if self._dropped_count - self._last_logged_drop_count >= self._LOG_INTERVAL:
                logger.warning(
                    "Sink buffer overflow - payloads dropped",
                    sink_id=self._owner,
                    dropped_since_last_log=self._LOG_INTERVAL,
                    dropped_total=self._dropped_count,
                    buffer_size=self._buffer.maxlen,
                )
                self._last_logged_drop_count = self._dropped_count

    def pop_batch(self, max_count: int) -> list[Any]:
        """Pop up to max_count payloads, oldest first."""
        return [self._buffer.popleft() for _ in range(min(max_count, len(self._buffer)))]

    def drain(self) -> list[Any]:
        """Pop everything, oldest first."""
        return self.pop_batch(len(self._buffer))

    @property
    def dropped_count(self) -> int:
        return self._dropped_count

    def __len__(self) -> int:
        return len(self._buffer)

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._buffer))
