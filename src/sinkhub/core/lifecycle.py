# src/sinkhub/core/lifecycle.py
"""Explicit process-end coordination.

Deferred work (buffered flushes, trace and metrics rendering, socket
teardown) is registered here and run by a single finalize() call at the end
of the process's main routine, instead of through an implicit shutdown hook.
"""

import heapq
import itertools
from collections.abc import Callable

import structlog

logger = structlog.get_logger(__name__)

# Ascending order: lower runs first.
PRIORITY_APPLICATION = 0
PRIORITY_SELF_METRICS = 90
PRIORITY_METRICS = 100
PRIORITY_TRACES = 100
PRIORITY_FLUSH = 200
PRIORITY_CLEANUP = 1000


class LifecycleCoordinator:
    """Runs process-end callbacks exactly once, in ascending priority order.

    Callbacks sharing a priority run in registration order. Each callback
    is isolated: an exception is logged and the remaining callbacks still
    run. Callbacks registered while finalize() is running are still run if
    their priority has not been passed yet; later ones run right after.
    """

    def __init__(self) -> None:
        self._queue: list[tuple[int, int, str, Callable[[], None]]] = []
        self._sequence = itertools.count()
        self._finalized = False
        self._running = False
        self._failures = 0

    def on_process_end(self, callback: Callable[[], None], priority: int = PRIORITY_FLUSH, *, name: str = "") -> bool:
        """Register callback for process end.

        Returns:
            False if the coordinator has already finalized (callback dropped).
        """
        if self._finalized and not self._running:
            logger.warning(
                "Process-end callback registered after finalize - dropped",
                callback=name or getattr(callback, "__qualname__", repr(callback)),
                priority=priority,
            )
            return False
        label = name or getattr(callback, "__qualname__", repr(callback))
        heapq.heappush(self._queue, (priority, next(self._sequence), label, callback))
        return True

    def finalize(self) -> None:
        """Run all registered callbacks. Subsequent calls are no-ops."""
        if self._finalized:
            return
        self._finalized = True
        self._running = True
        try:
            while self._queue:
                priority, _, label, callback = heapq.heappop(self._queue)
                try:
                    callback()
                except Exception as e:
                    self._failures += 1
                    logger.error(
                        "Process-end callback failed",
                        callback=label,
                        priority=priority,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
        finally:
            self._running = False

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def failures(self) -> int:
        return self._failures
