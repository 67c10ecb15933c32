# src/sinkhub/core/context.py
"""Process-wide state, constructed explicitly and passed by reference.

Everything that must be shared across all dispatchers of one process lives
on a ProcessContext: the trace id, the resolved channel, per-level event
counters, sampling elections, the sink ban list, the lifecycle coordinator,
and the lazily created metrics and trace registries. Per-sink resources
that must exist once per process (in-memory stores, batch buffers) are
kept through shared(). Tests build a fresh context per case; nothing here
is a module-level global.

Thread Safety:
    One logical thread of control per process. Elections, counters and the
    span stack are plain mutable state; callers running dispatchers from
    several threads must confine them to one thread or guard this object.
"""

from __future__ import annotations

import random
import time
import uuid
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from sinkhub.contracts.enums import Channel, Level
from sinkhub.core.environment import detect_channel
from sinkhub.core.hashing import PrivacyHasher
from sinkhub.core.lifecycle import LifecycleCoordinator

if TYPE_CHECKING:
    from sinkhub.registry.metrics import MetricsRegistry
    from sinkhub.registry.traces import TraceRegistry

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _now_micros() -> int:
    return time.time_ns() // 1000


class ProcessContext:
    """Shared state for one process lifetime.

    Args:
        channel_resolver: Called once, on first channel access.
        environment: Environment stage (production, staging, development...).
        namespace_prefix: Prometheus namespace prefix for metrics.
        hasher: Privacy hasher; defaults to a keyed per-process one.
        rng: Random source for sampling elections.
        clock: Current time in microseconds since the epoch.
        request_start_micros: When the surrounding request started, if known
            and earlier than process start (drives the Initialization span).
        lifecycle: Process-end coordinator.
    """

    def __init__(
        self,
        *,
        channel_resolver: Callable[[], Channel] = detect_channel,
        environment: str = "production",
        namespace_prefix: str = "wordpress",
        hasher: PrivacyHasher | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], int] = _now_micros,
        request_start_micros: int | None = None,
        lifecycle: LifecycleCoordinator | None = None,
    ) -> None:
        self._channel_resolver = channel_resolver
        self._channel: Channel | None = None
        self._trace_id: str | None = None
        self.environment = environment
        self.namespace_prefix = namespace_prefix
        self.hasher = hasher if hasher is not None else PrivacyHasher()
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock
        self.lifecycle = lifecycle if lifecycle is not None else LifecycleCoordinator()
        self.process_start_micros = clock()
        self.request_start_micros = request_start_micros
        self._level_counts: dict[Level, int] = dict.fromkeys(Level, 0)
        self._elections: dict[str, bool] = {}
        self._banned: dict[str, str] = {}
        self._once: set[str] = set()
        self._shared: dict[str, Any] = {}
        self._metrics: MetricsRegistry | None = None
        self._traces: TraceRegistry | None = None
        self.console_buffer: list[dict[str, Any]] = []
        self.dispatching = False

    @property
    def trace_id(self) -> str:
        """32 hex chars, generated on first access and stable afterwards."""
        if self._trace_id is None:
            self._trace_id = uuid.uuid4().hex
        return self._trace_id

    @property
    def channel(self) -> Channel:
        """Execution channel, resolved on first access and stable afterwards."""
        if self._channel is None:
            try:
                self._channel = self._channel_resolver()
            except Exception as e:
                logger.warning("Channel resolution failed", error=str(e))
                self._channel = Channel.UNKNOWN
        return self._channel

    def increment(self, level: Level) -> None:
        self._level_counts[level] += 1

    def count(self, level: Level) -> int:
        return self._level_counts[level]

    def level_counts(self) -> dict[Level, int]:
        return dict(self._level_counts)

    def election(self, sink_id: str) -> bool | None:
        return self._elections.get(sink_id)

    def record_election(self, sink_id: str, elected: bool) -> bool:
        """Store an election unless one exists; return the stored value."""
        return self._elections.setdefault(sink_id, elected)

    def ban(self, sink_id: str, reason: str) -> None:
        if sink_id in self._banned:
            return
        self._banned[sink_id] = reason
        logger.warning("Sink banned for the rest of the process", sink_id=sink_id, reason=reason)

    def is_banned(self, sink_id: str) -> bool:
        return sink_id in self._banned

    @property
    def banned(self) -> dict[str, str]:
        return dict(self._banned)

    def once(self, key: str) -> bool:
        """True the first time key is seen in this process, False afterwards."""
        if key in self._once:
            return False
        self._once.add(key)
        return True

    def shared(self, key: str, factory: Callable[[], T]) -> T:
        """Object stored under key for the rest of the process, built on first use."""
        if key not in self._shared:
            self._shared[key] = factory()
        return self._shared[key]  # type: ignore[no-any-return]

    def find_shared(self, key: str) -> Any:
        """Object stored under key, or None if shared() never built it."""
        return self._shared.get(key)

    @property
    def metrics(self) -> MetricsRegistry:
        """Process-wide metrics registry, created on first access."""
        if self._metrics is None:
            from sinkhub.registry.metrics import MetricsRegistry

            self._metrics = MetricsRegistry(
                channel=self.channel,
                environment=self.environment,
                trace_id=self.trace_id,
                prefix=self.namespace_prefix,
            )
        return self._metrics

    @property
    def traces(self) -> TraceRegistry:
        """Process-wide trace registry, bootstrapped on first access."""
        if self._traces is None:
            from sinkhub.registry.traces import TraceRegistry

            self._traces = TraceRegistry(trace_id=self.trace_id, clock=self.clock)
            self._traces.bootstrap(
                channel=self.channel,
                process_start_micros=self.process_start_micros,
                request_start_micros=self.request_start_micros,
            )
        return self._traces

    def reset(self) -> None:
        """Drop all per-process state; a new trace id is drawn on next access."""
        self._trace_id = None
        self._channel = None
        self._level_counts = dict.fromkeys(Level, 0)
        self._elections.clear()
        self._banned.clear()
        self._once.clear()
        self._shared.clear()
        self._metrics = None
        self._traces = None
        self.console_buffer.clear()
        self.lifecycle = LifecycleCoordinator()
        self.process_start_micros = self.clock()
        self.dispatching = False
