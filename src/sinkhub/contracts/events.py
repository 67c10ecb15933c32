# src/sinkhub/contracts/events.py
"""Records that flow through the dispatch pipeline.

EventRecord is the canonical log unit: created at each log call, enriched
by the processor chain, then handed to each sink. Span is the tracing unit
held by the TraceRegistry until it is flattened at process end.
"""

import re
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from sinkhub import __version__
from sinkhub.contracts.enums import Channel, Level, SpanKind

_NAME_SANITIZER = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True, slots=True)
class ComponentIdentity:
    """Who is emitting: the component class, its name and its version.

    Examples: ``ComponentIdentity("plugin", "sinkhub", "0.1.0")``,
    ``ComponentIdentity("core", "WordPress", "6.4")``.
    """

    kind: str
    name: str
    version: str = ""

    def metric_namespace(self, prefix: str) -> str:
        """Prometheus namespace ``<prefix>_<class>_<component>``."""
        parts = (prefix, self.kind, self.name)
        return "_".join(_NAME_SANITIZER.sub("_", part.lower()).strip("_") for part in parts)


@dataclass(frozen=True, slots=True)
class EventRecord:
    """One log event.

    Attributes:
        level: Severity of the event.
        channel: Execution mode of the process that emitted it.
        message: Normalized message text.
        context: Structured, namespaced key/value context (``http.*``,
            ``site.*``, ``code.*`` plus the fixed identity fields).
        code: Integer sub-classification.
        timestamp: Creation time (UTC).
    """

    level: Level
    channel: Channel
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    code: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def with_context(self, context: dict[str, Any]) -> "EventRecord":
        """Return a copy carrying a different context map."""
        return replace(self, context=context)


@dataclass(slots=True)
class Span:
    """A timed unit of work in the process-wide trace.

    ``duration_micros`` stays 0 until close() is called; afterwards it is fixed
    and further close() calls are ignored.
    """

    id: str
    trace_id: str
    name: str
    start_micros: int
    service_name: str
    parent_id: str | None = None
    duration_micros: int = 0
    tags: dict[str, Any] = field(default_factory=dict)
    kind: SpanKind | None = None
    closed: bool = False

    def close(self, end_micros: int) -> None:
        if self.closed:
            return
        self.duration_micros = max(0, end_micros - self.start_micros)
        self.closed = True

    def covers(self, micros: int) -> bool:
        """True if micros falls inside this span's time window.

        An open span covers everything from its start onwards.
        """
        if micros < self.start_micros:
            return False
        if not self.closed:
            return True
        return micros <= self.start_micros + self.duration_micros

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


# Identity under which sinkhub records its own self-metrics
SELF_IDENTITY = ComponentIdentity(kind="plugin", name="sinkhub", version=__version__)
