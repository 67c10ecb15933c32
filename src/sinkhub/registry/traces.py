# src/sinkhub/registry/traces.py
"""Span tree for the whole process, flattened once at process end.

The registry keeps every span by id plus an explicit stack of open user
spans. A span started without an explicit parent attaches to:

1. the top of the open-span stack, else
2. the latest-starting lifecycle ("Core") span whose time window contains
   the new span's start, else
3. the Execution span.

close() force-closes whatever is still open, prunes empty tags and caches
the flattened list; later calls return the cached list unchanged.
"""

import uuid
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from sinkhub.contracts.enums import Channel, SpanKind
from sinkhub.contracts.events import Span

logger = structlog.get_logger(__name__)

AUTO_PARENT = "auto"

ROOT_SERVICE = "Main Request"
SERVER_SERVICE = "Server"
CORE_SERVICE = "Core"
DEFAULT_SERVICE = "Application"


def _span_id() -> str:
    return uuid.uuid4().hex[:16]


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str | list | tuple | dict | set):
        return len(value) == 0
    return False


class TraceRegistry:
    """Registry of spans sharing one trace id.

    Args:
        trace_id: Process-wide trace identifier (32 hex chars).
        clock: Current time in microseconds.
    """

    def __init__(self, *, trace_id: str, clock: Callable[[], int]) -> None:
        self.trace_id = trace_id
        self._clock = clock
        self._spans: dict[str, Span] = {}
        self._stack: list[str] = []
        self._core: list[str] = []
        self._phases: dict[str, str] = {}
        self._root_id: str | None = None
        self._default_parent: str | None = None
        self._flattened: list[Span] | None = None

    # -- bootstrap ------------------------------------------------------------

    def bootstrap(
        self,
        *,
        channel: Channel,
        process_start_micros: int,
        request_start_micros: int | None = None,
    ) -> None:
        """Create the root span and the fixed lifecycle spans.

        Root is ``CALL:<channel>`` (service "Main Request", kind SERVER).
        When the request started before the process did, the gap is
        covered by a closed "Initialization" server span. "Execution" is the
        default parent; a "Load" core phase is opened under it.
        """
        if self._root_id is not None:
            return
        start = process_start_micros
        if request_start_micros is not None and request_start_micros < process_start_micros:
            start = request_start_micros
        root = self._add(
            name=f"CALL:{channel}",
            service=ROOT_SERVICE,
            parent_id=None,
            start=start,
            kind=SpanKind.SERVER,
        )
        self._root_id = root.id
        if start < process_start_micros:
            init = self._add(
                name="Initialization",
                service=SERVER_SERVICE,
                parent_id=root.id,
                start=start,
                kind=SpanKind.SERVER,
            )
            init.close(process_start_micros)
        execution = self._add(name="Execution", service=CORE_SERVICE, parent_id=root.id, start=process_start_micros)
        self._default_parent = execution.id
        self.open_phase("load", "Load", start_micros=process_start_micros)

    @property
    def root_id(self) -> str | None:
        return self._root_id

    @property
    def default_parent(self) -> str | None:
        return self._default_parent

    # -- lifecycle phases -----------------------------------------------------

    def open_phase(self, key: str, name: str, *, start_micros: int | None = None) -> str:
        """Open a fixed lifecycle span under Execution, keyed for later closing."""
        if key in self._phases:
            return self._phases[key]
        start = self._clock() if start_micros is None else start_micros
        span = self._add(name=name, service=CORE_SERVICE, parent_id=self._default_parent or self._root_id, start=start)
        self._core.append(span.id)
        self._phases[key] = span.id
        return span.id

    def close_phase(self, key: str, *, end_micros: int | None = None) -> bool:
        span_id = self._phases.get(key)
        if span_id is None:
            logger.warning("Unknown lifecycle phase", phase=key)
            return False
        self._spans[span_id].close(self._clock() if end_micros is None else end_micros)
        return True

    # -- user spans -----------------------------------------------------------

    def _add(
        self,
        *,
        name: str,
        service: str,
        parent_id: str | None,
        start: int,
        tags: Mapping[str, Any] | None = None,
        kind: SpanKind | None = None,
    ) -> Span:
        span = Span(
            id=_span_id(),
            trace_id=self.trace_id,
            name=name,
            start_micros=start,
            service_name=service,
            parent_id=parent_id,
            tags=dict(tags or {}),
            kind=kind,
        )
        self._spans[span.id] = span
        return span

    def _auto_parent(self, start: int) -> str | None:
        if self._stack:
            return self._stack[-1]
        best: Span | None = None
        for span_id in self._core:
            span = self._spans[span_id]
            if span.covers(start) and (best is None or span.start_micros >= best.start_micros):
                best = span
        if best is not None:
            return best.id
        return self._default_parent or self._root_id

    def _resolve_parent(self, parent_id: str | None, start: int) -> str | None:
        if parent_id is None or parent_id == AUTO_PARENT:
            return self._auto_parent(start)
        if parent_id not in self._spans:
            logger.warning("Unknown parent span, attaching to default parent", parent_id=parent_id)
            return self._default_parent or self._root_id
        return parent_id

    def start_span(
        self,
        name: str,
        *,
        service: str = DEFAULT_SERVICE,
        parent_id: str | None = AUTO_PARENT,
        tags: Mapping[str, Any] | None = None,
        kind: SpanKind | None = None,
        start_micros: int | None = None,
    ) -> str:
        """Open a span and push it on the open-span stack.

        Returns:
            The new span id, or "" if the registry is already closed.
        """
        if self._flattened is not None:
            logger.warning("Span started after trace close - ignored", span=name)
            return ""
        start = self._clock() if start_micros is None else start_micros
        span = self._add(
            name=name,
            service=service,
            parent_id=self._resolve_parent(parent_id, start),
            start=start,
            tags=tags,
            kind=kind,
        )
        self._stack.append(span.id)
        return span.id

    def end_span(self, span_id: str, *, end_micros: int | None = None) -> bool:
        """Close a span and pop the stack up to and including it.

        Spans still open above it on the stack are discarded from the stack
        (they stay in the registry and are force-closed at process end).
        """
        span = self._spans.get(span_id)
        if span is None:
            logger.warning("Unknown span", span_id=span_id)
            return False
        span.close(self._clock() if end_micros is None else end_micros)
        if span_id in self._stack:
            del self._stack[self._stack.index(span_id) :]
        return True

    def inject_span(
        self,
        name: str,
        *,
        start_micros: int,
        duration_micros: int,
        service: str = DEFAULT_SERVICE,
        parent_id: str | None = AUTO_PARENT,
        tags: Mapping[str, Any] | None = None,
        kind: SpanKind | None = None,
    ) -> str:
        """Record an already completed span."""
        span_id = self.start_span(
            name,
            service=service,
            parent_id=parent_id,
            tags=tags,
            kind=kind,
            start_micros=start_micros,
        )
        if span_id:
            self.end_span(span_id, end_micros=start_micros + max(0, duration_micros))
        return span_id

    def add_tags(self, span_id: str, tags: Mapping[str, Any]) -> bool:
        span = self._spans.get(span_id)
        if span is None:
            return False
        span.tags.update(tags)
        return True

    def get(self, span_id: str) -> Span | None:
        return self._spans.get(span_id)

    @property
    def open_stack(self) -> list[str]:
        return list(self._stack)

    def __len__(self) -> int:
        return len(self._spans)

    # -- process end ----------------------------------------------------------

    def close(self) -> list[Span]:
        """Force-close, prune and flatten. Runs once; later calls return the cache."""
        if self._flattened is not None:
            return self._flattened
        now = self._clock()
        for span in self._spans.values():
            if not span.closed:
                span.close(now)
            span.tags = {k: v for k, v in span.tags.items() if not _is_empty(v)}
            if span.parent_id is not None and span.parent_id not in self._spans:
                span.parent_id = self._root_id
        self._stack.clear()
        self._flattened = sorted(self._spans.values(), key=lambda s: s.start_micros)
        return self._flattened

    @property
    def closed(self) -> bool:
        return self._flattened is not None
