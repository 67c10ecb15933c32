# src/sinkhub/dispatch/sinks.py
"""Sinks composed from a sampling gate, an encoder and a transport.

LogSink runs the per-record path: level threshold, ban check, sampling
election, processor chain, privacy filter, encoder, transport. TraceSink
and MetricsSink ignore individual log records; when elected, they register
a process-end callback that renders the process-wide registry once.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any

import structlog

from sinkhub.contracts.config import PrivacyFlags
from sinkhub.contracts.enums import Level, MetricProfile, SinkClass, SinkOutcome
from sinkhub.contracts.events import SELF_IDENTITY, EventRecord, Span
from sinkhub.core.lifecycle import PRIORITY_METRICS, PRIORITY_SELF_METRICS, PRIORITY_TRACES
from sinkhub.core.text import normalize_value
from sinkhub.dispatch.processors import NAMESPACE_BY_PROCESSOR, ProcessorChain

if TYPE_CHECKING:
    from sinkhub.core.context import ProcessContext
    from sinkhub.dispatch.encoders.prometheus import PrometheusEncoder
    from sinkhub.dispatch.privacy import PrivacyFilter
    from sinkhub.dispatch.protocols import RecordEncoder, Transport
    from sinkhub.dispatch.sampling import SamplingGate

logger = structlog.get_logger(__name__)

_SELF_METRICS_KEY = "self_metrics"


class NullSink:
    """Accepts and discards records at or above its level."""

    def __init__(self, sink_id: str, min_level: Level = Level.DEBUG) -> None:
        self._id = sink_id
        self._min_level = min_level

    @property
    def id(self) -> str:
        return self._id

    @property
    def sink_class(self) -> SinkClass:
        return SinkClass.SYSTEM

    def handle(self, record: EventRecord) -> SinkOutcome:
        return SinkOutcome.ACCEPTED if record.level >= self._min_level else SinkOutcome.SKIPPED


class LogSink:
    """Per-record delivery path for logging, alerting and debugging kinds."""

    def __init__(
        self,
        sink_id: str,
        *,
        sink_class: SinkClass,
        min_level: Level,
        gate: SamplingGate,
        chain: ProcessorChain,
        privacy: PrivacyFilter,
        flags: PrivacyFlags,
        encoder: RecordEncoder,
        transport: Transport,
        context: ProcessContext,
    ) -> None:
        self._id = sink_id
        self._sink_class = sink_class
        self._min_level = min_level
        self._gate = gate
        self._chain = chain
        self._privacy = privacy
        self._flags = flags
        self._encoder = encoder
        self._transport = transport
        self._context = context

    @property
    def id(self) -> str:
        return self._id

    @property
    def sink_class(self) -> SinkClass:
        return self._sink_class

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def chain(self) -> ProcessorChain:
        return self._chain

    def handle(self, record: EventRecord) -> SinkOutcome:
        if record.level < self._min_level:
            return SinkOutcome.SKIPPED
        if self._context.is_banned(self._id):
            return SinkOutcome.SKIPPED
        if not self._gate.elect():
            return SinkOutcome.SKIPPED
        enriched = normalize_value(self._chain(record.context))
        redacted = self._privacy.apply(enriched, self._flags)
        payload = self._encoder.format(record.with_context(redacted))
        if self._transport.write(payload):
            return SinkOutcome.ACCEPTED
        return SinkOutcome.FAILED

    def close(self) -> None:
        self._transport.close()


def _stringify(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int | float):
        return str(value)
    return value


def _empty(value: Any) -> bool:
    return value is None or (isinstance(value, str | list | tuple | dict) and len(value) == 0)


class TraceSink:
    """Renders the process trace once at process end.

    Only the first elected build of a sink id in the process registers the
    render; later builds (other dispatchers on the same context) close their
    transport and stay inert.

    Span tags in the ``code.``, ``http.`` and ``site.`` namespaces are
    stripped unless the matching processor is enabled for this sink; the
    root span and "Server" spans keep all their tags. Privacy hashing,
    empty-tag pruning and numeric stringification follow. The registry's
    spans are never mutated, so several trace sinks can filter differently.
    """

    def __init__(
        self,
        sink_id: str,
        *,
        gate: SamplingGate,
        processors: Sequence[str],
        privacy: PrivacyFilter,
        flags: PrivacyFlags,
        render: Callable[[list[Span]], Any],
        transport: Transport,
        context: ProcessContext,
    ) -> None:
        self._id = sink_id
        self._gate = gate
        self._privacy = privacy
        self._flags = flags
        self._render = render
        self._transport = transport
        self._context = context
        enabled = set(processors)
        self._stripped = tuple(namespace for name, namespace in NAMESPACE_BY_PROCESSOR.items() if name not in enabled)
        self._delivered: bool | None = None
        # The trace is a process-wide artifact: one render per sink id
        if gate.elect() and context.once(f"traces:{sink_id}"):
            context.lifecycle.on_process_end(self.render, PRIORITY_TRACES, name=f"traces:{sink_id}")
        else:
            transport.close()

    @property
    def id(self) -> str:
        return self._id

    @property
    def sink_class(self) -> SinkClass:
        return SinkClass.TRACING

    @property
    def delivered(self) -> bool | None:
        """None until rendered, then the transport result."""
        return self._delivered

    def handle(self, record: EventRecord) -> SinkOutcome:
        return SinkOutcome.SKIPPED

    def filter_spans(self, spans: Sequence[Span]) -> list[Span]:
        filtered: list[Span] = []
        for span in spans:
            tags = dict(span.tags)
            if self._stripped and not span.is_root and span.service_name != "Server":
                tags = {k: v for k, v in tags.items() if not k.startswith(self._stripped)}
            tags = self._privacy.apply(tags, self._flags)
            tags = {k: _stringify(v) for k, v in tags.items() if not _empty(v)}
            filtered.append(replace(span, tags=tags))
        return filtered

    def render(self) -> None:
        if self._context.is_banned(self._id):
            return
        spans = self.filter_spans(self._context.traces.close())
        payload = self._render(spans)
        self._delivered = self._transport.write(payload)
        self._transport.close()


class MetricsSink:
    """Renders the metrics registry once at process end.

    Production profile renders the production collector set; development
    renders both. As with traces, one render is registered per sink id and
    process. The first elected metrics sink also schedules the self-metrics
    snapshot one priority step earlier.
    """

    def __init__(
        self,
        sink_id: str,
        *,
        gate: SamplingGate,
        profile: MetricProfile,
        encoder: PrometheusEncoder,
        transport: Transport,
        context: ProcessContext,
    ) -> None:
        if profile is MetricProfile.AUTO:
            profile = MetricProfile.PRODUCTION if context.environment == "production" else MetricProfile.DEVELOPMENT
        self._id = sink_id
        self._profile = profile
        self._encoder = encoder
        self._transport = transport
        self._context = context
        self._delivered: bool | None = None
        if gate.elect() and context.once(f"metrics:{sink_id}"):
            context.lifecycle.on_process_end(self.render, PRIORITY_METRICS, name=f"metrics:{sink_id}")
            if context.once(_SELF_METRICS_KEY):
                context.lifecycle.on_process_end(record_self_metrics(context), PRIORITY_SELF_METRICS, name="self_metrics")
        else:
            transport.close()

    @property
    def id(self) -> str:
        return self._id

    @property
    def sink_class(self) -> SinkClass:
        return SinkClass.METRICS

    @property
    def profile(self) -> MetricProfile:
        return self._profile

    @property
    def delivered(self) -> bool | None:
        return self._delivered

    def handle(self, record: EventRecord) -> SinkOutcome:
        return SinkOutcome.SKIPPED

    def render_text(self) -> str:
        metrics = self._context.metrics
        sources = [metrics.registry(MetricProfile.PRODUCTION)]
        if self._profile is MetricProfile.DEVELOPMENT:
            sources.append(metrics.registry(MetricProfile.DEVELOPMENT))
        return self._encoder.render(sources)

    def render(self) -> None:
        if self._context.is_banned(self._id):
            return
        self._delivered = self._transport.write(self.render_text())
        self._transport.close()


def record_self_metrics(context: ProcessContext) -> Callable[[], None]:
    def _record() -> None:
        context.metrics.record_self_metrics(SELF_IDENTITY, context.level_counts())

    return _record
