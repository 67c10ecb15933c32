# tests/unit/dispatch/test_sinks.py
"""Tests for LogSink, TraceSink, MetricsSink and NullSink.

Tests cover:
- LogSink gate order: level, ban, election, processors, privacy, encoder
- TraceSink tag filtering without mutating the registry
- MetricsSink profile resolution and one-time self-metrics scheduling
- Non-elected tracing/metrics sinks release their transport immediately
"""

from typing import Any

from sinkhub.contracts.config import PrivacyFlags
from sinkhub.contracts.enums import Channel, Level, MetricProfile, SinkClass, SinkOutcome
from sinkhub.contracts.events import EventRecord, Span
from sinkhub.core.context import ProcessContext
from sinkhub.dispatch.encoders.json_batch import JsonBatchEncoder
from sinkhub.dispatch.encoders.prometheus import PrometheusEncoder
from sinkhub.dispatch.privacy import PrivacyFilter
from sinkhub.dispatch.processors import HttpRequestProcessor, ProcessorChain
from sinkhub.dispatch.sampling import SamplingGate
from sinkhub.dispatch.sinks import LogSink, MetricsSink, NullSink, TraceSink
from tests.fixtures.dispatch import FIXED_NOW, RecordingTransport, make_context


def _record(level: Level = Level.ERROR, message: str = "boom", context: dict[str, Any] | None = None) -> EventRecord:
    return EventRecord(level=level, channel=Channel.CLI, message=message, context=context or {}, timestamp=FIXED_NOW)


def _log_sink(
    context: ProcessContext,
    transport: RecordingTransport,
    *,
    min_level: Level = Level.DEBUG,
    sampling: int = 1000,
    flags: PrivacyFlags | None = None,
    chain: ProcessorChain | None = None,
) -> LogSink:
    return LogSink(
        "s",
        sink_class=SinkClass.LOGGING,
        min_level=min_level,
        gate=SamplingGate("s", context, sampling),
        chain=chain or ProcessorChain([]),
        privacy=PrivacyFilter(context.hasher),
        flags=flags or PrivacyFlags(),
        encoder=JsonBatchEncoder(),
        transport=transport,
        context=context,
    )


class TestNullSink:
    def test_accepts_at_or_above_level(self) -> None:
        sink = NullSink("n", Level.WARNING)
        assert sink.handle(_record(Level.ERROR)) is SinkOutcome.ACCEPTED
        assert sink.handle(_record(Level.INFO)) is SinkOutcome.SKIPPED
        assert sink.sink_class is SinkClass.SYSTEM


class TestLogSink:
    """Per-record path."""

    def test_accepted(self, context: ProcessContext) -> None:
        transport = RecordingTransport()
        assert _log_sink(context, transport).handle(_record()) is SinkOutcome.ACCEPTED
        assert transport.payloads[0]["message"] == "boom"
        assert transport.payloads[0]["level"] == "error"

    def test_below_level_skipped(self, context: ProcessContext) -> None:
        transport = RecordingTransport()
        sink = _log_sink(context, transport, min_level=Level.ERROR)
        assert sink.handle(_record(Level.WARNING)) is SinkOutcome.SKIPPED
        assert transport.payloads == []

    def test_banned_skipped(self, context: ProcessContext) -> None:
        transport = RecordingTransport()
        context.ban("s", "socket failure")
        assert _log_sink(context, transport).handle(_record()) is SinkOutcome.SKIPPED

    def test_not_elected_skipped(self, context: ProcessContext) -> None:
        transport = RecordingTransport()
        assert _log_sink(context, transport, sampling=0).handle(_record()) is SinkOutcome.SKIPPED
        assert transport.payloads == []

    def test_transport_failure(self, context: ProcessContext) -> None:
        assert _log_sink(context, RecordingTransport(result=False)).handle(_record()) is SinkOutcome.FAILED

    def test_processor_output_is_redacted(self, context: ProcessContext) -> None:
        """Privacy runs after the chain, so processor-added IPs are hashed."""
        transport = RecordingTransport()
        chain = ProcessorChain([HttpRequestProcessor(lambda: {"remoteip": "192.0.2.10", "uri": "/<b>cart</b>"})])
        sink = _log_sink(context, transport, flags=PrivacyFlags(obfuscation=True), chain=chain)

        sink.handle(_record())

        payload_context = transport.payloads[0]["context"]
        assert payload_context["http.remoteip"] == context.hasher.hash("192.0.2.10")
        assert payload_context["http.uri"] == "/cart"

    def test_close_closes_transport(self, context: ProcessContext) -> None:
        transport = RecordingTransport()
        _log_sink(context, transport).close()
        assert transport.closed == 1


def _trace_sink(
    context: ProcessContext,
    transport: RecordingTransport,
    *,
    processors: tuple[str, ...] = (),
    flags: PrivacyFlags | None = None,
    sampling: int = 1000,
    sink_id: str = "t",
) -> TraceSink:
    return TraceSink(
        sink_id,
        gate=SamplingGate(sink_id, context, sampling),
        processors=processors,
        privacy=PrivacyFilter(context.hasher),
        flags=flags or PrivacyFlags(),
        render=lambda spans: spans,
        transport=transport,
        context=context,
    )


TAGS = {"code.file": "a.py", "http.uri": "/", "site.userid": 5, "custom": 1, "empty": "", "flag": True}


class TestTraceSink:
    """Process-end trace rendering."""

    def test_elected_registers_render(self, context: ProcessContext) -> None:
        transport = RecordingTransport()
        pending = context.lifecycle.pending
        sink = _trace_sink(context, transport)
        assert context.lifecycle.pending == pending + 1
        assert sink.handle(_record()) is SinkOutcome.SKIPPED

        context.lifecycle.finalize()

        assert sink.delivered is True
        assert transport.closed == 1
        spans = transport.payloads[0]
        assert spans[0].name == "CALL:CLI"

    def test_not_elected_closes_transport(self, context: ProcessContext) -> None:
        transport = RecordingTransport()
        pending = context.lifecycle.pending
        sink = _trace_sink(context, transport, sampling=0)
        assert context.lifecycle.pending == pending
        assert transport.closed == 1
        assert sink.delivered is None

    def test_same_sink_id_renders_once_per_process(self, context: ProcessContext) -> None:
        first, second = RecordingTransport(), RecordingTransport()
        pending = context.lifecycle.pending

        _trace_sink(context, first)
        _trace_sink(context, second)

        assert context.lifecycle.pending == pending + 1
        assert second.closed == 1

        context.lifecycle.finalize()

        assert len(first.payloads) == 1
        assert second.payloads == []

    def test_banned_sink_not_rendered(self, context: ProcessContext) -> None:
        transport = RecordingTransport()
        sink = _trace_sink(context, transport)
        context.ban("t", "x")
        sink.render()
        assert transport.payloads == []

    def test_unselected_namespaces_stripped(self, context: ProcessContext) -> None:
        sink = _trace_sink(context, RecordingTransport(), processors=("http",))
        span = Span(id="1" * 16, trace_id="f" * 32, name="q", start_micros=0, service_name="Database", parent_id="2" * 16, tags=dict(TAGS))

        [filtered] = sink.filter_spans([span])

        assert filtered.tags == {"http.uri": "/", "custom": "1", "flag": True}
        assert span.tags == TAGS

    def test_root_and_server_spans_keep_all_tags(self, context: ProcessContext) -> None:
        sink = _trace_sink(context, RecordingTransport())
        root = Span(id="1" * 16, trace_id="f" * 32, name="CALL:CLI", start_micros=0, service_name="Main Request", tags=dict(TAGS))
        server = Span(id="2" * 16, trace_id="f" * 32, name="Init", start_micros=0, service_name="Server", parent_id=root.id, tags=dict(TAGS))

        for filtered in sink.filter_spans([root, server]):
            assert "code.file" in filtered.tags
            assert "site.userid" in filtered.tags
            assert "empty" not in filtered.tags

    def test_privacy_applies_to_tags(self, context: ProcessContext) -> None:
        sink = _trace_sink(context, RecordingTransport(), processors=("site",), flags=PrivacyFlags(pseudonymization=True))
        span = Span(id="1" * 16, trace_id="f" * 32, name="q", start_micros=0, service_name="App", parent_id="2" * 16, tags=dict(TAGS))
        [filtered] = sink.filter_spans([span])
        assert filtered.tags["site.userid"] == context.hasher.hash(5)


def _metrics_sink(context: ProcessContext, transport: RecordingTransport, profile: MetricProfile, sink_id: str = "m", sampling: int = 1000) -> MetricsSink:
    return MetricsSink(
        sink_id,
        gate=SamplingGate(sink_id, context, sampling),
        profile=profile,
        encoder=PrometheusEncoder(),
        transport=transport,
        context=context,
    )


class TestMetricsSink:
    """Process-end metrics rendering."""

    def test_auto_profile_production(self) -> None:
        context = make_context(environment="production")
        assert _metrics_sink(context, RecordingTransport(), MetricProfile.AUTO).profile is MetricProfile.PRODUCTION

    def test_auto_profile_development(self) -> None:
        context = make_context(environment="staging")
        assert _metrics_sink(context, RecordingTransport(), MetricProfile.AUTO).profile is MetricProfile.DEVELOPMENT

    def test_production_renders_production_only(self, context: ProcessContext) -> None:
        context.metrics.register_counter("prod_only", "p", profile=MetricProfile.PRODUCTION)
        context.metrics.register_counter("dev_only", "d", profile=MetricProfile.DEVELOPMENT)

        text = _metrics_sink(context, RecordingTransport(), MetricProfile.PRODUCTION).render_text()

        assert "wordpress_plugin_sinkhub_prod_only" in text
        assert "dev_only" not in text

    def test_development_renders_both(self, context: ProcessContext) -> None:
        context.metrics.register_counter("prod_only", "p", profile=MetricProfile.PRODUCTION)
        context.metrics.register_counter("dev_only", "d", profile=MetricProfile.DEVELOPMENT)

        text = _metrics_sink(context, RecordingTransport(), MetricProfile.DEVELOPMENT).render_text()

        assert "prod_only" in text
        assert "dev_only" in text

    def test_self_metrics_scheduled_once(self, context: ProcessContext) -> None:
        pending = context.lifecycle.pending
        _metrics_sink(context, RecordingTransport(), MetricProfile.PRODUCTION, sink_id="a")
        _metrics_sink(context, RecordingTransport(), MetricProfile.PRODUCTION, sink_id="b")
        assert context.lifecycle.pending == pending + 3

    def test_self_metrics_include_level_counts(self, context: ProcessContext) -> None:
        transport = RecordingTransport()
        _metrics_sink(context, transport, MetricProfile.PRODUCTION)
        context.increment(Level.ERROR)
        context.increment(Level.ERROR)

        context.lifecycle.finalize()

        text = transport.payloads[0]
        assert 'wordpress_plugin_sinkhub_events_error_total{environment="production"} 2.0' in text

    def test_not_elected_closes_transport(self, context: ProcessContext) -> None:
        transport = RecordingTransport()
        pending = context.lifecycle.pending
        _metrics_sink(context, transport, MetricProfile.PRODUCTION, sampling=0)
        assert context.lifecycle.pending == pending
        assert transport.closed == 1

    def test_same_sink_id_pushes_once_per_process(self, context: ProcessContext) -> None:
        first, second = RecordingTransport(), RecordingTransport()
        pending = context.lifecycle.pending

        _metrics_sink(context, first, MetricProfile.PRODUCTION)
        _metrics_sink(context, second, MetricProfile.PRODUCTION)

        # One render plus the self-metrics snapshot
        assert context.lifecycle.pending == pending + 2
        assert second.closed == 1

        context.lifecycle.finalize()

        assert len(first.payloads) == 1
        assert second.payloads == []
