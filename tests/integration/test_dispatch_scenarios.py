# tests/integration/test_dispatch_scenarios.py
"""End-to-end dispatch scenarios wired through create_dispatcher().

Tests cover:
- Multi-sink fan-out with a buffered intake, a tracing sink and a disabled sink
- Capability gate removing a sink from the active set
- Debug suppression driven by settings, with counting preserved
- Channel stability across dispatchers sharing one process context
- Buffered, trace, metrics and storage sinks acting once per process across dispatchers
- Missing capabilities self-logged to the remaining sinks
- Level counting when deliveries fail
- Syslog sink banned after a socket failure
- Browser console script written once at process end
- Prometheus push with profile and filters
"""

import json
from pathlib import Path

import httpx
import pytest
import respx

from sinkhub.contracts.enums import Channel, Level, MetricProfile
from sinkhub.contracts.events import ComponentIdentity
from sinkhub.core.config import DispatchSettings, SinkSettings, load_settings
from sinkhub.dispatch.catalog import SinkKindCatalog
from sinkhub.dispatch.diagnosis import HandlerDiagnosis
from sinkhub.dispatch.factory import create_dispatcher
from sinkhub.dispatch.kinds import memory_store
from sinkhub.dispatch.sinks import LogSink
from sinkhub.dispatch.transports.http import BufferedHttpTransport
from tests.fixtures.dispatch import FakeSocketFactory, make_context

pytestmark = pytest.mark.integration

SHOP = ComponentIdentity("plugin", "shop", "2.1.0")
INTAKE = "https://logs.example.com/v1/intake"
ZIPKIN = "https://zipkin.example.com/api/v2/spans"
GATEWAY = "https://push.example.com/metrics/job/shop"


# =============================================================================
# Fan-out
# =============================================================================


class TestMultiSinkFanOut:
    @respx.mock
    def test_buffered_intake_tracing_and_disabled(self, catalog: SinkKindCatalog, http_client: httpx.Client) -> None:
        intake = respx.post(INTAKE).mock(return_value=httpx.Response(202))
        zipkin = respx.post(ZIPKIN).mock(return_value=httpx.Response(202))
        settings = DispatchSettings(
            sinks=[
                SinkSettings(id="intake", kind="json_http", level="info", endpoint=INTAKE),
                SinkSettings(id="traces", kind="zipkin", sampling=1000, endpoint=ZIPKIN),
                SinkSettings(id="off", kind="json_http", enabled=False, endpoint=INTAKE),
            ]
        )
        context = make_context()
        dispatcher = create_dispatcher(settings, SHOP, context=context, catalog=catalog, http_client=http_client)

        assert dispatcher.log(Level.ERROR, "boom") is True

        sink = dispatcher.sink("intake")
        assert isinstance(sink, LogSink)
        assert isinstance(sink.transport, BufferedHttpTransport)
        assert len(sink.transport.buffer) == 1
        assert dispatcher.sink("off") is None
        assert not intake.called

        dispatcher.finalize()

        assert intake.call_count == 1
        [record] = json.loads(intake.calls.last.request.content)
        assert record["message"] == "boom"
        assert record["context"]["component"] == "shop"
        assert zipkin.call_count == 1
        spans = json.loads(zipkin.calls.last.request.content)
        assert spans[0]["name"] == "CALL:CLI"
        assert all(span["traceId"] == context.trace_id for span in spans)

    @respx.mock
    def test_failing_intake_does_not_block_storage(self, catalog: SinkKindCatalog, http_client: httpx.Client) -> None:
        respx.post(INTAKE).mock(return_value=httpx.Response(500))
        settings = DispatchSettings(
            sinks=[
                SinkSettings(id="intake", kind="json_http", endpoint=INTAKE, options={"buffered": False}),
                SinkSettings(id="local", kind="storage"),
            ]
        )
        context = make_context()
        failures: list[str] = []
        dispatcher = create_dispatcher(
            settings,
            SHOP,
            context=context,
            catalog=catalog,
            http_client=http_client,
            on_failure=lambda sink_id, record, reason: failures.append(sink_id),
        )

        assert dispatcher.error("boom") is False
        assert dispatcher.error("again") is False

        assert failures == ["intake", "intake"]
        assert dispatcher.count(Level.ERROR) == 2
        local = dispatcher.sink("local")
        assert isinstance(local, LogSink)
        assert local.transport.storage.count() == 2  # type: ignore[attr-defined]


# =============================================================================
# Several dispatchers, one process
# =============================================================================


class TestSharedProcess:
    """Dispatchers of two components sharing one ProcessContext."""

    @respx.mock
    def test_process_wide_sinks_deliver_once(self, catalog: SinkKindCatalog, http_client: httpx.Client) -> None:
        intake = respx.post(INTAKE).mock(return_value=httpx.Response(202))
        zipkin = respx.post(ZIPKIN).mock(return_value=httpx.Response(202))
        gateway = respx.post(GATEWAY).mock(return_value=httpx.Response(200))
        settings = DispatchSettings(
            sinks=[
                SinkSettings(id="intake", kind="json_http", endpoint=INTAKE),
                SinkSettings(id="traces", kind="zipkin", endpoint=ZIPKIN),
                SinkSettings(id="prom", kind="prometheus_push", endpoint=GATEWAY),
                SinkSettings(id="local", kind="storage"),
            ]
        )
        context = make_context()
        shop = create_dispatcher(settings, SHOP, context=context, catalog=catalog, http_client=http_client)
        blog = create_dispatcher(
            settings, ComponentIdentity("plugin", "blog", "1.0.0"), context=context, catalog=catalog, http_client=http_client
        )

        assert shop.error("Payment declined") is True
        assert blog.warning("Feed stale") is True
        shop.finalize()

        assert intake.call_count == 1
        batch = json.loads(intake.calls.last.request.content)
        assert [r["context"]["component"] for r in batch] == ["shop", "blog"]
        assert zipkin.call_count == 1
        assert gateway.call_count == 1
        store = memory_store(context, "local")
        assert store is not None
        assert store.count() == 2

        blog.finalize()

        assert intake.call_count == 1
        assert zipkin.call_count == 1
        assert gateway.call_count == 1


# =============================================================================
# Gates and flags
# =============================================================================


class TestCapabilityGate:
    def test_missing_capability_removes_sink(self, catalog: SinkKindCatalog, socket_factory: FakeSocketFactory) -> None:
        diagnosis = HandlerDiagnosis.with_defaults()
        diagnosis.register("syslog_udp", lambda: False, "Runtime support for UDP sockets is not available.")
        settings = DispatchSettings(
            sinks=[SinkSettings(id="udp", kind="syslog_udp"), SinkSettings(id="tcp", kind="syslog_tcp")]
        )

        dispatcher = create_dispatcher(
            settings, SHOP, context=make_context(), catalog=catalog, diagnosis=diagnosis, socket_connector=socket_factory
        )

        assert [s.id for s in dispatcher.sinks] == ["tcp"]
        assert diagnosis.check("syslog_udp") is False
        assert diagnosis.error_string("syslog_udp") != ""
        assert "udp" in dispatcher.skipped

    @respx.mock
    def test_missing_capability_reported_to_other_sinks(self, catalog: SinkKindCatalog, http_client: httpx.Client) -> None:
        intake = respx.post(INTAKE).mock(return_value=httpx.Response(202))
        diagnosis = HandlerDiagnosis.with_defaults()
        diagnosis.register("syslog_udp", lambda: False, "Runtime support for UDP sockets is not available.")
        settings = DispatchSettings(
            sinks=[
                SinkSettings(id="udp", kind="syslog_udp"),
                SinkSettings(id="intake", kind="json_http", endpoint=INTAKE, options={"buffered": False}),
            ]
        )

        create_dispatcher(
            settings, SHOP, context=make_context(), catalog=catalog, diagnosis=diagnosis, http_client=http_client
        )

        assert intake.call_count == 1
        [record] = json.loads(intake.calls.last.request.content)
        assert record["message"] == "Unable to run sink udp: Runtime support for UDP sockets is not available."
        assert record["level"] == "error"
        assert record["code"] == 666


class TestDebugSuppression:
    def test_suppressed_but_counted(self, catalog: SinkKindCatalog) -> None:
        settings = DispatchSettings(respect_debug_flag=True, debug_flag=False, sinks=[SinkSettings(id="n", kind="null")])
        dispatcher = create_dispatcher(settings, SHOP, context=make_context(), catalog=catalog)

        assert dispatcher.log(Level.DEBUG, "x") is False
        assert dispatcher.count(Level.DEBUG) == 1

    def test_loaded_from_yaml_with_env_override(
        self, tmp_path: Path, catalog: SinkKindCatalog, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        config = tmp_path / "sinkhub.yaml"
        config.write_text(
            "respect_debug_flag: true\n"
            "debug_flag: false\n"
            "instance_name: web-01\n"
            "sinks:\n"
            "  - id: local\n"
            "    kind: storage\n"
            "    options:\n"
            "      engine: memory\n"
        )
        monkeypatch.setenv("SINKHUB_DEBUG_FLAG", "true")

        settings = load_settings(config)
        dispatcher = create_dispatcher(settings, SHOP, context=make_context(), catalog=catalog)

        assert dispatcher.debug("visible") is True
        local = dispatcher.sink("local")
        assert isinstance(local, LogSink)
        [stored] = local.transport.storage.list()  # type: ignore[attr-defined]
        assert stored["context"]["instance"] == "web-01"


# =============================================================================
# Process-wide state
# =============================================================================


class TestSharedContext:
    def test_channel_resolved_once(self, catalog: SinkKindCatalog) -> None:
        resolutions: list[Channel] = []

        def resolver() -> Channel:
            resolutions.append(Channel.CRON)
            return Channel.CRON

        context = make_context(channel_resolver=resolver)
        settings = DispatchSettings(sinks=[SinkSettings(id="n", kind="null")])
        first = create_dispatcher(settings, SHOP, context=context, catalog=catalog)
        second = create_dispatcher(settings, ComponentIdentity("theme", "storefront"), context=context, catalog=catalog)

        first.info("a")
        second.info("b")

        assert first.channel_tag() == second.channel_tag() == "CRON"
        assert len(resolutions) == 1
        assert first.count(Level.INFO) == 2


class TestSyslogBan:
    def test_socket_failure_bans_sink_for_process(self, catalog: SinkKindCatalog) -> None:
        factory = FakeSocketFactory(fail_on_send=True)
        settings = DispatchSettings(sinks=[SinkSettings(id="syslog", kind="syslog_tcp", endpoint="syslog.example.com:1514")])
        context = make_context()
        dispatcher = create_dispatcher(settings, SHOP, context=context, catalog=catalog, socket_connector=factory)

        assert dispatcher.error("first") is False
        assert "syslog" in context.banned
        assert dispatcher.error("second") is True
        assert factory.calls == [("syslog.example.com", 1514, "tcp")]

    def test_lines_delivered(self, catalog: SinkKindCatalog, socket_factory: FakeSocketFactory) -> None:
        settings = DispatchSettings(
            sinks=[SinkSettings(id="syslog", kind="syslog_udp", options={"ident": "shop", "token": "abc", "facility": 16})]
        )
        dispatcher = create_dispatcher(settings, SHOP, context=make_context(), catalog=catalog, socket_connector=socket_factory)

        dispatcher.warning("Stock low\nSKU-1")

        lines = socket_factory.lines()
        assert len(lines) == 2
        assert all(line.startswith("<132>1 ") for line in lines)
        assert " shop " in lines[0]
        assert lines[0].endswith("[abc] Stock low")
        assert socket_factory.calls == [("localhost", 514, "udp")]


class TestBrowserConsole:
    def test_script_written_once(self, catalog: SinkKindCatalog) -> None:
        written: list[str] = []
        settings = DispatchSettings(sinks=[SinkSettings(id="console", kind="browser_console")])
        dispatcher = create_dispatcher(
            settings,
            SHOP,
            context=make_context(),
            catalog=catalog,
            content_type_provider=lambda: "text/html; charset=UTF-8",
            console_writer=written.append,
        )

        dispatcher.warning("Slow query")
        dispatcher.info("Done")
        dispatcher.finalize()

        [script] = written
        assert script.startswith("<script>")
        assert "Slow query" in script
        assert "Done" in script


class TestPrometheusPush:
    @respx.mock
    def test_production_profile_with_filters(self, catalog: SinkKindCatalog, http_client: httpx.Client) -> None:
        gateway = respx.post(GATEWAY).mock(return_value=httpx.Response(200))
        settings = DispatchSettings(
            environment="staging",
            sinks=[
                SinkSettings(
                    id="prom",
                    kind="prometheus_push",
                    endpoint=GATEWAY,
                    options={"profile": "production", "filters": "events_debug\nevents_info"},
                )
            ],
        )
        context = make_context(environment="staging")
        dispatcher = create_dispatcher(settings, SHOP, context=context, catalog=catalog, http_client=http_client)
        context.metrics.register_counter("trace_only", profile=MetricProfile.DEVELOPMENT)

        dispatcher.error("boom")
        dispatcher.info("filtered")
        dispatcher.finalize()

        assert gateway.call_count == 1
        request = gateway.calls.last.request
        assert request.headers["Content-Type"].startswith("text/plain; version=0.0.4")
        body = request.content.decode("utf-8")
        assert 'wordpress_plugin_sinkhub_events_error_total{environment="staging"} 1.0' in body
        assert "events_info" not in body
        assert "events_debug" not in body
        assert "trace_only" not in body
