# src/sinkhub/dispatch/kinds.py
"""Built-in sink kinds.

Each kind is a composition of an encoder, a transport and a sampling gate;
the build functions below only wire configuration into those pieces.

Kinds:
    null             discard (also the fallback for unknown kinds)
    json_http        JSON batch over buffered HTTP (log intake APIs)
    syslog_udp       syslog lines over UDP
    syslog_tcp       syslog lines over TCP
    syslog_tls       syslog lines over TLS
    storage          record maps into in-memory or external storage
    browser_console  console.log script in the HTML/JS response
    zipkin           process trace, Zipkin v2 / Datadog / local summary
    prometheus_push  metrics exposition pushed to a gateway
"""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from typing import Any

import structlog

from sinkhub.contracts.config import SinkConfig
from sinkhub.contracts.enums import HttpVerb, Level, MetricProfile, SinkClass, SyslogRfc
from sinkhub.contracts.storage import StorageProtocol
from sinkhub.core.context import ProcessContext
from sinkhub.core.lifecycle import PRIORITY_CLEANUP
from sinkhub.dispatch.build import BuildEnvironment
from sinkhub.dispatch.catalog import OptionSpec, SinkKind
from sinkhub.dispatch.encoders.console_script import ConsoleScriptEncoder
from sinkhub.dispatch.encoders.json_batch import JsonBatchEncoder
from sinkhub.dispatch.encoders.prometheus import PrometheusEncoder
from sinkhub.dispatch.encoders.syslog import SyslogEncoder
from sinkhub.dispatch.encoders.traces import DatadogTraceEncoder, TraceSummaryEncoder, ZipkinEncoder
from sinkhub.dispatch.errors import SinkConfigurationError
from sinkhub.dispatch.hookspecs import hookimpl
from sinkhub.dispatch.processors import NAMESPACE_BY_PROCESSOR, ProcessorChain, build_processor
from sinkhub.dispatch.protocols import RecordEncoder, Sink, Transport
from sinkhub.dispatch.sampling import SamplingGate
from sinkhub.dispatch.sinks import LogSink, MetricsSink, NullSink, TraceSink
from sinkhub.dispatch.transports.console import ConsoleScriptTransport
from sinkhub.dispatch.transports.http import BufferedHttpTransport, HttpTransport
from sinkhub.dispatch.transports.socket import SocketTransport
from sinkhub.dispatch.transports.storage import StorageWriteTransport
from sinkhub.storage.memory import InMemoryStorage

logger = structlog.get_logger(__name__)

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"

_HTTP_TIMEOUT = OptionSpec(default=10, minimum=1, maximum=120)
_ENGINE = OptionSpec(default="memory", choices=("memory", "external"))
_MAX_RECORDS = OptionSpec(default=10_000, minimum=100, maximum=1_000_000)

_SYSLOG_EXCLUDED: tuple[str, ...] = ("introspection",)

# ProcessContext.shared() keys
_STORE_KEY = "storage:{}"
_BUFFER_KEY = "buffer:{}"


def _require_endpoint(config: SinkConfig) -> str:
    if not config.endpoint:
        raise SinkConfigurationError(config.id, f"An endpoint is required for '{config.kind}' sinks")
    return config.endpoint


def _chain(config: SinkConfig, env: BuildEnvironment, excluded: tuple[str, ...] = ()) -> ProcessorChain:
    processors = [
        build_processor(name, request_info=env.request_info, site_info=env.site_info) for name in config.processors
    ]
    return ProcessorChain(processors, tuple(NAMESPACE_BY_PROCESSOR[name] for name in excluded))


def _log_sink(
    config: SinkConfig,
    env: BuildEnvironment,
    *,
    sink_class: SinkClass,
    encoder: RecordEncoder,
    transport: Transport,
    excluded: tuple[str, ...] = (),
) -> LogSink:
    return LogSink(
        config.id,
        sink_class=sink_class,
        min_level=config.min_level,
        gate=SamplingGate(config.id, env.context, config.sampling_per_mille),
        chain=_chain(config, env, excluded),
        privacy=env.privacy_filter,
        flags=config.privacy,
        encoder=encoder,
        transport=transport,
        context=env.context,
    )


def _storage(config: SinkConfig, env: BuildEnvironment) -> StorageProtocol:
    if config.option("engine") == "external":
        if env.storage is None:
            raise SinkConfigurationError(config.id, "engine 'external' selected but no storage collaborator was provided")
        return env.storage

    def _memory() -> InMemoryStorage:
        storage = InMemoryStorage(int(config.option("max_records", 10_000)))
        storage.initialize()
        return storage

    # One store per sink id for the whole process
    return env.context.shared(_STORE_KEY.format(config.id), _memory)


def memory_store(context: ProcessContext, sink_id: str) -> InMemoryStorage | None:
    """In-memory store of an ``engine: memory`` sink, once that sink is built."""
    store = context.find_shared(_STORE_KEY.format(sink_id))
    return store if isinstance(store, InMemoryStorage) else None


def build_null(config: SinkConfig, env: BuildEnvironment) -> Sink:
    return NullSink(config.id, config.min_level)


def build_json_http(config: SinkConfig, env: BuildEnvironment) -> Sink:
    extra: dict[str, Any] = {}
    if config.option("service"):
        extra["service"] = config.option("service")
    encoder = JsonBatchEncoder(extra)
    endpoint = _require_endpoint(config)

    def _batch() -> BufferedHttpTransport:
        http = HttpTransport(
            endpoint,
            verb=config.verb,
            headers=config.headers,
            timeout=float(config.option("timeout", 10)),
            client=env.http_client,
            sink_id=config.id,
        )
        return BufferedHttpTransport(
            http,
            encoder,
            env.context.lifecycle,
            buffered=bool(config.option("buffered", True)),
            max_size=int(config.option("max_buffer", 10_000)),
            sink_id=config.id,
        )

    # Every dispatcher of the process feeds one batch per sink id
    transport = env.context.shared(_BUFFER_KEY.format(config.id), _batch)
    return _log_sink(config, env, sink_class=SinkClass.LOGGING, encoder=encoder, transport=transport)


def _split_endpoint(config: SinkConfig) -> tuple[str, int]:
    host = str(config.option("host", "localhost"))
    port = int(config.option("port", 514))
    if config.endpoint:
        candidate, _, raw_port = config.endpoint.rpartition(":")
        if candidate and raw_port.isdigit():
            host, port = candidate, int(raw_port)
        else:
            host = config.endpoint
    return host, port


def _syslog_builder(protocol: str) -> Callable[[SinkConfig, BuildEnvironment], Sink]:
    def build(config: SinkConfig, env: BuildEnvironment) -> Sink:
        host, port = _split_endpoint(config)
        encoder = SyslogEncoder(
            rfc=SyslogRfc(config.option("rfc", SyslogRfc.RFC5424.value)),
            facility=int(config.option("facility", 1)),
            ident=str(config.option("ident", "sinkhub")),
            token=str(config.option("token", "")),
        )
        connector = partial(env.socket_connector, host, port, protocol) if env.socket_connector is not None else None
        transport = SocketTransport(
            host,
            port,
            protocol=protocol,
            timeout_ms=int(config.option("timeout", 1000)),
            on_failure=partial(env.context.ban, config.id),
            connector=connector,
            sink_id=config.id,
        )
        env.context.lifecycle.on_process_end(transport.close, PRIORITY_CLEANUP, name=f"close:{config.id}")
        return _log_sink(
            config,
            env,
            sink_class=SinkClass.LOGGING,
            encoder=encoder,
            transport=transport,
            excluded=_SYSLOG_EXCLUDED,
        )

    return build


def build_storage(config: SinkConfig, env: BuildEnvironment) -> Sink:
    transport = StorageWriteTransport(_storage(config, env), sink_id=config.id)
    return _log_sink(config, env, sink_class=SinkClass.LOGGING, encoder=JsonBatchEncoder(), transport=transport)


def build_browser_console(config: SinkConfig, env: BuildEnvironment) -> Sink:
    encoder = ConsoleScriptEncoder()
    transport = ConsoleScriptTransport(
        env.context,
        encoder,
        content_type_provider=env.content_type_provider,
        writer=env.console_writer,
    )
    return _log_sink(config, env, sink_class=SinkClass.DEBUGGING, encoder=encoder, transport=transport)


def build_zipkin(config: SinkConfig, env: BuildEnvironment) -> Sink:
    channel = env.context.channel
    transport: Transport
    if config.format_id == "local":
        render: Callable[[list[Any]], Any] = TraceSummaryEncoder(channel).summarize
        transport = StorageWriteTransport(_storage(config, env), sink_id=config.id)
    else:
        verb = config.verb
        if config.format_id == "datadog":
            render = DatadogTraceEncoder(channel).encode
            verb = HttpVerb.PUT
        else:
            render = ZipkinEncoder().encode
        transport = HttpTransport(
            _require_endpoint(config),
            verb=verb,
            headers=config.headers,
            timeout=float(config.option("timeout", 10)),
            client=env.http_client,
            sink_id=config.id,
        )
    return TraceSink(
        config.id,
        gate=SamplingGate(config.id, env.context, config.sampling_per_mille),
        processors=config.processors,
        privacy=env.privacy_filter,
        flags=config.privacy,
        render=render,
        transport=transport,
        context=env.context,
    )


def build_prometheus_push(config: SinkConfig, env: BuildEnvironment) -> Sink:
    transport = HttpTransport(
        _require_endpoint(config),
        verb=config.verb,
        headers={"Content-Type": PROMETHEUS_CONTENT_TYPE, **config.headers},
        timeout=float(config.option("timeout", 10)),
        client=env.http_client,
        sink_id=config.id,
    )
    return MetricsSink(
        config.id,
        gate=SamplingGate(config.id, env.context, config.sampling_per_mille),
        profile=MetricProfile(config.option("profile", MetricProfile.AUTO.value)),
        encoder=PrometheusEncoder(str(config.option("filters", ""))),
        transport=transport,
        context=env.context,
    )


BUILTIN_KINDS: tuple[SinkKind, ...] = (
    SinkKind(
        name="null",
        sink_class=SinkClass.SYSTEM,
        minimal_level=Level.DEBUG,
        build=build_null,
        description="Discards every record",
    ),
    SinkKind(
        name="json_http",
        sink_class=SinkClass.LOGGING,
        minimal_level=Level.DEBUG,
        build=build_json_http,
        options={
            "buffered": OptionSpec(default=True),
            "timeout": _HTTP_TIMEOUT,
            "max_buffer": OptionSpec(default=10_000, minimum=1, maximum=1_000_000),
            "service": OptionSpec(default=""),
        },
        formats=("json",),
        description="JSON event batches to an HTTP log intake",
    ),
    *(
        SinkKind(
            name=f"syslog_{protocol}",
            sink_class=SinkClass.LOGGING,
            minimal_level=Level.DEBUG,
            build=_syslog_builder(protocol),
            options={
                "host": OptionSpec(default="localhost"),
                "port": OptionSpec(default=6514 if protocol == "tls" else 514, minimum=1, maximum=65_535),
                "rfc": OptionSpec(default=SyslogRfc.RFC5424.value, choices=tuple(r.value for r in SyslogRfc)),
                "facility": OptionSpec(default=1, minimum=0, maximum=23),
                "ident": OptionSpec(default="sinkhub"),
                "token": OptionSpec(default=""),
                "timeout": OptionSpec(default=1000, minimum=100, maximum=60_000),
            },
            excluded_processors=_SYSLOG_EXCLUDED,
            description=f"Syslog lines over {protocol.upper()}",
        )
        for protocol in ("udp", "tcp", "tls")
    ),
    SinkKind(
        name="storage",
        sink_class=SinkClass.LOGGING,
        minimal_level=Level.DEBUG,
        build=build_storage,
        options={"engine": _ENGINE, "max_records": _MAX_RECORDS},
        included_processors=("introspection", "http", "site"),
        description="Record maps into local storage",
    ),
    SinkKind(
        name="browser_console",
        sink_class=SinkClass.DEBUGGING,
        minimal_level=Level.DEBUG,
        build=build_browser_console,
        description="console.log script in HTML and JavaScript responses",
    ),
    SinkKind(
        name="zipkin",
        sink_class=SinkClass.TRACING,
        minimal_level=Level.EMERGENCY,
        build=build_zipkin,
        options={"timeout": _HTTP_TIMEOUT, "engine": _ENGINE, "max_records": _MAX_RECORDS},
        formats=("zipkin", "datadog", "local"),
        description="Process trace as Zipkin v2, Datadog spans or a local summary",
    ),
    SinkKind(
        name="prometheus_push",
        sink_class=SinkClass.METRICS,
        minimal_level=Level.EMERGENCY,
        build=build_prometheus_push,
        options={
            "timeout": _HTTP_TIMEOUT,
            "profile": OptionSpec(default=MetricProfile.AUTO.value, choices=tuple(p.value for p in MetricProfile)),
            "filters": OptionSpec(default=""),
        },
        description="Prometheus exposition pushed to a gateway",
    ),
)


class BuiltinSinkKindsPlugin:
    """Contributes the built-in sink kinds."""

    @hookimpl
    def sinkhub_get_sink_kinds(self) -> list[SinkKind]:
        return list(BUILTIN_KINDS)
