# src/sinkhub/dispatch/__init__.py
"""Multi-sink dispatch.

Components:
- dispatcher: Dispatcher, the per-component fan-out hub
- factory: create_dispatcher() and pluggy sink kind discovery
- catalog: SinkKind definitions and configuration normalization
- kinds: built-in sink kinds
- sinks: LogSink, TraceSink, MetricsSink, NullSink
- encoders: JSON, syslog, Zipkin/Datadog/summary, Prometheus, console script
- transports: buffered HTTP, socket, storage write, console script
- processors: ProcessorChain and the code./http./site. processors
- privacy: PrivacyFilter
- sampling: SamplingGate
- diagnosis: HandlerDiagnosis capability gate
- bridge: DispatcherHandler for stdlib logging
- errors: dispatch exceptions

Usage:
    from sinkhub.dispatch import create_dispatcher

    dispatcher = create_dispatcher(settings, identity)
    dispatcher.warning("Cache miss storm", code=12)
    dispatcher.finalize()
"""

from sinkhub.dispatch.bridge import DispatcherHandler
from sinkhub.dispatch.catalog import OptionSpec, SinkKind, SinkKindCatalog
from sinkhub.dispatch.diagnosis import HandlerDiagnosis
from sinkhub.dispatch.dispatcher import Dispatcher
from sinkhub.dispatch.errors import CapabilityUnavailableError, MetricNotRegisteredError, SinkConfigurationError
from sinkhub.dispatch.factory import create_context, create_dispatcher, discover_sink_kinds
from sinkhub.dispatch.privacy import PrivacyFilter
from sinkhub.dispatch.processors import ProcessorChain
from sinkhub.dispatch.protocols import Processor, RecordEncoder, Sink, Transport
from sinkhub.dispatch.sampling import SamplingGate

__all__ = [
    "CapabilityUnavailableError",
    "Dispatcher",
    "DispatcherHandler",
    "HandlerDiagnosis",
    "MetricNotRegisteredError",
    "OptionSpec",
    "PrivacyFilter",
    "Processor",
    "ProcessorChain",
    "RecordEncoder",
    "SamplingGate",
    "Sink",
    "SinkConfigurationError",
    "SinkKind",
    "SinkKindCatalog",
    "Transport",
    "create_context",
    "create_dispatcher",
    "discover_sink_kinds",
]
