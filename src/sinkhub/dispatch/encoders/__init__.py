"""Wire-format encoders. Encoders are pure and never raise."""

from sinkhub.dispatch.encoders.console_script import ConsoleScriptEncoder
from sinkhub.dispatch.encoders.json_batch import JsonBatchEncoder, record_to_map
from sinkhub.dispatch.encoders.prometheus import PrometheusEncoder
from sinkhub.dispatch.encoders.syslog import SyslogEncoder
from sinkhub.dispatch.encoders.traces import DatadogTraceEncoder, TraceSummaryEncoder, ZipkinEncoder

__all__ = [
    "ConsoleScriptEncoder",
    "DatadogTraceEncoder",
    "JsonBatchEncoder",
    "PrometheusEncoder",
    "SyslogEncoder",
    "TraceSummaryEncoder",
    "ZipkinEncoder",
    "record_to_map",
]
