"""Shared data contracts used across sinkhub subsystem boundaries."""

from sinkhub.contracts.config import PrivacyFlags, SinkConfig
from sinkhub.contracts.enums import (
    Channel,
    HttpVerb,
    Level,
    MetricProfile,
    SinkClass,
    SinkOutcome,
    SpanKind,
    SyslogRfc,
)
from sinkhub.contracts.events import ComponentIdentity, EventRecord, Span
from sinkhub.contracts.storage import StorageProtocol

__all__ = [
    "Channel",
    "ComponentIdentity",
    "EventRecord",
    "HttpVerb",
    "Level",
    "MetricProfile",
    "PrivacyFlags",
    "SinkClass",
    "SinkConfig",
    "SinkOutcome",
    "Span",
    "SpanKind",
    "StorageProtocol",
    "SyslogRfc",
]
