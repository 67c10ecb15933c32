# src/sinkhub/contracts/enums.py
"""Levels, channels, modes and kinds used across subsystem boundaries.

Level ordinals are stable and shared with every wire format that carries a
numeric severity, so they must never be renumbered.
"""

from enum import IntEnum, StrEnum
from typing import Any


class Level(IntEnum):
    """Event severity, lowest (DEBUG) to highest (EMERGENCY)."""

    DEBUG = 100
    INFO = 200
    NOTICE = 250
    WARNING = 300
    ERROR = 400
    CRITICAL = 500
    ALERT = 550
    EMERGENCY = 600

    @classmethod
    def coerce(cls, value: Any) -> "Level":
        """Build a Level from a Level, an ordinal or a case-insensitive name.

        Raises:
            ValueError: If value does not designate a level.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Not a level: {value!r}")
        if isinstance(value, int):
            return cls(value)
        if isinstance(value, str):
            name = value.strip().upper()
            if name in cls.__members__:
                return cls[name]
            if name.isdigit():
                return cls(int(name))
        raise ValueError(f"Not a level: {value!r}")

    @property
    def syslog_severity(self) -> int:
        """RFC5424 severity (0 = emergency .. 7 = debug)."""
        return _SYSLOG_SEVERITY[self]

    @property
    def console_colors(self) -> tuple[str, str]:
        """Foreground/background CSS colours used by the browser console."""
        return _CONSOLE_COLORS[self]


_SYSLOG_SEVERITY: dict[Level, int] = {
    Level.DEBUG: 7,
    Level.INFO: 6,
    Level.NOTICE: 5,
    Level.WARNING: 4,
    Level.ERROR: 3,
    Level.CRITICAL: 2,
    Level.ALERT: 1,
    Level.EMERGENCY: 0,
}

_CONSOLE_COLORS: dict[Level, tuple[str, str]] = {
    Level.DEBUG: ("#666666", "#F6F6F6"),
    Level.INFO: ("#3A7CC9", "#EDF4FB"),
    Level.NOTICE: ("#3A7CC9", "#DFECF9"),
    Level.WARNING: ("#C98A1E", "#FDF4E2"),
    Level.ERROR: ("#D9534F", "#FBEAEA"),
    Level.CRITICAL: ("#FFFFFF", "#D9534F"),
    Level.ALERT: ("#FFFFFF", "#B52B27"),
    Level.EMERGENCY: ("#FFFFFF", "#7A1512"),
}


class Channel(StrEnum):
    """Execution mode of the current process.

    Resolved once per process and immutable afterwards.
    """

    UNKNOWN = "UNKNOWN"
    CLI = "CLI"
    CRON = "CRON"
    AJAX = "AJAX"
    XMLRPC = "XMLRPC"
    API = "API"
    FEED = "FEED"
    WBACK = "WBACK"
    WFRONT = "WFRONT"

    @classmethod
    def from_index(cls, index: int) -> "Channel":
        """Map an execution-mode index to a channel; out of range is UNKNOWN."""
        members = list(cls)
        if index < 0 or index >= len(members):
            return cls.UNKNOWN
        return members[index]

    @property
    def label(self) -> str:
        """English display name."""
        return _CHANNEL_LABELS[self]


_CHANNEL_LABELS: dict[Channel, str] = {
    Channel.UNKNOWN: "Unknown",
    Channel.CLI: "Command Line Interface",
    Channel.CRON: "Cron Job",
    Channel.AJAX: "Ajax Request",
    Channel.XMLRPC: "XML-RPC Request",
    Channel.API: "Rest API Request",
    Channel.FEED: "Atom-RDF-RSS Feed",
    Channel.WBACK: "Site Backend",
    Channel.WFRONT: "Site Frontend",
}


class SinkClass(StrEnum):
    """Broad purpose of a sink kind."""

    LOGGING = "logging"
    TRACING = "tracing"
    METRICS = "metrics"
    ALERTING = "alerting"
    DEBUGGING = "debugging"
    ANALYTICS = "analytics"
    SYSTEM = "system"


class SinkOutcome(StrEnum):
    """Result of handing one record to one sink.

    SKIPPED covers every deliberate non-delivery (level threshold, sampling,
    ban, sink class that ignores log records). Only FAILED makes the
    dispatcher report failure.
    """

    ACCEPTED = "accepted"
    SKIPPED = "skipped"
    FAILED = "failed"


class SyslogRfc(StrEnum):
    """Syslog header flavour."""

    RFC3164 = "rfc3164"
    RFC5424 = "rfc5424"


class MetricProfile(StrEnum):
    """Which metrics collector set a metrics sink renders.

    AUTO resolves to PRODUCTION when the environment stage is production.
    """

    PRODUCTION = "production"
    DEVELOPMENT = "development"
    AUTO = "auto"


class HttpVerb(StrEnum):
    """HTTP verbs accepted by HTTP transports."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"


class SpanKind(StrEnum):
    """Zipkin span kind."""

    SERVER = "SERVER"
    CLIENT = "CLIENT"
    PRODUCER = "PRODUCER"
    CONSUMER = "CONSUMER"
