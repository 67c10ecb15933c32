# src/sinkhub/dispatch/errors.py
"""Dispatch-specific exceptions.

None of these ever escape Dispatcher.log(): delivery failures are turned
into a False result. They are raised by explicit validation and discovery
APIs only.
"""


class SinkConfigurationError(Exception):
    """Raised when a sink kind or sink configuration cannot be used.

    Raised during catalog discovery and explicit validation, NOT while
    logging.

    Attributes:
        sink_id: Sink id or kind name that failed
        message: Human-readable error description
    """

    def __init__(self, sink_id: str, message: str) -> None:
        self.sink_id = sink_id
        self.message = message
        super().__init__(f"Sink '{sink_id}' failed: {message}")


class CapabilityUnavailableError(Exception):
    """Raised by HandlerDiagnosis.require() when a runtime capability is missing."""

    def __init__(self, kind: str, reason: str) -> None:
        self.kind = kind
        self.reason = reason
        super().__init__(f"Sink kind '{kind}' unavailable: {reason}")


class MetricNotRegisteredError(Exception):
    """A metric was mutated before being registered."""

    def __init__(self, fqname: str, metric_type: str, profile: str) -> None:
        self.fqname = fqname
        self.metric_type = metric_type
        self.profile = profile
        super().__init__(f"{metric_type} '{fqname}' is not registered in the {profile} profile")
