# src/sinkhub/dispatch/protocols.py
"""Protocol definitions for the three orthogonal pieces of a sink.

A sink is composed from an encoder (how records look on the wire), a
transport (how bytes leave the process) and a sampling gate. Adding a new
backend is usually a new composition, not a new class.
"""

from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from sinkhub.contracts.enums import SinkClass, SinkOutcome
    from sinkhub.contracts.events import EventRecord


@runtime_checkable
class RecordEncoder(Protocol):
    """Serializer for log records.

    format() turns one record into the per-record payload a transport
    buffers or sends (a dict, or a list of wire lines). encode() turns a
    batch of formatted payloads into the request body.

    Error handling:
        - encode() MUST NOT raise. On unserializable input it returns the
          safest minimal representation (empty array, empty string).
    """

    def format(self, record: "EventRecord") -> Any: ...

    def encode(self, payloads: Sequence[Any]) -> str: ...


@runtime_checkable
class Transport(Protocol):
    """Terminal delivery capability.

    Lifecycle:
        1. Construction: no I/O (connections are lazy)
        2. write(): called per accepted record; may send or buffer
        3. close(): called once at process end, flushes and releases

    Error handling:
        - write() MUST NOT raise - it returns False on failure
        - close() MUST be idempotent
    """

    def write(self, payload: Any) -> bool: ...

    def close(self) -> None: ...


@runtime_checkable
class Processor(Protocol):
    """Context enricher.

    A processor only adds or overwrites keys under its own namespace
    prefix; it never removes keys.
    """

    @property
    def name(self) -> str: ...

    @property
    def namespace(self) -> str: ...

    def __call__(self, context: Mapping[str, Any]) -> dict[str, Any]: ...


@runtime_checkable
class Sink(Protocol):
    """One configured destination.

    handle() MUST NOT raise for delivery problems; it returns FAILED.
    The dispatcher still wraps it in a failure boundary.
    """

    @property
    def id(self) -> str: ...

    @property
    def sink_class(self) -> "SinkClass": ...

    def handle(self, record: "EventRecord") -> "SinkOutcome": ...
