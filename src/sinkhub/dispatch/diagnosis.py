# src/sinkhub/dispatch/diagnosis.py
"""Capability gate consulted before a sink is instantiated.

Some sink kinds depend on an optional runtime capability (datagram sockets,
TLS). HandlerDiagnosis maps a kind name to a small check closure and the
reason reported when the check fails. Kinds without a registered check are
always usable.
"""

import importlib.util
import socket
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from sinkhub.dispatch.errors import CapabilityUnavailableError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class CapabilityCheck:
    predicate: Callable[[], bool]
    reason: str


def _has_datagram_sockets() -> bool:
    return hasattr(socket, "SOCK_DGRAM") and hasattr(socket, "AF_INET")


def _has_tls() -> bool:
    return importlib.util.find_spec("ssl") is not None


class HandlerDiagnosis:
    """Registry of kind name -> capability check."""

    def __init__(self) -> None:
        self._checks: dict[str, CapabilityCheck] = {}

    @classmethod
    def with_defaults(cls) -> "HandlerDiagnosis":
        diagnosis = cls()
        diagnosis.register("syslog_udp", _has_datagram_sockets, "Runtime support for UDP sockets is not available.")
        diagnosis.register("syslog_tls", _has_tls, "Runtime support for TLS (ssl module) is not available.")
        return diagnosis

    def register(self, kind: str, predicate: Callable[[], bool], reason: str) -> None:
        """Register or replace the capability check for kind."""
        if not reason:
            raise ValueError(f"A failure reason is required for kind '{kind}'")
        self._checks[kind] = CapabilityCheck(predicate=predicate, reason=reason)

    def check(self, kind: str) -> bool:
        entry = self._checks.get(kind)
        if entry is None:
            return True
        try:
            return bool(entry.predicate())
        except Exception as e:
            logger.warning("Capability check raised", kind=kind, error=str(e))
            return False

    def error_string(self, kind: str) -> str:
        """Reason the kind is unusable, or "" when it is usable."""
        if self.check(kind):
            return ""
        return self._checks[kind].reason

    def require(self, kind: str) -> None:
        """Raise CapabilityUnavailableError if kind is unusable."""
        if not self.check(kind):
            raise CapabilityUnavailableError(kind, self._checks[kind].reason)
