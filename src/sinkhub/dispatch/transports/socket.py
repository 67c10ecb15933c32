# src/sinkhub/dispatch/transports/socket.py
"""Raw socket delivery over UDP, TCP or TLS.

The connection is opened lazily on first write. The configured timeout is
applied by temporarily overriding the process default socket timeout around
connect, then restoring it. Any failure closes the socket and reports
through the ban callback, so the owning sink is skipped for the rest of
the process instead of retrying on every event.
"""

from __future__ import annotations

import socket
import ssl
from collections.abc import Callable
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

PROTOCOLS = frozenset({"udp", "tcp", "tls"})

# Largest payload that fits one IPv4 UDP datagram
_UDP_MAX_BYTES = 65_507


class SocketTransport:
    """Line-oriented socket writer.

    Args:
        host: Destination host.
        port: Destination port.
        protocol: "udp", "tcp" or "tls".
        timeout_ms: Connect/write timeout in milliseconds.
        on_failure: Called once with a reason when the socket fails.
        connector: Builds a connected socket; defaults by protocol.
        sink_id: Sink id, for diagnostics.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        protocol: str = "udp",
        timeout_ms: int = 1000,
        on_failure: Callable[[str], None] | None = None,
        connector: Callable[[], Any] | None = None,
        sink_id: str = "",
    ) -> None:
        if protocol not in PROTOCOLS:
            raise ValueError(f"protocol must be one of {sorted(PROTOCOLS)}, got {protocol!r}")
        self._host = host
        self._port = port
        self._protocol = protocol
        self._timeout = max(timeout_ms, 1) / 1000
        self._on_failure = on_failure
        self._connector = connector if connector is not None else self._default_connector
        self._sink_id = sink_id
        self._sock: Any = None
        self._failed = False
        self._closed = False

    @property
    def connected(self) -> bool:
        return self._sock is not None

    @property
    def failed(self) -> bool:
        return self._failed

    def _default_connector(self) -> Any:
        address = (self._host, self._port)
        if self._protocol == "udp":
            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            sock.connect(address)
            return sock
        raw = socket.create_connection(address)
        if self._protocol == "tls":
            return ssl.create_default_context().wrap_socket(raw, server_hostname=self._host)
        return raw

    def _connect(self) -> Any:
        previous = socket.getdefaulttimeout()
        socket.setdefaulttimeout(self._timeout)
        try:
            sock = self._connector()
        finally:
            socket.setdefaulttimeout(previous)
        sock.settimeout(self._timeout)
        return sock

    def _send_line(self, line: str) -> None:
        if self._protocol == "udp":
            self._sock.send(self._datagram(line))
        else:
            self._sock.sendall((line + "\n").encode("utf-8"))

    def _datagram(self, line: str) -> bytes:
        data = line.encode("utf-8")
        if len(data) <= _UDP_MAX_BYTES:
            return data
        # Cut on a character boundary
        data = data[:_UDP_MAX_BYTES].decode("utf-8", "ignore").encode("utf-8")
        logger.debug("Syslog line truncated to fit one datagram", sink_id=self._sink_id, size=len(data))
        return data

    def write(self, payload: Any) -> bool:
        if self._failed or self._closed:
            return False
        lines = [payload] if isinstance(payload, str) else [str(line) for line in payload]
        try:
            if self._sock is None:
                self._sock = self._connect()
            for line in lines:
                self._send_line(line)
        except OSError as e:
            self._fail(f"{type(e).__name__}: {e}")
            return False
        return True

    def _fail(self, reason: str) -> None:
        self._failed = True
        logger.error(
            "Socket delivery failed",
            sink_id=self._sink_id,
            host=self._host,
            port=self._port,
            protocol=self._protocol,
            error=reason,
        )
        self._release()
        if self._on_failure is not None:
            self._on_failure(reason)

    def _release(self) -> None:
        if self._sock is None:
            return
        try:
            self._sock.close()
        except OSError as e:
            logger.debug("Socket close failed", sink_id=self._sink_id, error=str(e))
        self._sock = None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release()
