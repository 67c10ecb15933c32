# src/sinkhub/dispatch/transports/http.py
"""HTTP delivery: one-shot requests and the buffered batch transport.

Every outbound request carries a ``Sinkhub-No-Log: outbound`` header so a
host application that logs its own outbound HTTP calls can recognise and
skip these, avoiding a logging loop.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from sinkhub import __version__
from sinkhub.contracts.enums import HttpVerb
from sinkhub.core.lifecycle import PRIORITY_FLUSH, LifecycleCoordinator
from sinkhub.dispatch.buffer import BoundedBuffer

if TYPE_CHECKING:
    from sinkhub.dispatch.protocols import RecordEncoder

logger = structlog.get_logger(__name__)

USER_AGENT = f"sinkhub/{__version__}"
NO_LOG_HEADER = "Sinkhub-No-Log"

# Codes meaning "accepted and processed"; other 1xx-3xx codes are accepted too
EFFECTIVE_PASS_CODES = frozenset({200, 201, 202, 204})
TRANSPORT_ERROR_CODE = 999


class HttpTransport:
    """Sends one body per call with the configured verb.

    Args:
        endpoint: Destination URL.
        verb: GET, POST or PUT. GET requests carry no body.
        headers: Extra headers (credentials, content type).
        timeout: Client timeout in seconds.
        client: Shared httpx.Client; one is created (and owned) if omitted.
        sink_id: Sink id, for diagnostics.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        verb: HttpVerb = HttpVerb.POST,
        headers: Mapping[str, str] | None = None,
        timeout: float = 10.0,
        client: httpx.Client | None = None,
        sink_id: str = "",
    ) -> None:
        self._endpoint = endpoint
        self._verb = verb
        self._headers = {
            "User-Agent": USER_AGENT,
            NO_LOG_HEADER: "outbound",
            "Content-Type": "application/json",
            **dict(headers or {}),
        }
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(timeout=timeout)
        self._sink_id = sink_id
        self._closed = False
        self.last_status: int | None = None

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    def send(self, body: str) -> bool:
        """Issue one request. Never raises; returns True on a 1xx-3xx status."""
        if not body:
            logger.debug("Empty body, nothing sent", sink_id=self._sink_id, endpoint=self._endpoint)
            return True
        kwargs: dict[str, Any] = {"headers": self._headers}
        if self._verb is not HttpVerb.GET:
            kwargs["content"] = body.encode("utf-8")
        try:
            response = self._client.request(str(self._verb), self._endpoint, **kwargs)
        except httpx.HTTPError as e:
            self.last_status = TRANSPORT_ERROR_CODE
            logger.error(
                "Delivery failed",
                sink_id=self._sink_id,
                endpoint=self._endpoint,
                code=TRANSPORT_ERROR_CODE,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        code = response.status_code
        self.last_status = code
        message = response.reason_phrase or "Unknown error"
        if code in EFFECTIVE_PASS_CODES:
            logger.debug("Delivery accepted", sink_id=self._sink_id, endpoint=self._endpoint, code=code, reason=message)
            return True
        if 100 <= code < 400:
            logger.info("Delivery acknowledged", sink_id=self._sink_id, endpoint=self._endpoint, code=code, reason=message)
            return True
        logger.warning("Delivery rejected", sink_id=self._sink_id, endpoint=self._endpoint, code=code, reason=message)
        return False

    def write(self, payload: Any) -> bool:
        return self.send(payload if isinstance(payload, str) else str(payload))

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._owns_client:
            self._client.close()


class BufferedHttpTransport:
    """Accumulates payloads and sends them as one request at process end.

    The flush callback is registered with the lifecycle coordinator on the
    first write only. In direct mode (buffered=False) every write is sent
    immediately as a one-element batch.
    """

    def __init__(
        self,
        http: HttpTransport,
        encoder: RecordEncoder,
        lifecycle: LifecycleCoordinator,
        *,
        buffered: bool = True,
        max_size: int = 10_000,
        sink_id: str = "",
    ) -> None:
        self._http = http
        self._encoder = encoder
        self._lifecycle = lifecycle
        self._buffered = buffered
        self._buffer = BoundedBuffer(max_size, owner=sink_id)
        self._sink_id = sink_id
        self._registered = False
        self._closed = False

    @property
    def buffer(self) -> BoundedBuffer:
        return self._buffer

    @property
    def buffered(self) -> bool:
        return self._buffered

    @property
    def registered(self) -> bool:
        return self._registered

    def write(self, payload: Any) -> bool:
        if self._closed:
            logger.warning("Write after close - payload dropped", sink_id=self._sink_id)
            return False
        self._buffer.append(payload)
        if not self._buffered:
            return self.flush()
        if not self._registered:
            self._registered = self._lifecycle.on_process_end(self.close, PRIORITY_FLUSH, name=f"flush:{self._sink_id}")
            if not self._registered:
                # Process end already ran; nothing will flush later
                return self.flush()
        return True

    def flush(self) -> bool:
        if not len(self._buffer):
            return True
        batch = self._buffer.drain()
        return self._http.send(self._encoder.encode(batch))

    def close(self) -> None:
        if self._closed:
            return
        try:
            self.flush()
        finally:
            self._closed = True
            self._http.close()
