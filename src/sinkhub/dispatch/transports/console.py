# src/sinkhub/dispatch/transports/console.py
"""Browser console delivery.

There is only one response stream per process, so the record buffer lives
on the ProcessContext and is shared by every console transport. The send
callback is registered once per process; at process end a single script
block is written if the response is HTML or JavaScript.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import structlog

from sinkhub.core.lifecycle import PRIORITY_FLUSH

if TYPE_CHECKING:
    from sinkhub.core.context import ProcessContext
    from sinkhub.dispatch.encoders.console_script import ConsoleScriptEncoder

logger = structlog.get_logger(__name__)

_ONCE_KEY = "console_script_send"


def response_format(content_type: str | None) -> str:
    """Classify a Content-Type value as js, html or unknown (None means html)."""
    if content_type is None:
        return "html"
    lowered = content_type.lower()
    if "application/javascript" in lowered or "text/javascript" in lowered:
        return "js"
    if "text/html" in lowered:
        return "html"
    return "unknown"


def stdout_writer(text: str) -> None:
    sys.stdout.write(text)


class ConsoleScriptTransport:
    """Buffers console payloads process-wide and emits one script at the end.

    Args:
        context: Process context holding the shared buffer.
        encoder: Script encoder.
        content_type_provider: Returns the response Content-Type, or None.
        writer: Receives the final script block.
    """

    def __init__(
        self,
        context: ProcessContext,
        encoder: ConsoleScriptEncoder,
        *,
        content_type_provider: Callable[[], str | None] = lambda: None,
        writer: Callable[[str], None] = stdout_writer,
    ) -> None:
        self._context = context
        self._encoder = encoder
        self._content_type_provider = content_type_provider
        self._writer = writer

    def write(self, payload: Any) -> bool:
        self._context.console_buffer.append(payload)
        if self._context.once(_ONCE_KEY):
            self._context.lifecycle.on_process_end(self.send, PRIORITY_FLUSH, name="console_script")
        return True

    def send(self) -> None:
        records = list(self._context.console_buffer)
        self._context.console_buffer.clear()
        if not records:
            return
        fmt = response_format(self._content_type_provider())
        if fmt == "unknown":
            logger.debug("Console script skipped for non-HTML response", records=len(records))
            return
        script = self._encoder.encode(records)
        if not script:
            return
        self._writer(f"<script>{script}</script>" if fmt == "html" else script)

    def close(self) -> None:
        pass
