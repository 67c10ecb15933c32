# src/sinkhub/dispatch/build.py
"""Collaborators handed to sink kind build functions."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from sinkhub.contracts.storage import StorageProtocol
from sinkhub.core.context import ProcessContext
from sinkhub.dispatch.privacy import PrivacyFilter
from sinkhub.dispatch.processors import InfoProvider, cgi_request_info, no_site_info
from sinkhub.dispatch.transports.console import stdout_writer

SocketConnector = Callable[[str, int, str], Any]


@dataclass(slots=True)
class BuildEnvironment:
    """Everything a sink may need besides its own configuration.

    Attributes:
        context: Process-wide state.
        privacy: Shared privacy filter (keyed by the context hasher).
        storage: External storage collaborator for ``engine: external``.
        http_client: Shared httpx client; None lets each transport own one.
        request_info: Provider for the ``http.*`` processor.
        site_info: Provider for the ``site.*`` processor.
        content_type_provider: Response Content-Type for console sinks.
        console_writer: Receives the console script block.
        socket_connector: ``(host, port, protocol) -> connected socket``;
            None uses real sockets.
    """

    context: ProcessContext
    privacy: PrivacyFilter | None = None
    storage: StorageProtocol | None = None
    http_client: httpx.Client | None = None
    request_info: InfoProvider = cgi_request_info
    site_info: InfoProvider = no_site_info
    content_type_provider: Callable[[], str | None] = field(default=lambda: None)
    console_writer: Callable[[str], None] = stdout_writer
    socket_connector: SocketConnector | None = None

    @property
    def privacy_filter(self) -> PrivacyFilter:
        if self.privacy is None:
            self.privacy = PrivacyFilter(self.context.hasher)
        return self.privacy
