# src/sinkhub/dispatch/processors.py
"""Context enrichers applied per sink before privacy filtering.

Each processor owns one namespace prefix and contributes keys only under
it. A sink declares an ordered inclusion list of processor names; its kind
may additionally exclude whole namespaces, in which case the matching
processor is skipped for that sink.

Built-in processors:
    introspection (``code.*``): file, line, class, function of the caller
    http (``http.*``): remote ip, user agent, uri, method, referer, server
    site (``site.*``): site and user identity supplied by the host app
"""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Mapping, Sequence
from types import FrameType
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

InfoProvider = Callable[[], Mapping[str, Any] | None]

INTROSPECTION = "introspection"
HTTP = "http"
SITE = "site"

KNOWN_PROCESSORS: tuple[str, ...] = (INTROSPECTION, HTTP, SITE)

NAMESPACE_BY_PROCESSOR: dict[str, str] = {
    INTROSPECTION: "code.",
    HTTP: "http.",
    SITE: "site.",
}

_CGI_KEYS: dict[str, str] = {
    "remoteip": "REMOTE_ADDR",
    "useragent": "HTTP_USER_AGENT",
    "uri": "REQUEST_URI",
    "method": "REQUEST_METHOD",
    "referer": "HTTP_REFERER",
    "server": "SERVER_NAME",
}


def cgi_request_info() -> dict[str, Any]:
    """Request info from CGI-style environment variables."""
    return {key: os.environ[var] for key, var in _CGI_KEYS.items() if os.environ.get(var)}


def no_site_info() -> dict[str, Any]:
    return {}


def _namespaced(namespace: str, values: Mapping[str, Any] | None) -> dict[str, Any]:
    if not values:
        return {}
    return {f"{namespace}{key}": value for key, value in values.items() if value is not None}


class IntrospectionProcessor:
    """Adds the first caller frame outside the skipped module prefixes."""

    name = INTROSPECTION
    namespace = "code."

    def __init__(self, skip_modules: Sequence[str] = ("sinkhub", "logging")) -> None:
        self._skip_modules = frozenset(skip_modules)
        self._skip_prefixes = tuple(f"{m}." for m in skip_modules)

    def _caller(self) -> FrameType | None:
        frame = sys._getframe(1)
        while frame is not None:
            module = frame.f_globals.get("__name__", "")
            if module not in self._skip_modules and not module.startswith(self._skip_prefixes):
                return frame
            frame = frame.f_back
        return None

    def __call__(self, context: Mapping[str, Any]) -> dict[str, Any]:
        frame = self._caller()
        if frame is None:
            return dict(context)
        code = frame.f_code
        owner = frame.f_locals.get("self")
        values = {
            "file": code.co_filename,
            "line": frame.f_lineno,
            "class": type(owner).__name__ if owner is not None else None,
            "function": code.co_name,
        }
        return {**context, **_namespaced(self.namespace, values)}


class HttpRequestProcessor:
    """Adds request information from an injected provider."""

    name = HTTP
    namespace = "http."

    def __init__(self, provider: InfoProvider = cgi_request_info) -> None:
        self._provider = provider

    def __call__(self, context: Mapping[str, Any]) -> dict[str, Any]:
        return {**context, **_namespaced(self.namespace, self._provider())}


class SiteProcessor:
    """Adds site and user identity from an injected provider.

    Typical keys: siteid, sitename, sitedomain, userid, username,
    usersession.
    """

    name = SITE
    namespace = "site."

    def __init__(self, provider: InfoProvider = no_site_info) -> None:
        self._provider = provider

    def __call__(self, context: Mapping[str, Any]) -> dict[str, Any]:
        return {**context, **_namespaced(self.namespace, self._provider())}


def build_processor(
    name: str,
    *,
    request_info: InfoProvider = cgi_request_info,
    site_info: InfoProvider = no_site_info,
) -> IntrospectionProcessor | HttpRequestProcessor | SiteProcessor:
    match name:
        case "introspection":
            return IntrospectionProcessor()
        case "http":
            return HttpRequestProcessor(request_info)
        case "site":
            return SiteProcessor(site_info)
        case _:
            raise ValueError(f"Unknown processor '{name}'. Known processors: {list(KNOWN_PROCESSORS)}")


class ProcessorChain:
    """Ordered processors for one sink, minus excluded namespaces.

    Only keys under a processor's own namespace are taken from its output,
    so a processor can never drop or rewrite another namespace.
    """

    def __init__(self, processors: Sequence[Any], excluded_namespaces: Sequence[str] = ()) -> None:
        excluded = tuple(excluded_namespaces)
        self._processors = [p for p in processors if p.namespace not in excluded]
        self._skipped = [p.name for p in processors if p.namespace in excluded]
        self._excluded = excluded

    @property
    def names(self) -> list[str]:
        return [p.name for p in self._processors]

    @property
    def skipped(self) -> list[str]:
        return list(self._skipped)

    @property
    def excluded_namespaces(self) -> tuple[str, ...]:
        return self._excluded

    def __call__(self, context: Mapping[str, Any]) -> dict[str, Any]:
        result = dict(context)
        for processor in self._processors:
            contributed = processor(dict(result))
            namespace = processor.namespace
            for key, value in contributed.items():
                if key.startswith(namespace):
                    result[key] = value
        return result

    def __len__(self) -> int:
        return len(self._processors)
