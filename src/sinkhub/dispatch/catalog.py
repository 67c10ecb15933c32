# src/sinkhub/dispatch/catalog.py
"""Sink kind definitions and configuration normalization.

A SinkKind describes everything needed to turn a normalized SinkConfig into
a working sink: its class, minimal level, option schema, processor
inclusion/exclusion and a build function. Kinds are contributed by pluggy
plugins (see hookspecs.py) and collected into a SinkKindCatalog.

Normalization is total and idempotent: whatever was persisted, the result
is a SinkSettings every kind can build from, and normalizing it again
changes nothing.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from sinkhub.contracts.enums import HttpVerb, Level, SinkClass
from sinkhub.dispatch.errors import SinkConfigurationError
from sinkhub.dispatch.processors import KNOWN_PROCESSORS, NAMESPACE_BY_PROCESSOR

if TYPE_CHECKING:
    from sinkhub.contracts.config import SinkConfig
    from sinkhub.core.config import SinkSettings
    from sinkhub.dispatch.build import BuildEnvironment
    from sinkhub.dispatch.protocols import Sink

logger = structlog.get_logger(__name__)

NULL_KIND = "null"

_BRACE_VAR = re.compile(r"\{([A-Z_][A-Z0-9_]*)\}")


@dataclass(frozen=True, slots=True)
class OptionSpec:
    """Schema of one kind option.

    Values of the wrong type, outside [minimum, maximum] or outside choices
    revert to the default.
    """

    default: Any
    choices: tuple[Any, ...] | None = None
    minimum: int | None = None
    maximum: int | None = None

    def coerce(self, value: Any) -> Any:
        if isinstance(self.default, bool):
            return value if isinstance(value, bool) else self.default
        if isinstance(self.default, int):
            if isinstance(value, bool):
                return self.default
            try:
                number = int(value)
            except (TypeError, ValueError):
                return self.default
            if self.minimum is not None and number < self.minimum:
                return self.default
            if self.maximum is not None and number > self.maximum:
                return self.default
            return number
        if self.choices is not None:
            return value if value in self.choices else self.default
        if isinstance(self.default, str):
            return value if isinstance(value, str) else self.default
        return value


@dataclass(frozen=True, slots=True)
class SinkKind:
    """Definition of one sink kind.

    Attributes:
        name: Kind name used in configuration.
        sink_class: Broad purpose (logging, tracing, metrics...).
        minimal_level: Lowest level this kind accepts.
        build: Turns a normalized config into a sink.
        options: Option schema with defaults.
        formats: Accepted format ids; the first is the default.
        included_processors: Always appended to the processor list.
        excluded_processors: Always removed; their namespaces are excluded.
        description: One line, for listings.
    """

    name: str
    sink_class: SinkClass
    minimal_level: Level
    build: Callable[["SinkConfig", "BuildEnvironment"], "Sink"]
    options: Mapping[str, OptionSpec] = field(default_factory=dict)
    formats: tuple[str, ...] = ()
    included_processors: tuple[str, ...] = ()
    excluded_processors: tuple[str, ...] = ()
    description: str = ""

    @property
    def excluded_namespaces(self) -> tuple[str, ...]:
        return tuple(NAMESPACE_BY_PROCESSOR[p] for p in self.excluded_processors if p in NAMESPACE_BY_PROCESSOR)


def substitute_braces(value: str, environ: Mapping[str, str] | None = None) -> str:
    """Replace ``{VAR}`` with the environment value; unknown names are kept."""
    env = os.environ if environ is None else environ
    return _BRACE_VAR.sub(lambda m: env.get(m.group(1), m.group(0)), value)


class SinkKindCatalog:
    """Name -> SinkKind lookup plus normalization."""

    def __init__(self, kinds: Iterable[SinkKind] = ()) -> None:
        self._kinds: dict[str, SinkKind] = {}
        for kind in kinds:
            self.add(kind)

    def add(self, kind: SinkKind) -> None:
        if not kind.name:
            raise SinkConfigurationError("sink_kinds", f"Sink kind without a name: {kind!r}")
        if kind.name in self._kinds:
            raise SinkConfigurationError(kind.name, f"Duplicate sink kind name '{kind.name}'")
        self._kinds[kind.name] = kind

    def get(self, name: str) -> SinkKind | None:
        return self._kinds.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._kinds

    @property
    def names(self) -> list[str]:
        return sorted(self._kinds)

    def normalize(self, settings: "SinkSettings", *, env_substitution: bool = False) -> "SinkSettings":
        """Default and clamp a sink's settings against its kind."""
        kind_name = settings.kind if settings.kind in self._kinds else NULL_KIND
        if kind_name != settings.kind:
            logger.debug("Unknown sink kind, using null sink", sink_id=settings.id, kind=settings.kind)
        kind = self._kinds.get(kind_name)
        if kind is None:
            raise SinkConfigurationError(settings.id, f"Catalog has no '{NULL_KIND}' kind to fall back to")

        try:
            level = Level.coerce(settings.level) if settings.level is not None else kind.minimal_level
        except ValueError:
            level = kind.minimal_level
        level = max(level, kind.minimal_level)

        verb = settings.verb.upper() if settings.verb.upper() in HttpVerb.__members__ else HttpVerb.POST.value

        processors: list[str] = []
        for name in [*settings.processors, *kind.included_processors]:
            if name in KNOWN_PROCESSORS and name not in kind.excluded_processors and name not in processors:
                processors.append(name)

        options = dict(settings.options)
        for key, spec in kind.options.items():
            options[key] = spec.coerce(options[key]) if key in options else spec.default

        fmt = settings.format if settings.format in kind.formats else (kind.formats[0] if kind.formats else "")

        endpoint = settings.endpoint
        headers = dict(settings.headers)
        if env_substitution:
            endpoint = substitute_braces(endpoint)
            headers = {k: substitute_braces(v) for k, v in headers.items()}
            options = {k: substitute_braces(v) if isinstance(v, str) else v for k, v in options.items()}

        return settings.model_copy(
            update={
                "kind": kind_name,
                "name": settings.name or settings.id,
                "level": level.name.lower(),
                "sampling": min(max(settings.sampling, 0), 1000),
                "format": fmt,
                "verb": verb,
                "endpoint": endpoint,
                "headers": headers,
                "processors": processors,
                "options": options,
            }
        )
