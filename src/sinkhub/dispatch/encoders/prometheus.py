# src/sinkhub/dispatch/encoders/prometheus.py
"""Prometheus/OpenMetrics text exposition.

Rendering itself is delegated to prometheus_client; this module only
decides which collector registries take part and which metric families are
filtered out. Families with the same name in several registries are merged
into one family so the output never repeats a ``# HELP``/``# TYPE`` block.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from typing import Any

import structlog
from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.metrics_core import Metric

logger = structlog.get_logger(__name__)


def compile_filters(patterns: str | Sequence[str]) -> list[re.Pattern[str]]:
    """Compile newline-separated (or listed) regexes, dropping invalid ones."""
    if isinstance(patterns, str):
        patterns = patterns.splitlines()
    compiled: list[re.Pattern[str]] = []
    for pattern in patterns:
        pattern = pattern.strip()
        if not pattern:
            continue
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            logger.warning("Invalid metric filter ignored", pattern=pattern, error=str(e))
    return compiled


class _MergedCollector:
    def __init__(self, sources: Sequence[CollectorRegistry], filters: Sequence[re.Pattern[str]]) -> None:
        self._sources = sources
        self._filters = filters

    def _excluded(self, name: str) -> bool:
        return any(f.search(name) for f in self._filters)

    def collect(self) -> Iterator[Metric]:
        merged: dict[str, Metric] = {}
        for source in self._sources:
            for family in source.collect():
                if self._excluded(family.name):
                    continue
                target = merged.get(family.name)
                if target is None:
                    target = Metric(family.name, family.documentation, family.type, family.unit)
                    merged[family.name] = target
                target.samples.extend(family.samples)
        yield from merged.values()


class PrometheusEncoder:
    """Renders collector registries to exposition text.

    Args:
        filters: Regexes; metric families whose name matches any are excluded.
    """

    name = "prometheus"

    def __init__(self, filters: str | Sequence[str] = ()) -> None:
        self._filters = compile_filters(filters)

    def render(self, sources: Sequence[CollectorRegistry]) -> str:
        view = CollectorRegistry(auto_describe=False)
        view.register(_MergedCollector(sources, self._filters))  # type: ignore[arg-type]
        try:
            return generate_latest(view).decode("utf-8")
        except Exception as e:
            logger.warning("Metrics rendering failed, sending empty exposition", error=str(e))
            return ""

    def encode(self, payloads: Sequence[Any]) -> str:
        return self.render([p for p in payloads if isinstance(p, CollectorRegistry)])
