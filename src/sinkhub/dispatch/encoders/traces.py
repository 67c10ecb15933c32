# src/sinkhub/dispatch/encoders/traces.py
"""Trace encoders: Zipkin v2, Datadog span lists, local trace summary.

All three take the flattened, already tag-filtered span list produced at
process end by the tracing sink.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

import structlog

from sinkhub.contracts.enums import Channel
from sinkhub.contracts.events import Span

logger = structlog.get_logger(__name__)

_DATADOG_FIELD_LIMIT = 100


def span_to_zipkin(span: Span) -> dict[str, Any]:
    """Zipkin v2 span object; parentId, tags and kind are omitted when empty."""
    data: dict[str, Any] = {
        "id": span.id,
        "traceId": span.trace_id,
        "name": span.name,
        "timestamp": span.start_micros,
        "duration": span.duration_micros,
        "localEndpoint": {"serviceName": span.service_name},
    }
    if span.parent_id is not None:
        data["parentId"] = span.parent_id
    if span.tags:
        data["tags"] = dict(span.tags)
    if span.kind is not None:
        data["kind"] = str(span.kind)
    return data


def _dumps(payload: Any, fallback: str) -> str:
    try:
        return json.dumps(payload, default=str, ensure_ascii=False)
    except (TypeError, ValueError, RecursionError) as e:
        logger.warning("Trace encoding failed, sending minimal payload", error=str(e))
        return fallback


class ZipkinEncoder:
    name = "zipkin"

    def encode(self, spans: Sequence[Span]) -> str:
        return _dumps([span_to_zipkin(span) for span in spans], "[]")


def _hex_to_int(value: str | None) -> int:
    if not value:
        return 0
    try:
        return int(value, 16)
    except ValueError:
        return 0


class DatadogTraceEncoder:
    """Datadog agent ``/v0.3/traces`` payload: one single-span trace per span.

    Ids are the decimal value of the hex ids; the trace id uses the low
    64 bits of the 128-bit trace id. Times are nanoseconds.
    """

    name = "datadog"

    def __init__(self, channel: Channel) -> None:
        self._service = channel.label.lower().replace(" ", "_")[:_DATADOG_FIELD_LIMIT]

    def _span(self, span: Span) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": "web",
            "start": span.start_micros * 1000,
            "duration": span.duration_micros * 1000,
            "span_id": _hex_to_int(span.id),
            "trace_id": _hex_to_int(span.trace_id[16:32]),
            "service": self._service,
            "resource": span.service_name.title()[:_DATADOG_FIELD_LIMIT],
            "name": span.name[:_DATADOG_FIELD_LIMIT],
        }
        parent = _hex_to_int(span.parent_id)
        if parent:
            data["parent_id"] = parent
        if span.tags:
            data["meta"] = {key: str(value) for key, value in span.tags.items()}
        return data

    def encode(self, spans: Sequence[Span]) -> str:
        return _dumps([[self._span(span)] for span in spans], "[]")


class TraceSummaryEncoder:
    """Compact trace record for the Storage collaborator.

    The summary holds trace id, channel, max span duration (ms), span
    count, and the span hierarchy as nested ``subspans`` lists.
    """

    name = "local"

    def __init__(self, channel: Channel) -> None:
        self._channel = str(channel).lower()

    @staticmethod
    def hierarchy(spans: Sequence[Span]) -> list[dict[str, Any]]:
        nodes: dict[str, dict[str, Any]] = {}
        for span in spans:
            nodes[span.id] = {
                "start": span.start_micros,
                "duration": span.duration_micros,
                "resource": span.service_name.title(),
                "name": span.name,
                "subspans": [],
            }
        roots: list[dict[str, Any]] = []
        for span in spans:
            parent = nodes.get(span.parent_id) if span.parent_id is not None else None
            if parent is None:
                roots.append(nodes[span.id])
            else:
                parent["subspans"].append(nodes[span.id])
        return roots

    def summarize(self, spans: Sequence[Span]) -> dict[str, Any]:
        start = min((span.start_micros for span in spans), default=0)
        return {
            "trace_id": spans[0].trace_id if spans else "",
            "timestamp": datetime.fromtimestamp(start / 1_000_000, UTC).strftime("%Y-%m-%d %H:%M:%S"),
            "channel": self._channel,
            "duration": max((span.duration_micros for span in spans), default=0) // 1000,
            "scount": len(spans),
            "spans": _dumps(self.hierarchy(spans), "[]"),
        }

    def encode(self, spans: Sequence[Span]) -> str:
        return _dumps(self.summarize(spans), "{}")
