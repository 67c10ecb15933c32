# src/sinkhub/dispatch/encoders/json_batch.py
"""JSON array-of-events encoder for HTTP log intake APIs."""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime
from enum import Enum
from typing import Any

import structlog

from sinkhub.contracts.events import EventRecord

logger = structlog.get_logger(__name__)


def _json_safe(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


def record_to_map(record: EventRecord) -> dict[str, Any]:
    """Flat, normalized record map shared by JSON and storage sinks."""
    return {
        "timestamp": record.timestamp.isoformat(),
        "level": record.level.name.lower(),
        "level_value": int(record.level),
        "channel": str(record.channel).lower(),
        "code": record.code,
        "message": record.message,
        "context": dict(record.context),
    }


class JsonBatchEncoder:
    """One record -> dict, many records -> one JSON array.

    Args:
        extra_fields: Static fields merged into every record (service,
            source, tags...), as many intake APIs require.
    """

    name = "json_batch"

    def __init__(self, extra_fields: dict[str, Any] | None = None) -> None:
        self._extra = dict(extra_fields or {})

    def format(self, record: EventRecord) -> dict[str, Any]:
        return {**self._extra, **record_to_map(record)}

    def encode(self, payloads: Sequence[Any]) -> str:
        try:
            return json.dumps(list(payloads), default=_json_safe, ensure_ascii=False)
        except (TypeError, ValueError, RecursionError) as e:
            logger.warning("JSON batch encoding failed, sending empty batch", error=str(e), count=len(payloads))
            return "[]"
