# src/sinkhub/dispatch/encoders/syslog.py
"""Syslog line encoder (RFC3164 / RFC5424).

Headers:
    RFC5424: ``<pri>1 <iso8601-ms> <host> <ident> <pid> - [<token>] ``
             (``- - `` when no token is configured)
    RFC3164: ``<pri><Mon dd HH:MM:SS> <host> <ident>[<pid>]: <token> ``
             (timestamp in UTC; the token part is omitted when empty)

priority = facility * 8 + severity. Each non-empty line of the message
becomes its own syslog line carrying the full header.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

from sinkhub.contracts.enums import SyslogRfc
from sinkhub.contracts.events import EventRecord
from sinkhub.core.environment import hostname, process_id

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_LINE_BREAK = re.compile(r"\r\n|\r|\n")

FACILITY_USER = 1
FACILITY_LOCAL0 = 16


def _or_dash(value: Any) -> str:
    text = "" if value is None else str(value).strip()
    return text or "-"


class SyslogEncoder:
    """One record -> list of syslog lines.

    Args:
        rfc: Header flavour.
        facility: Syslog facility code (0..23), e.g. 1 for user.
        ident: Program identifier.
        token: Structured-data token (RFC5424 SD block, RFC3164 prefix).
        hostname_provider: Host name source; falls back to ``-``.
        pid_provider: Process id source; falls back to ``-``.
    """

    name = "syslog"

    def __init__(
        self,
        *,
        rfc: SyslogRfc = SyslogRfc.RFC5424,
        facility: int = FACILITY_USER,
        ident: str = "sinkhub",
        token: str = "",
        hostname_provider: Callable[[], Any] = hostname,
        pid_provider: Callable[[], Any] = process_id,
    ) -> None:
        if not 0 <= facility <= 23:
            raise ValueError(f"facility must be within 0..23, got {facility}")
        self._rfc = rfc
        self._facility = facility
        self._ident = _or_dash(ident.replace(" ", "_"))
        self._token = token.strip()
        self._hostname_provider = hostname_provider
        self._pid_provider = pid_provider

    def _safe(self, provider: Callable[[], Any]) -> str:
        try:
            return _or_dash(provider())
        except Exception:
            return "-"

    def header(self, severity: int, timestamp: datetime) -> str:
        priority = self._facility * 8 + severity
        host = self._safe(self._hostname_provider)
        pid = self._safe(self._pid_provider)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        if self._rfc is SyslogRfc.RFC3164:
            ts = timestamp.astimezone(UTC)
            date = f"{_MONTHS[ts.month - 1]} {ts.day:02d} {ts:%H:%M:%S}"
            token = f"{self._token} " if self._token else ""
            return f"<{priority}>{date} {host} {self._ident}[{pid}]: {token}"
        date = timestamp.isoformat(timespec="milliseconds")
        structured = f"[{self._token}]" if self._token else "-"
        return f"<{priority}>1 {date} {host} {self._ident} {pid} - {structured} "

    def format(self, record: EventRecord) -> list[str]:
        header = self.header(record.level.syslog_severity, record.timestamp)
        return [header + line for line in _LINE_BREAK.split(record.message) if line]

    def encode(self, payloads: Sequence[Any]) -> str:
        lines: list[str] = []
        for payload in payloads:
            if isinstance(payload, str):
                lines.append(payload)
            elif isinstance(payload, list | tuple):
                lines.extend(str(line) for line in payload)
        return "\n".join(lines)
