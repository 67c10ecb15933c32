# tests/unit/encoders/test_syslog_encoder.py
"""Tests for SyslogEncoder header layout and line splitting.

Tests cover:
- RFC5424 header with and without structured-data token
- RFC3164 header in UTC
- priority = facility * 8 + severity
- Multi-line messages split into one line per non-empty line
- Host/pid provider failures fall back to "-"
"""

from datetime import UTC, datetime, timedelta, timezone

import pytest

from sinkhub.contracts.enums import Channel, Level, SyslogRfc
from sinkhub.contracts.events import EventRecord
from sinkhub.dispatch.encoders.syslog import SyslogEncoder

TS = datetime(2024, 1, 1, 0, 0, 0, tzinfo=UTC)


def _encoder(**kwargs: object) -> SyslogEncoder:
    kwargs.setdefault("hostname_provider", lambda: "host1")
    kwargs.setdefault("pid_provider", lambda: 123)
    return SyslogEncoder(**kwargs)  # type: ignore[arg-type]


def _record(message: str, level: Level = Level.INFO, timestamp: datetime = TS) -> EventRecord:
    return EventRecord(level=level, channel=Channel.CLI, message=message, timestamp=timestamp)


class TestRfc5424:
    def test_header_with_token(self) -> None:
        encoder = _encoder(facility=1, ident="ShopApp", token="abc")
        assert encoder.format(_record("Hello")) == ["<14>1 2024-01-01T00:00:00.000+00:00 host1 ShopApp 123 - [abc] Hello"]

    def test_header_without_token(self) -> None:
        assert _encoder().format(_record("Hello")) == ["<14>1 2024-01-01T00:00:00.000+00:00 host1 sinkhub 123 - - Hello"]

    def test_ident_spaces_replaced(self) -> None:
        assert " my_shop 123 " in _encoder(ident="my shop").format(_record("x"))[0]

    @pytest.mark.parametrize(
        ("facility", "level", "priority"),
        [(0, Level.EMERGENCY, 0), (1, Level.DEBUG, 15), (16, Level.ERROR, 131), (23, Level.WARNING, 188)],
    )
    def test_priority(self, facility: int, level: Level, priority: int) -> None:
        line = _encoder(facility=facility).format(_record("x", level))[0]
        assert line.startswith(f"<{priority}>1 ")

    def test_offset_preserved(self) -> None:
        ts = datetime(2024, 1, 1, 2, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert "2024-01-01T02:00:00.000+02:00" in _encoder().format(_record("x", timestamp=ts))[0]


class TestRfc3164:
    def test_header(self) -> None:
        encoder = _encoder(rfc=SyslogRfc.RFC3164, ident="ShopApp", token="abc")
        assert encoder.format(_record("Hello")) == ["<14>Jan 01 00:00:00 host1 ShopApp[123]: abc Hello"]

    def test_header_without_token(self) -> None:
        assert _encoder(rfc=SyslogRfc.RFC3164).format(_record("Hello")) == ["<14>Jan 01 00:00:00 host1 sinkhub[123]: Hello"]

    def test_timestamp_converted_to_utc(self) -> None:
        ts = datetime(2024, 3, 5, 2, 30, 0, tzinfo=timezone(timedelta(hours=2)))
        line = _encoder(rfc=SyslogRfc.RFC3164).format(_record("x", timestamp=ts))[0]
        assert line.startswith("<14>Mar 05 00:30:00 ")


class TestLines:
    def test_one_line_per_message_line(self) -> None:
        lines = _encoder().format(_record("first\r\nsecond\n\nthird"))
        assert [line.rsplit(" ", 1)[-1] for line in lines] == ["first", "second", "third"]

    def test_empty_message_no_lines(self) -> None:
        assert _encoder().format(_record("")) == []

    def test_encode_joins_payloads(self) -> None:
        assert _encoder().encode([["a", "b"], "c", 42]) == "a\nb\nc"


class TestProviders:
    def test_failing_providers_fall_back_to_dash(self) -> None:
        def broken() -> str:
            raise OSError("no hostname")

        line = SyslogEncoder(hostname_provider=broken, pid_provider=lambda: "").format(_record("x"))[0]
        assert line == "<14>1 2024-01-01T00:00:00.000+00:00 - sinkhub - - - x"

    def test_facility_out_of_range(self) -> None:
        with pytest.raises(ValueError, match="facility"):
            SyslogEncoder(facility=24)
