# src/sinkhub/dispatch/encoders/console_script.py
"""Browser console script generation.

Records become ``console.log`` calls inside one guarded IIFE. Style markers
``[[text]]{css}`` in the formatted line become ``%c`` placeholders, each
marker adding two style arguments (its own css, then a reset). A marker
whose text is a level name also gets that level's colours. Records with
context are rendered as a collapsed group followed by one line per key.
"""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence
from typing import Any

from sinkhub.contracts.enums import Level
from sinkhub.contracts.events import EventRecord

_STYLE_MARKER = re.compile(r"\[\[(.*?)\]\]\{([^}]*)\}", re.DOTALL)
_RESET = "font-weight: normal"

DEFAULT_LINE_FORMAT = "[[{level}]]{{font-weight: bold}} {message}"


def quote(value: str) -> str:
    """JS string literal: escape backslash, double quote and newline."""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


def call(method: str, *args: str) -> str:
    return f"c.{method}({', '.join(args)});"


def _level_style(text: str) -> str:
    name = text.strip().upper()
    if name not in Level.__members__:
        return ""
    color, background = Level[name].console_colors
    return f"background-color:{background};color:{color};border-radius: 3px;padding:1px 6px;"


def handle_styles(formatted: str) -> list[str]:
    """Quoted console arguments for a styled line: format string first."""
    styles: list[str] = [_RESET]

    def replace(match: re.Match[str]) -> str:
        text, css = match.group(1), match.group(2).strip()
        styles.append(_level_style(text) + css)
        styles.append(_RESET)
        return f"%c{text}%c"

    fmt = "%c" + _STYLE_MARKER.sub(replace, formatted)
    return [quote(fmt), *(quote(style) for style in styles)]


def _json(value: Any) -> str:
    try:
        return json.dumps(value, default=str, ensure_ascii=False)
    except (TypeError, ValueError, RecursionError):
        return quote("")


def dump(title: str, values: Mapping[str, Any]) -> list[str]:
    filtered = {key: value for key, value in values.items() if value not in (None, "", [], {}, 0, False)}
    if not filtered:
        return []
    lines = [call("log", quote("%c%s"), quote("font-weight: bold"), quote(title))]
    for key, value in filtered.items():
        lines.append(call("log", quote("%s: %o"), quote(str(key)), _json(value)))
    return lines


class ConsoleScriptEncoder:
    """Record -> console payload; payloads -> one guarded script.

    Args:
        line_format: Format of the first line; ``{level}`` and ``{message}``
            are substituted.
    """

    name = "console"

    def __init__(self, line_format: str = DEFAULT_LINE_FORMAT) -> None:
        self._line_format = line_format

    def format(self, record: EventRecord) -> dict[str, Any]:
        return {
            "formatted": self._line_format.format(level=record.level.name, message=record.message),
            "context": dict(record.context),
        }

    def encode(self, payloads: Sequence[Any]) -> str:
        script: list[str] = []
        for payload in payloads:
            if not isinstance(payload, Mapping):
                continue
            styled = handle_styles(str(payload.get("formatted", "")))
            context = dump("Context", payload.get("context") or {})
            if not context:
                script.append(call("log", *styled))
            else:
                script.append(call("groupCollapsed", *styled))
                script.extend(context)
                script.append(call("groupEnd"))
        if not script:
            return ""
        return "(function (c) {if (c && c.groupCollapsed) {\n" + "\n".join(script) + "\n}})(console);"
