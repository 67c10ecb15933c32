# src/sinkhub/core/environment.py
"""Process environment lookups: execution channel, host name, pid."""

import os
import socket
from collections.abc import Mapping

from sinkhub.contracts.enums import Channel

CHANNEL_ENV_VAR = "SINKHUB_CHANNEL"


def detect_channel(environ: Mapping[str, str] | None = None) -> Channel:
    """Guess the execution channel of the current process.

    Resolution order:
    1. SINKHUB_CHANNEL, when it names a channel (case-insensitive)
    2. WFRONT, when a CGI REQUEST_METHOD is present
    3. CLI
    """
    env = os.environ if environ is None else environ
    forced = env.get(CHANNEL_ENV_VAR, "").strip().upper()
    if forced in Channel.__members__:
        return Channel[forced]
    if env.get("REQUEST_METHOD"):
        return Channel.WFRONT
    return Channel.CLI


def hostname() -> str:
    """Host name, or ``-`` when it cannot be determined."""
    try:
        name = socket.gethostname()
    except OSError:
        return "-"
    return name or "-"


def process_id() -> str:
    """Current pid as a string, or ``-`` when unavailable."""
    try:
        return str(os.getpid())
    except OSError:
        return "-"
