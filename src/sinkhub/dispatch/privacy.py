# src/sinkhub/dispatch/privacy.py
"""Per-sink redaction of network-address and user-identity fields.

Runs after the processor chain (so it sees processor-contributed keys) and
before encoding. Namespace exclusion and field redaction are independent:
a sink that excludes ``http.*`` still gets ``site.remoteip`` hashed.
"""

from collections.abc import Mapping
from typing import Any

from sinkhub.contracts.config import PrivacyFlags
from sinkhub.core.hashing import PrivacyHasher

OBFUSCATED_MARKERS: tuple[str, ...] = ("remoteip", "remote_ip")
PSEUDONYMIZED_MARKERS: tuple[str, ...] = ("userid", "user_id")


class PrivacyFilter:
    """Replaces sensitive values with deterministic keyed hashes."""

    def __init__(self, hasher: PrivacyHasher) -> None:
        self._hasher = hasher

    def _redacts(self, key: str, flags: PrivacyFlags) -> bool:
        lowered = key.lower()
        if flags.obfuscation and any(marker in lowered for marker in OBFUSCATED_MARKERS):
            return True
        return flags.pseudonymization and any(marker in lowered for marker in PSEUDONYMIZED_MARKERS)

    def apply(self, context: Mapping[str, Any], flags: PrivacyFlags) -> dict[str, Any]:
        if not (flags.obfuscation or flags.pseudonymization):
            return dict(context)
        return {
            key: self._hasher.hash(value) if value is not None and self._redacts(key, flags) else value
            for key, value in context.items()
        }
