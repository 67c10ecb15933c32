# src/sinkhub/core/hashing.py
"""One-way short hashing for privacy redaction.

Uses HMAC-SHA256 so a redacted value cannot be recovered by hashing a
dictionary of candidate IPs or user ids without the key. The key is, in
order: the explicit key, SINKHUB_PRIVACY_KEY, or a random per-process key.
The same input always hashes to the same output for a given hasher.

Usage:
    hasher = PrivacyHasher()
    hasher.hash("192.0.2.10")  # '{3f9c0a1b2c3d4e5f}'
"""

from __future__ import annotations

import hashlib
import hmac
import os

_ENV_VAR = "SINKHUB_PRIVACY_KEY"
_DIGEST_CHARS = 16


class PrivacyHasher:
    """Deterministic keyed hash, rendered as ``{<16 hex chars>}``."""

    def __init__(self, key: str | bytes | None = None) -> None:
        if key is None:
            env_key = os.environ.get(_ENV_VAR)
            key = env_key if env_key else os.urandom(32)
        self._key = key.encode("utf-8") if isinstance(key, str) else key

    def hash(self, value: object) -> str:
        digest = hmac.new(self._key, str(value).encode("utf-8"), hashlib.sha256).hexdigest()
        return "{" + digest[:_DIGEST_CHARS] + "}"
