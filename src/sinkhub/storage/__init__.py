"""Storage engines for storage-backed sinks."""

from sinkhub.storage.memory import InMemoryStorage

__all__ = ["InMemoryStorage"]
