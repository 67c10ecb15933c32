# src/sinkhub/contracts/storage.py
"""Storage collaborator contract for locally stored events and traces."""

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class StorageProtocol(Protocol):
    """Where storage-backed sinks write normalized record maps.

    Lifecycle:
        1. initialize() once when the bucket is created
        2. insert() per record, list()/count() from viewers
        3. purge() periodically by the maintainer
        4. update(from_version) when the record layout changes
        5. finalize() when the bucket is dropped

    insert() may raise; the calling transport converts that into a failed
    delivery.
    """

    def insert(self, record: Mapping[str, Any]) -> None: ...

    def list(
        self,
        filters: Mapping[str, Any] | None = None,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]: ...

    def count(self, filters: Mapping[str, Any] | None = None) -> int: ...

    def purge(self, max_age_seconds: float | None = None, max_count: int | None = None) -> int: ...

    def initialize(self) -> None: ...

    def finalize(self) -> None: ...

    def update(self, from_version: str) -> None: ...
