# src/sinkhub/dispatch/transports/storage.py
"""In-process delivery to the Storage collaborator."""

from collections.abc import Mapping
from typing import Any

import structlog

from sinkhub.contracts.storage import StorageProtocol

logger = structlog.get_logger(__name__)


class StorageWriteTransport:
    """Forwards each record map straight to ``storage.insert``.

    Which engine backs the storage (in-memory ring or an external database)
    is decided when the sink is built and is invisible here.
    """

    def __init__(self, storage: StorageProtocol, *, sink_id: str = "") -> None:
        self._storage = storage
        self._sink_id = sink_id

    @property
    def storage(self) -> StorageProtocol:
        return self._storage

    def write(self, payload: Any) -> bool:
        if not isinstance(payload, Mapping):
            logger.warning("Storage payload is not a mapping - dropped", sink_id=self._sink_id, type=type(payload).__name__)
            return False
        try:
            self._storage.insert(payload)
        except Exception as e:
            logger.warning(
                "Storage insert failed",
                sink_id=self._sink_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False
        return True

    def close(self) -> None:
        pass
