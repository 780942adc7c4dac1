"""In-memory view of a machine in the cluster that serves pub/sub requests."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from ..entities import Node as PersistedNode
from ..entity_store import EntityNotFoundError, PersistenceError
from .entity import RefreshStatus

if TYPE_CHECKING:
    from ..persistence import PersistenceLayer


class Node:
    """A VM running the broker, built from and refreshed against its persisted record."""

    def __init__(self, persistence: PersistenceLayer, node_id: int) -> None:
        self._lock = threading.RLock()
        self._node_id = node_id
        self._record: PersistedNode = persistence.load(PersistedNode.key_for(node_id), PersistedNode)
        self._refresh_status = RefreshStatus.UPDATED

    @property
    def key(self) -> int:
        return self._node_id

    @property
    def node_id(self) -> int:
        return self._node_id

    @property
    def ip_address(self) -> str:
        with self._lock:
            return self._record.ip_address

    @property
    def admin_port(self) -> int:
        with self._lock:
            return self._record.admin_port

    @property
    def pubsub_port(self) -> int:
        with self._lock:
            return self._record.pubsub_port

    @property
    def sync_port(self) -> int:
        with self._lock:
            return self._record.sync_port

    @property
    def refresh_status(self) -> RefreshStatus:
        with self._lock:
            return self._refresh_status

    def refresh(self, persistence: PersistenceLayer) -> RefreshStatus:
        """Reload the persisted record; keep the old data if it is gone or unreadable."""
        try:
            record = persistence.load(PersistedNode.key_for(self._node_id), PersistedNode)
        except EntityNotFoundError:
            status = RefreshStatus.DELETED
        except PersistenceError:
            status = RefreshStatus.STALE
        else:
            status = RefreshStatus.UPDATED
            with self._lock:
                self._record = record
        with self._lock:
            self._refresh_status = status
        return status