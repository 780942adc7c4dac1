"""Stores versioned entities, rejecting writes made from stale copies."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

import msgpack

from .keys import Keyed

_T = TypeVar("_T")


class PersistenceError(Exception):
    """Base class for failures of the persistence layer."""


class SaveError(PersistenceError):
    """An entity could not be saved."""


class VersionMismatchError(SaveError):
    """The entity was changed by someone else since it was loaded."""

    def __init__(self, entity_type: str, entity_key: str, stored_version: int, entity_version: int):
        super().__init__(
            f"{entity_type} {entity_key} is at version {stored_version}, "
            f"not {entity_version}"
        )
        self.entity_type = entity_type
        self.entity_key = entity_key
        self.stored_version = stored_version
        self.entity_version = entity_version


class EntityNotFoundError(PersistenceError, LookupError):
    """No entity is stored under the requested key."""

    def __init__(self, entity_type: str, entity_key: str):
        super().__init__(f"{entity_type} entity with key {entity_key} was not found")
        self.entity_type = entity_type
        self.entity_key = entity_key


class _Storable(Keyed, Protocol):
    version: int

    def to_record(self) -> dict[str, Any]: ...


class _Loadable(Protocol[_T]):
    def from_record(self, record: dict[str, Any]) -> _T: ...


@dataclass(frozen=True)
class StoredEntity:
    """A serialized entity together with the version it was saved at."""

    version: int
    serialization: bytes


class InMemoryEntityStore:
    """Thread-safe entity store that keeps serialized entities in memory."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._types: dict[str, dict[str, StoredEntity]] = {}

    def save(self, entity: _Storable) -> None:
        """Save the entity, bumping its version; raise VersionMismatchError if stale."""
        type_name = entity.type_name
        key = entity.key
        with self._lock:
            entities = self._types.setdefault(type_name, {})
            stored = entities.get(key)
            if stored is None:
                version = 1
            elif stored.version != entity.version:
                raise VersionMismatchError(type_name, key, stored.version, entity.version)
            else:
                version = entity.version + 1
            entity.version = version
            serialization = msgpack.packb(entity.to_record(), use_bin_type=True)
            entities[key] = StoredEntity(version, serialization)

    def load(self, key: Keyed, entity_type: _Loadable[_T]) -> _T:
        """Load a fresh copy of the entity stored under key."""
        with self._lock:
            stored = self._types.get(key.type_name, {}).get(key.key)
        if stored is None:
            raise EntityNotFoundError(key.type_name, key.key)
        record = msgpack.unpackb(stored.serialization, raw=False)
        return entity_type.from_record(record)

    def delete(self, key: Keyed) -> None:
        """Remove the entity stored under key."""
        with self._lock:
            entities = self._types.get(key.type_name, {})
            if entities.pop(key.key, None) is None:
                raise EntityNotFoundError(key.type_name, key.key)

    def delete_all(self) -> None:
        """Remove every stored entity."""
        with self._lock:
            self._types.clear()