"""Thread-safe keyed collections of shared model entities."""

from __future__ import annotations

import threading
from enum import Enum, auto
from typing import Callable, Generic, Hashable, Iterable, Iterator, Protocol, TypeVar, runtime_checkable

K = TypeVar("K", bound=Hashable)
K_co = TypeVar("K_co", covariant=True)
E = TypeVar("E", bound="Entity")


class RefreshStatus(Enum):
    """Outcome of refreshing an entity from the database."""

    UPDATED = auto()
    STALE = auto()
    DELETED = auto()


@runtime_checkable
class Entity(Protocol[K_co]):
    """A model entity identified by a key."""

    @property
    def key(self) -> K_co: ...


class EntityList(Generic[K, E]):
    """A thread-safe mapping of entities by their keys."""

    def __init__(self, entities: Iterable[E] = ()) -> None:
        self._lock = threading.RLock()
        self._entities: dict[K, E] = {entity.key: entity for entity in entities}

    def insert(self, entity: E) -> E | None:
        """Add or replace an entity, returning the one it replaced."""
        with self._lock:
            previous = self._entities.get(entity.key)
            self._entities[entity.key] = entity
            return previous

    def remove(self, key: K) -> E | None:
        """Remove and return the entity with this key, if present."""
        with self._lock:
            return self._entities.pop(key, None)

    def get(self, key: K) -> E | None:
        """Return the entity with this key, or None."""
        with self._lock:
            return self._entities.get(key)

    def find(self, predicate: Callable[[E], bool]) -> E | None:
        """Return the first entity matching predicate, or None."""
        return next((entity for entity in self.values() if predicate(entity)), None)

    def keys(self) -> list[K]:
        """Return a snapshot of the keys; entities may be removed concurrently."""
        with self._lock:
            return list(self._entities)

    def values(self) -> list[E]:
        """Return a snapshot of the entities."""
        with self._lock:
            return list(self._entities.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entities)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entities

    def __iter__(self) -> Iterator[E]:
        return iter(self.values())