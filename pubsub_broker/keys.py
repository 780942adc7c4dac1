"""Persistence schemes and the identity protocols shared by persisted data."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Protocol, runtime_checkable


class PersistenceScheme(Enum):
    """Where events or entities are persisted."""

    IN_MEMORY = "in-memory"
    FILE_SYSTEM = "file-system"

    def as_string(self) -> str:
        """Return the configuration name of this scheme."""
        return self.value

    @classmethod
    def from_string(cls, value: str) -> PersistenceScheme:
        """Parse a configuration name, raising ValueError for unknown schemes."""
        for scheme in cls:
            if scheme.value == value:
                return scheme
        raise ValueError(f"Unknown persistence scheme {value}")


@runtime_checkable
class Keyed(Protocol):
    """Anything that can be located in a store by type name and key."""

    @property
    def type_name(self) -> str: ...

    @property
    def key(self) -> str: ...


@runtime_checkable
class Versioned(Protocol):
    """Anything carrying a version number used for optimistic concurrency."""

    version: int


@dataclass(frozen=True)
class Key:
    """A stand-alone key identifying a stored entity."""

    type_name: str
    key: str