"""Versioned records describing the durable configuration of a cluster."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, ClassVar, TypeVar

from .keys import Key

_E = TypeVar("_E", bound="PersistedEntity")


class PersistedEntity:
    """Common behaviour of entities that are stored with a type name, key and version."""

    TYPE_NAME: ClassVar[str] = ""
    version: int

    @property
    def type_name(self) -> str:
        return self.TYPE_NAME

    @property
    def key(self) -> str:
        raise NotImplementedError

    def to_record(self) -> dict[str, Any]:
        """Return a plain dictionary suitable for serialization."""
        return {
            f.name: list(value) if isinstance(value, list) else value
            for f in fields(self)  # type: ignore[arg-type]
            for value in (getattr(self, f.name),)
        }

    @classmethod
    def from_record(cls: type[_E], record: dict[str, Any]) -> _E:
        """Rebuild an entity from a dictionary produced by to_record."""
        names = [f.name for f in fields(cls)]  # type: ignore[arg-type]
        missing = [name for name in names if name not in record]
        if missing:
            raise ValueError(f"{cls.__name__} record is missing {', '.join(missing)}")
        return cls(
            **{
                name: list(record[name]) if isinstance(record[name], (list, tuple)) else record[name]
                for name in names
            }
        )


@dataclass
class Cluster(PersistedEntity):
    """The machines that collaborate to serve the broker; there is one per database."""

    TYPE_NAME: ClassVar[str] = "Cluster"

    name: str
    node_ids: list[int] = field(default_factory=list)
    topic_ids: list[int] = field(default_factory=list)
    next_node_id: int = 1
    next_topic_id: int = 1
    version: int = 0

    @property
    def key(self) -> str:
        return self.name

    @classmethod
    def key_for(cls, name: str) -> Key:
        return Key(cls.TYPE_NAME, name)


@dataclass
class Node(PersistedEntity):
    """A machine in the cluster running the broker."""

    TYPE_NAME: ClassVar[str] = "Node"

    node_id: int
    ip_address: str
    admin_port: int
    pubsub_port: int
    sync_port: int
    version: int = 0

    @property
    def key(self) -> str:
        return str(self.node_id)

    @classmethod
    def key_for(cls, node_id: int) -> Key:
        return Key(cls.TYPE_NAME, str(node_id))


@dataclass
class Topic(PersistedEntity):
    """A pub/sub channel with many publishers and many subscribers."""

    TYPE_NAME: ClassVar[str] = "Topic"

    topic_id: int
    name: str
    partition_ids: list[int] = field(default_factory=list)
    subscription_ids: list[int] = field(default_factory=list)
    next_partition_id: int = 1
    next_subscription_id: int = 1
    version: int = 0

    @property
    def key(self) -> str:
        return str(self.topic_id)

    @classmethod
    def key_for(cls, topic_id: int) -> Key:
        return Key(cls.TYPE_NAME, str(topic_id))


@dataclass
class Partition(PersistedEntity):
    """A shard of a topic, owned by one node at a time."""

    TYPE_NAME: ClassVar[str] = "Partition"

    topic_id: int
    partition_id: int
    ledger_ids: list[int] = field(default_factory=list)
    next_ledger_id: int = 1
    node_id: int = 0
    version: int = 0

    @property
    def key(self) -> str:
        return f"{self.topic_id}:{self.partition_id}"

    @classmethod
    def key_for(cls, topic_id: int, partition_id: int) -> Key:
        return Key(cls.TYPE_NAME, f"{topic_id}:{partition_id}")


@dataclass
class Ledger(PersistedEntity):
    """The messages of a partition for the time it was owned by one node."""

    TYPE_NAME: ClassVar[str] = "Ledger"

    topic_id: int
    partition_id: int
    ledger_id: int
    node_id: int
    version: int = 0

    @property
    def key(self) -> str:
        return f"{self.topic_id}:{self.partition_id}:{self.ledger_id}"

    @classmethod
    def key_for(cls, topic_id: int, partition_id: int, ledger_id: int) -> Key:
        return Key(cls.TYPE_NAME, f"{topic_id}:{partition_id}:{ledger_id}")


@dataclass
class Subscription(PersistedEntity):
    """Connects an application to a topic so it receives every message at least once."""

    TYPE_NAME: ClassVar[str] = "Subscription"

    topic_id: int
    subscription_id: int
    name: str
    has_key_affinity: bool = False
    next_consumer_id: int = 1
    version: int = 0

    @property
    def key(self) -> str:
        return f"{self.topic_id}:{self.subscription_id}"

    @classmethod
    def key_for(cls, topic_id: int, subscription_id: int) -> Key:
        return Key(cls.TYPE_NAME, f"{topic_id}:{subscription_id}")