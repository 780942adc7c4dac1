"""Messages as they are published to ledgers and delivered through subscriptions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class MessageRef:
    """Uniquely identifies a message within the cluster."""

    topic_id: int = 0
    partition_id: int = 0
    ledger_id: int = 0
    message_id: int = 0

    @classmethod
    def from_key(cls, key: str) -> MessageRef:
        """Parse a key of the form topic:partition:ledger:message."""
        parts = key.split(":")
        if len(parts) < 4:
            raise ValueError(f"Message key {key!r} does not have four parts")
        try:
            topic_id, partition_id, ledger_id, message_id = (int(part) for part in parts[:4])
        except ValueError as err:
            raise ValueError(f"Message key {key!r} contains a non-numeric part") from err
        return cls(topic_id, partition_id, ledger_id, message_id)

    def to_key(self) -> str:
        """Return the key used to find this message in logs and subscriptions."""
        return f"{self.topic_id}:{self.partition_id}:{self.ledger_id}:{self.message_id}"

    def to_record(self) -> dict[str, Any]:
        """Return a plain dictionary suitable for serialization."""
        return {
            "topic_id": self.topic_id,
            "partition_id": self.partition_id,
            "ledger_id": self.ledger_id,
            "message_id": self.message_id,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> MessageRef:
        """Rebuild a reference from a dictionary produced by to_record."""
        try:
            return cls(
                record["topic_id"],
                record["partition_id"],
                record["ledger_id"],
                record["message_id"],
            )
        except KeyError as err:
            raise ValueError(f"MessageRef record is missing {err.args[0]}") from err


@dataclass
class PublishedMessage:
    """A message stored in a ledger until every subscription has acknowledged it."""

    message_ref: MessageRef
    key: str = ""
    timestamp: int = 0
    published: int = 0
    attributes: dict[str, str] = field(default_factory=dict)
    subscriber_count: int = 0
    ack_count: int = 0

    def to_record(self) -> dict[str, Any]:
        """Return a plain dictionary suitable for serialization."""
        return {
            "message_ref": self.message_ref.to_record(),
            "key": self.key,
            "timestamp": self.timestamp,
            "published": self.published,
            "attributes": dict(self.attributes),
            "subscriber_count": self.subscriber_count,
            "ack_count": self.ack_count,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> PublishedMessage:
        """Rebuild a message from a dictionary produced by to_record."""
        try:
            return cls(
                message_ref=MessageRef.from_record(record["message_ref"]),
                key=record["key"],
                timestamp=record["timestamp"],
                published=record["published"],
                attributes=dict(record["attributes"]),
                subscriber_count=record["subscriber_count"],
                ack_count=record["ack_count"],
            )
        except KeyError as err:
            raise ValueError(f"PublishedMessage record is missing {err.args[0]}") from err


@dataclass
class SubscribedMessage:
    """A message queued in, or delivered through, one subscription."""

    message_ref_key: str
    key: str
    consumer_id: int | None = None
    delivered_timestamp: int | None = None
    delivery_count: int = 0

    @classmethod
    def from_published(cls, message: PublishedMessage) -> SubscribedMessage:
        """Create an undelivered subscription entry for a published message."""
        return cls(message_ref_key=message.message_ref.to_key(), key=message.key)