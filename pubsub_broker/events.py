"""Events recorded in the event log, and the log entries that carry them."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Union

import msgpack

from .messages import MessageRef, PublishedMessage

PUBLISH_TYPE_NAME = "Publish"
ACK_TYPE_NAME = "Ack"
NACK_TYPE_NAME = "Nack"
NEW_CONSUMER_TYPE_NAME = "NewConsumer"
DROP_CONSUMER_TYPE_NAME = "DropConsumer"
KEY_AFFINITY_TYPE_NAME = "KeyAffinity"


def _consumer_key(topic_id: int, subscription_id: int, consumer_id: int) -> str:
    return f"{topic_id}:{subscription_id}:{consumer_id}"


@dataclass(frozen=True)
class AckEvent:
    """A consumer acknowledged a message."""

    message_ref: MessageRef
    subscription_id: int
    consumer_id: int

    @property
    def type_name(self) -> str:
        return ACK_TYPE_NAME

    @property
    def key(self) -> str:
        return self.message_ref.to_key()


@dataclass(frozen=True)
class NackEvent:
    """A consumer gave a message back for redelivery."""

    message_ref: MessageRef
    subscription_id: int
    consumer_id: int

    @property
    def type_name(self) -> str:
        return NACK_TYPE_NAME

    @property
    def key(self) -> str:
        return self.message_ref.to_key()


@dataclass
class PublishEvent:
    """A message was published."""

    message: PublishedMessage

    @property
    def type_name(self) -> str:
        return PUBLISH_TYPE_NAME

    @property
    def key(self) -> str:
        return self.message.message_ref.to_key()


@dataclass(frozen=True)
class NewConsumerEvent:
    """A consumer connected to a subscription."""

    topic_id: int
    subscription_id: int
    consumer_id: int

    @property
    def type_name(self) -> str:
        return NEW_CONSUMER_TYPE_NAME

    @property
    def key(self) -> str:
        return _consumer_key(self.topic_id, self.subscription_id, self.consumer_id)


@dataclass(frozen=True)
class DropConsumerEvent:
    """A consumer disconnected from a subscription."""

    topic_id: int
    subscription_id: int
    consumer_id: int

    @property
    def type_name(self) -> str:
        return DROP_CONSUMER_TYPE_NAME

    @property
    def key(self) -> str:
        return _consumer_key(self.topic_id, self.subscription_id, self.consumer_id)


@dataclass(frozen=True)
class KeyAffinityEvent:
    """A message key was bound to a consumer of a key-shared subscription."""

    topic_id: int
    subscription_id: int
    consumer_id: int
    message_key: str

    @property
    def type_name(self) -> str:
        return KEY_AFFINITY_TYPE_NAME

    @property
    def key(self) -> str:
        return _consumer_key(self.topic_id, self.subscription_id, self.consumer_id)


LoggedEvent = Union[
    PublishEvent, AckEvent, NackEvent, NewConsumerEvent, DropConsumerEvent, KeyAffinityEvent
]


def _decode_publish(record: dict[str, Any]) -> PublishEvent:
    return PublishEvent(PublishedMessage.from_record(record["message"]))


def _decode_ack(record: dict[str, Any]) -> AckEvent:
    return AckEvent(
        MessageRef.from_record(record["message_ref"]),
        record["subscription_id"],
        record["consumer_id"],
    )


def _decode_nack(record: dict[str, Any]) -> NackEvent:
    return NackEvent(
        MessageRef.from_record(record["message_ref"]),
        record["subscription_id"],
        record["consumer_id"],
    )


def _decode_new_consumer(record: dict[str, Any]) -> NewConsumerEvent:
    return NewConsumerEvent(record["topic_id"], record["subscription_id"], record["consumer_id"])


def _decode_drop_consumer(record: dict[str, Any]) -> DropConsumerEvent:
    return DropConsumerEvent(record["topic_id"], record["subscription_id"], record["consumer_id"])


def _decode_key_affinity(record: dict[str, Any]) -> KeyAffinityEvent:
    return KeyAffinityEvent(
        record["topic_id"],
        record["subscription_id"],
        record["consumer_id"],
        record["message_key"],
    )


_DECODERS: dict[str, Callable[[dict[str, Any]], LoggedEvent]] = {
    PUBLISH_TYPE_NAME: _decode_publish,
    ACK_TYPE_NAME: _decode_ack,
    NACK_TYPE_NAME: _decode_nack,
    NEW_CONSUMER_TYPE_NAME: _decode_new_consumer,
    DROP_CONSUMER_TYPE_NAME: _decode_drop_consumer,
    KEY_AFFINITY_TYPE_NAME: _decode_key_affinity,
}


@dataclass
class LogEntry:
    """One entry of the event log; the serialized event may be left out of query results."""

    PUBLISH_TYPE_NAME: ClassVar[str] = PUBLISH_TYPE_NAME
    ACK_TYPE_NAME: ClassVar[str] = ACK_TYPE_NAME
    NACK_TYPE_NAME: ClassVar[str] = NACK_TYPE_NAME
    NEW_CONSUMER_TYPE_NAME: ClassVar[str] = NEW_CONSUMER_TYPE_NAME
    DROP_CONSUMER_TYPE_NAME: ClassVar[str] = DROP_CONSUMER_TYPE_NAME
    KEY_AFFINITY_TYPE_NAME: ClassVar[str] = KEY_AFFINITY_TYPE_NAME

    timestamp: int
    type_name: str
    key: str
    serialization: bytes | None = None

    @classmethod
    def from_event(cls, event: LoggedEvent, timestamp: int) -> LogEntry:
        """Serialize an event into a log entry stamped with the given time."""
        if event.type_name not in _DECODERS:
            raise TypeError(f"{type(event).__name__} is not a loggable event")
        serialization = msgpack.packb(dataclasses.asdict(event), use_bin_type=True)
        return cls(timestamp, event.type_name, event.key, serialization)

    def deserialize(self) -> LoggedEvent | None:
        """Rebuild the logged event, or None if it was not kept or its type is unknown."""
        if self.serialization is None:
            return None
        decoder = _DECODERS.get(self.type_name)
        if decoder is None:
            return None
        record = msgpack.unpackb(self.serialization, raw=False)
        try:
            return decoder(record)
        except (KeyError, TypeError) as err:
            raise ValueError(f"Malformed {self.type_name} log entry {self.key}") from err