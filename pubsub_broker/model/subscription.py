"""Subscriptions: per-application queues of messages published to a topic."""

from __future__ import annotations

import dataclasses
import threading
import time
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..entities import Subscription as PersistedSubscription
from ..entity_store import PersistenceError, VersionMismatchError
from ..messages import SubscribedMessage

if TYPE_CHECKING:
    from ..persistence import PersistenceLayer

MAX_CONSUMER_ID = 0xFFFF_FFFF
_UPDATE_ATTEMPTS = 3


def _now_epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def _copy(message: SubscribedMessage) -> SubscribedMessage:
    return dataclasses.replace(message)


@dataclass(frozen=True)
class SubscriptionStats:
    """A snapshot of a subscription's queues."""

    queued_count: int = 0
    unacked_count: int = 0
    assigned_count: int = 0
    affinity_count: int = 0


class Subscription(ABC):
    """Delivers each message published to a topic to the consumers of one application."""

    def __init__(self, persistence: PersistenceLayer, topic_id: int, subscription_id: int) -> None:
        record = persistence.load(
            PersistedSubscription.key_for(topic_id, subscription_id), PersistedSubscription
        )
        self._persistence = persistence
        self._topic_id = topic_id
        self._subscription_id = subscription_id
        self._name: str = record.name
        self._lock = threading.RLock()

    @property
    def key(self) -> int:
        return self._subscription_id

    @property
    def topic_id(self) -> int:
        return self._topic_id

    @property
    def subscription_id(self) -> int:
        return self._subscription_id

    @property
    def name(self) -> str:
        return self._name

    def connect_consumer(self) -> int | None:
        """Allocate a consumer id from the persisted counter, or None if none is left."""
        key = PersistedSubscription.key_for(self._topic_id, self._subscription_id)
        for _ in range(_UPDATE_ATTEMPTS):
            try:
                record = self._persistence.load(key, PersistedSubscription)
            except PersistenceError:
                return None
            consumer_id = record.next_consumer_id
            if consumer_id == 0:
                return None
            record.next_consumer_id = 0 if consumer_id == MAX_CONSUMER_ID else consumer_id + 1
            try:
                self._persistence.save(record)
            except VersionMismatchError:
                continue
            except PersistenceError:
                return None
            return consumer_id
        return None

    @abstractmethod
    def stats(self) -> SubscriptionStats: ...

    @abstractmethod
    def push(self, message: SubscribedMessage) -> None: ...

    @abstractmethod
    def pop(self, consumer_id: int) -> SubscribedMessage | None: ...

    @abstractmethod
    def disconnect_consumer(self, consumer_id: int) -> None: ...

    @abstractmethod
    def ack(self, consumer_id: int, message_ref_key: str) -> bool: ...

    @abstractmethod
    def nack(self, consumer_id: int, message_ref_key: str) -> bool: ...


class SharedSubscription(Subscription):
    """Messages go to whichever consumer asks next, with no key affinity."""

    def __init__(self, persistence: PersistenceLayer, topic_id: int, subscription_id: int) -> None:
        super().__init__(persistence, topic_id, subscription_id)
        self._queued: deque[SubscribedMessage] = deque()
        self._delivered: dict[str, SubscribedMessage] = {}

    def stats(self) -> SubscriptionStats:
        with self._lock:
            return SubscriptionStats(len(self._queued), len(self._delivered), 0, 0)

    def push(self, message: SubscribedMessage) -> None:
        """Queue a message for delivery."""
        with self._lock:
            self._queued.append(message)

    def pop(self, consumer_id: int) -> SubscribedMessage | None:
        """Deliver the message at the front of the queue to the consumer."""
        with self._lock:
            if not self._queued:
                return None
            message = self._queued.popleft()
            message.consumer_id = consumer_id
            message.delivery_count += 1
            message.delivered_timestamp = _now_epoch_millis()
            self._delivered[message.message_ref_key] = message
            return _copy(message)

    def disconnect_consumer(self, consumer_id: int) -> None:
        """Shared subscriptions keep no per-consumer state."""

    def ack(self, consumer_id: int, message_ref_key: str) -> bool:
        with self._lock:
            return self._delivered.pop(message_ref_key, None) is not None

    def nack(self, consumer_id: int, message_ref_key: str) -> bool:
        with self._lock:
            message = self._delivered.pop(message_ref_key, None)
            if message is None:
                return False
            self._queued.appendleft(message)
            return True


@dataclass
class _Affinity:
    consumer_id: int
    message_count: int


class KeySharedSubscription(Subscription):
    """Messages with the same key are never in flight with two consumers at once."""

    def __init__(self, persistence: PersistenceLayer, topic_id: int, subscription_id: int) -> None:
        super().__init__(persistence, topic_id, subscription_id)
        self._queued: deque[SubscribedMessage] = deque()
        self._delivered: dict[str, SubscribedMessage] = {}
        self._assigned: dict[int, deque[SubscribedMessage]] = {}
        self._affinities: dict[str, _Affinity] = {}

    def stats(self) -> SubscriptionStats:
        with self._lock:
            return SubscriptionStats(
                queued_count=len(self._queued),
                unacked_count=len(self._delivered),
                assigned_count=sum(len(queue) for queue in self._assigned.values()),
                affinity_count=len(self._affinities),
            )

    def push(self, message: SubscribedMessage) -> None:
        """Queue a message for delivery."""
        with self._lock:
            self._queued.append(message)

    def pop(self, consumer_id: int) -> SubscribedMessage | None:
        """Deliver the next message this consumer may receive, or None."""
        with self._lock:
            while True:
                assigned = self._assigned.get(consumer_id)
                if assigned:
                    message = assigned.popleft()
                    message.delivered_timestamp = _now_epoch_millis()
                    message.consumer_id = consumer_id
                    message.delivery_count += 1
                    self._delivered[message.message_ref_key] = _copy(message)
                    return message
                if not self._queued:
                    return None
                message = self._queued.popleft()
                affinity = self._affinities.get(message.key)
                if affinity is not None:
                    affinity.message_count += 1
                    self._assigned.setdefault(affinity.consumer_id, deque()).append(message)
                    continue
                self._affinities[message.key] = _Affinity(consumer_id, 1)
                self._assigned.setdefault(consumer_id, deque()).append(message)

    def disconnect_consumer(self, consumer_id: int) -> None:
        """Drop the consumer's key affinities and requeue messages assigned to it."""
        with self._lock:
            self._affinities = {
                key: affinity
                for key, affinity in self._affinities.items()
                if affinity.consumer_id != consumer_id
            }
            for message in self._assigned.pop(consumer_id, deque()):
                self._queued.appendleft(message)

    def ack(self, consumer_id: int, message_ref_key: str) -> bool:
        with self._lock:
            return self._release(message_ref_key, consumer_id) is not None

    def nack(self, consumer_id: int, message_ref_key: str) -> bool:
        with self._lock:
            released = self._release(message_ref_key, consumer_id)
            if released is None:
                return False
            message, remaining = released
            if remaining == 0:
                self._queued.appendleft(message)
            else:
                self._assigned.setdefault(consumer_id, deque()).appendleft(message)
            return True

    def _release(
        self, message_ref_key: str, consumer_id: int
    ) -> tuple[SubscribedMessage, int] | None:
        message = self._delivered.pop(message_ref_key, None)
        if message is None:
            return None
        remaining = 0
        affinity = self._affinities.get(message.key)
        if affinity is not None and affinity.consumer_id == consumer_id:
            if affinity.message_count == 1:
                del self._affinities[message.key]
            else:
                affinity.message_count -= 1
                remaining = affinity.message_count
        return message, remaining


def create_subscription(
    persistence: PersistenceLayer, topic_id: int, subscription_id: int
) -> Subscription:
    """Build the kind of subscription the persisted record asks for."""
    record = persistence.load(
        PersistedSubscription.key_for(topic_id, subscription_id), PersistedSubscription
    )
    if record.has_key_affinity:
        return KeySharedSubscription(persistence, topic_id, subscription_id)
    return SharedSubscription(persistence, topic_id, subscription_id)