"""In-memory state of a ledger: the messages of a partition owned by one node."""

from __future__ import annotations

import dataclasses
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..entities import Ledger as PersistedLedger
from ..messages import PublishedMessage

if TYPE_CHECKING:
    from ..persistence import PersistenceLayer

MAX_MESSAGE_ID = 0xFFFF_FFFF


def _now_epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def _copy_message(message: PublishedMessage) -> PublishedMessage:
    return dataclasses.replace(message, attributes=dict(message.attributes))


@dataclass(frozen=True)
class LedgerStats:
    """A snapshot of a ledger's counters."""

    message_count: int
    unacked_count: int
    next_message_id: int
    last_update_timestamp: int


class Ledger:
    """Holds published messages until every subscription has acknowledged them."""

    def __init__(
        self,
        topic_id: int,
        partition_id: int,
        ledger_id: int,
        node_id: int,
        next_message_id: int,
    ) -> None:
        self._lock = threading.RLock()
        self._topic_id = topic_id
        self._partition_id = partition_id
        self._ledger_id = ledger_id
        self._node_id = node_id
        self._messages: dict[int, PublishedMessage] = {}
        timestamp = _now_epoch_millis()
        self._create_timestamp = timestamp
        self._message_count = 0
        self._unacked_count = 0
        self._next_message_id = next_message_id
        self._last_update_timestamp = timestamp

    @classmethod
    def from_persistence(
        cls,
        persistence: PersistenceLayer,
        topic_id: int,
        partition_id: int,
        ledger_id: int,
        next_message_id: int,
    ) -> Ledger:
        """Build a ledger from its persisted record."""
        record = persistence.load(
            PersistedLedger.key_for(topic_id, partition_id, ledger_id), PersistedLedger
        )
        return cls(topic_id, partition_id, ledger_id, record.node_id, next_message_id)

    @property
    def key(self) -> int:
        return self._ledger_id

    @property
    def topic_id(self) -> int:
        return self._topic_id

    @property
    def partition_id(self) -> int:
        return self._partition_id

    @property
    def ledger_id(self) -> int:
        return self._ledger_id

    @property
    def node_id(self) -> int:
        return self._node_id

    @property
    def create_timestamp(self) -> int:
        return self._create_timestamp

    @property
    def next_message_id(self) -> int:
        with self._lock:
            return self._next_message_id

    @property
    def message_count(self) -> int:
        with self._lock:
            return self._message_count

    @property
    def last_update_timestamp(self) -> int:
        with self._lock:
            return self._last_update_timestamp

    def stats(self) -> LedgerStats:
        """Return a snapshot of the ledger's counters."""
        with self._lock:
            return LedgerStats(
                self._message_count,
                self._unacked_count,
                self._next_message_id,
                self._last_update_timestamp,
            )

    def peek_message(self, message_id: int) -> PublishedMessage | None:
        """Return a copy of a stored message, or None."""
        return self.get_message(message_id)

    def all_message_ids(self) -> list[int]:
        """Return the ids of the messages still held."""
        with self._lock:
            return list(self._messages)

    def allocate_message_id(self) -> int | None:
        """Reserve the next message id, or None once the id space is exhausted."""
        with self._lock:
            message_id = self._next_message_id
            if message_id == 0:
                return None
            self._next_message_id = 0 if message_id == MAX_MESSAGE_ID else message_id + 1
            self._last_update_timestamp = _now_epoch_millis()
            return message_id

    def publish_message(self, message: PublishedMessage) -> None:
        """Store a message that waits for subscriber_count acknowledgements."""
        with self._lock:
            self._message_count += 1
            self._unacked_count += message.subscriber_count
            self._last_update_timestamp = _now_epoch_millis()
            self._messages[message.message_ref.message_id] = message

    def get_message(self, message_id: int) -> PublishedMessage | None:
        """Return a copy of a stored message, or None."""
        with self._lock:
            message = self._messages.get(message_id)
            return None if message is None else _copy_message(message)

    def ack(self, message_id: int) -> bool:
        """Record one acknowledgement; drop the message once all subscribers acked.

        Returns False when the message is not held by this ledger.
        """
        with self._lock:
            message = self._messages.get(message_id)
            if message is None:
                return False
            message.ack_count += 1
            self._unacked_count -= 1
            if message.ack_count == message.subscriber_count:
                del self._messages[message_id]
                self._message_count -= 1
            self._last_update_timestamp = _now_epoch_millis()
            return True