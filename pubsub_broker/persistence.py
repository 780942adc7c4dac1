"""A single facade over the event log and the entity store."""

from __future__ import annotations

import time
from typing import Any, Iterator, TypeVar

from .entity_store import InMemoryEntityStore
from .event_log import EventQueryOptions, InMemoryEventLogger
from .events import LogEntry, LoggedEvent
from .keys import Keyed, PersistenceScheme
from .messages import MessageRef

_T = TypeVar("_T")


def _now_epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def _require_in_memory(scheme: PersistenceScheme, purpose: str) -> None:
    if scheme is not PersistenceScheme.IN_MEMORY:
        raise ValueError(
            f"{scheme.as_string()} persistence is not available for {purpose}"
        )


class PersistenceLayer:
    """Persists entities and events without callers knowing where they are stored."""

    def __init__(
        self,
        event_persistence: PersistenceScheme,
        entity_persistence: PersistenceScheme,
    ) -> None:
        _require_in_memory(event_persistence, "events")
        _require_in_memory(entity_persistence, "entities")
        self._event_logger = InMemoryEventLogger()
        self._entity_store = InMemoryEntityStore()

    def delete_all(self) -> None:
        """Remove every stored event and entity."""
        self._event_logger.delete_all()
        self._entity_store.delete_all()

    def load(self, key: Keyed, entity_type: Any) -> Any:
        """Load a fresh copy of the entity of entity_type stored under key."""
        return self._entity_store.load(key, entity_type)

    def save(self, entity: Any) -> None:
        """Save the entity, updating its version in place."""
        self._entity_store.save(entity)

    def delete(self, key: Keyed) -> None:
        """Delete the entity stored under key."""
        self._entity_store.delete(key)

    def log_event(self, event: LoggedEvent) -> None:
        """Append an event to the log stamped with the current time."""
        self._event_logger.log(LogEntry.from_event(event, _now_epoch_millis()))

    def log_with_timestamp(self, event: LoggedEvent, timestamp: int) -> None:
        """Append an event to the log with an explicit timestamp."""
        self._event_logger.log(LogEntry.from_event(event, timestamp))

    def events_by_key_prefix(
        self, key_prefix: str, options: EventQueryOptions
    ) -> Iterator[LogEntry]:
        """Iterate over logged events whose key starts with key_prefix."""
        return self._event_logger.query_by_key_prefix(key_prefix, options)

    def events_by_timestamp(
        self, start: int, end: int, options: EventQueryOptions
    ) -> Iterator[LogEntry]:
        """Iterate over logged events with start <= timestamp < end."""
        return self._event_logger.query_by_timestamp(start, end, options)

    @staticmethod
    def build_topic_prefix(topic_id: int) -> str:
        return f"{topic_id}:"

    @staticmethod
    def build_partition_prefix(topic_id: int, partition_id: int) -> str:
        return f"{topic_id}:{partition_id}:"

    @staticmethod
    def build_ledger_prefix(topic_id: int, partition_id: int, ledger_id: int) -> str:
        return f"{topic_id}:{partition_id}:{ledger_id}:"

    @staticmethod
    def build_message_prefix(
        topic_id: int, partition_id: int, ledger_id: int, message_id: int
    ) -> str:
        return f"{topic_id}:{partition_id}:{ledger_id}:{message_id}"

    def delete_events_before(self, end: int) -> None:
        """Remove every event logged before end."""
        self._event_logger.delete_before(end)

    def delete_events_for_topic(self, topic_id: int) -> None:
        self._event_logger.delete_by_key_prefix(self.build_topic_prefix(topic_id))

    def delete_events_for_partition(self, topic_id: int, partition_id: int) -> None:
        self._event_logger.delete_by_key_prefix(
            self.build_partition_prefix(topic_id, partition_id)
        )

    def delete_events_for_ledger(
        self, topic_id: int, partition_id: int, ledger_id: int
    ) -> None:
        self._event_logger.delete_by_key_prefix(
            self.build_ledger_prefix(topic_id, partition_id, ledger_id)
        )

    def delete_events_for_message(
        self, topic_id: int, partition_id: int, ledger_id: int, message_id: int
    ) -> None:
        self._event_logger.delete_by_key_prefix(
            self.build_message_prefix(topic_id, partition_id, ledger_id, message_id)
        )

    def delete_events_for_message_ref(self, message_ref: MessageRef) -> None:
        self._event_logger.delete_by_key_prefix(message_ref.to_key())