"""Query options and an in-memory implementation of the event log."""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from typing import Callable, Iterator

from .events import LogEntry

_Predicate = Callable[[LogEntry], bool]


@dataclass(frozen=True)
class EventQueryOptions:
    """Controls ordering, paging and payload inclusion of event log queries.

    skip counts raw log positions from the starting end; take of zero means no limit.
    """

    include_serialization: bool = False
    descending: bool = True
    exact_match: bool = False
    skip: int = 0
    take: int = 0

    @classmethod
    def default(cls) -> EventQueryOptions:
        """Newest first, without payloads, unlimited."""
        return cls()

    @classmethod
    def range(cls, skip: int, take: int) -> EventQueryOptions:
        """Newest first, skipping and limiting entries."""
        return cls(skip=skip, take=take)

    @classmethod
    def limit(cls, take: int) -> EventQueryOptions:
        """Newest first, returning at most take entries."""
        return cls(take=take)

    @classmethod
    def replay(cls) -> EventQueryOptions:
        """Oldest first with payloads, for rebuilding state."""
        return cls(include_serialization=True, descending=False)


class InMemoryEventLogger:
    """Thread-safe event log kept in memory in the order events were logged."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._entries: list[LogEntry] = []

    def log(self, entry: LogEntry) -> None:
        """Append an entry to the log."""
        with self._lock:
            self._entries.append(entry)

    def query_by_timestamp(
        self, start: int, end: int, options: EventQueryOptions
    ) -> Iterator[LogEntry]:
        """Iterate over entries with start <= timestamp < end."""
        return self._query(options, lambda entry: start <= entry.timestamp < end)

    def query_by_key_prefix(self, key_prefix: str, options: EventQueryOptions) -> Iterator[LogEntry]:
        """Iterate over entries whose key starts with, or equals, key_prefix."""
        if options.exact_match:
            return self._query(options, lambda entry: entry.key == key_prefix)
        return self._query(options, lambda entry: entry.key.startswith(key_prefix))

    def delete_before(self, end: int) -> None:
        """Remove every entry with a timestamp before end."""
        with self._lock:
            self._entries[:] = [entry for entry in self._entries if entry.timestamp >= end]

    def delete_by_key_prefix(self, key_prefix: str) -> None:
        """Remove every entry whose key starts with key_prefix."""
        with self._lock:
            self._entries[:] = [
                entry for entry in self._entries if not entry.key.startswith(key_prefix)
            ]

    def delete_all(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._entries.clear()

    def _query(self, options: EventQueryOptions, predicate: _Predicate) -> Iterator[LogEntry]:
        with self._lock:
            count = len(self._entries)
        if options.descending:
            return self._descending(count, options, predicate)
        return self._ascending(count, options, predicate)

    def _entry_at(self, index: int) -> LogEntry | None:
        with self._lock:
            return self._entries[index] if index < len(self._entries) else None

    @staticmethod
    def _result(entry: LogEntry, options: EventQueryOptions) -> LogEntry:
        serialization = entry.serialization if options.include_serialization else None
        return dataclasses.replace(entry, serialization=serialization)

    def _ascending(
        self, count: int, options: EventQueryOptions, predicate: _Predicate
    ) -> Iterator[LogEntry]:
        index = min(options.skip, count)
        taken = 0
        while index < count and not (options.take and taken >= options.take):
            entry = self._entry_at(index)
            index += 1
            if entry is None:
                return
            if predicate(entry):
                taken += 1
                yield self._result(entry, options)

    def _descending(
        self, count: int, options: EventQueryOptions, predicate: _Predicate
    ) -> Iterator[LogEntry]:
        index = count - options.skip if count > options.skip else 0
        taken = 0
        while index > 0 and not (options.take and taken >= options.take):
            index -= 1
            entry = self._entry_at(index)
            if entry is None:
                return
            if predicate(entry):
                taken += 1
                yield self._result(entry, options)