# pubsub_broker

This package is the in-process core of a partitioned publish/subscribe message broker. It provides:

- **Persistence.** Versioned entities and an append-only event log. Both are kept in memory and serialised with MessagePack.
- **Model.** Ledgers of published messages, shared and key-shared subscriptions, cluster nodes, and a thread-safe keyed collection (`EntityList`).
- **Metrics.** Counters that are sent to a StatsD server over UDP.

## Installation

```
pip install .
pip install .[test]   # also installs pytest and pytest-asyncio
```

## Persisting entities

The entity classes live in `pubsub_broker.entities`:

- `Cluster`
- `Node`
- `Topic`
- `Partition`
- `Ledger`
- `Subscription`

Each class has a `key_for(...)` class method that builds its storage key.

Every save increments the entity's `version`. A save made from a stale copy raises `VersionMismatchError`.

```python
from pubsub_broker.keys import PersistenceScheme
from pubsub_broker.persistence import PersistenceLayer
from pubsub_broker.entities import Node

layer = PersistenceLayer(PersistenceScheme.IN_MEMORY, PersistenceScheme.IN_MEMORY)

node = Node(node_id=99, ip_address="127.0.0.1", admin_port=8000, pubsub_port=8001, sync_port=8002)
layer.save(node)            # node.version == 1
node.ip_address = "10.2.45.6"
layer.save(node)            # node.version == 2

loaded = layer.load(Node.key_for(99), Node)
layer.delete(Node.key_for(99))
```

Loading or deleting a missing entity raises `EntityNotFoundError`. This exception and `VersionMismatchError` are defined in `pubsub_broker.entity_store`, and both derive from `PersistenceError`.

`PersistenceLayer.delete_all()` removes every stored entity and event.

## Logging and querying events

The events live in `pubsub_broker.events`:

- `PublishEvent`
- `AckEvent`
- `NackEvent`
- `NewConsumerEvent`
- `DropConsumerEvent`
- `KeyAffinityEvent`

```python
from pubsub_broker.messages import MessageRef, PublishedMessage
from pubsub_broker.events import PublishEvent, AckEvent
from pubsub_broker.event_log import EventQueryOptions

ref = MessageRef(topic_id=1, partition_id=16, ledger_id=12, message_id=544)
message = PublishedMessage(message_ref=ref, key="", timestamp=0, published=0)

layer.log_with_timestamp(PublishEvent(message), 1)
layer.log_with_timestamp(AckEvent(ref, 1, 10), 2)
layer.log_event(AckEvent(ref, 2, 11))        # stamped with the current time in ms

prefix = PersistenceLayer.build_partition_prefix(1, 16)   # "1:16:"

newest_first = list(layer.events_by_key_prefix(prefix, EventQueryOptions.default()))
oldest_first = list(layer.events_by_key_prefix(prefix, EventQueryOptions.replay()))
in_window = list(layer.events_by_timestamp(1, 3, EventQueryOptions.default()))  # 1 <= ts < 3
```

### Query options

| Option | Effect |
| --- | --- |
| `EventQueryOptions.default()` | Returns the newest entries first. Payloads are not included and there is no limit. |
| `EventQueryOptions.range(skip, take)` | Returns the newest entries first. It skips `skip` log positions and returns at most `take` entries. |
| `EventQueryOptions.limit(take)` | Returns the newest entries first, at most `take` entries. |
| `EventQueryOptions.replay()` | Returns the oldest entries first, with serialized payloads included. |

Setting `exact_match=True` on an `EventQueryOptions` changes how keys are matched. The key must then equal the given string instead of starting with it.

### Reading events back

`LogEntry.deserialize()` rebuilds the event from an entry. It returns `None` in two cases:

- the entry was queried without its payload;
- the entry's type name is unknown.

### Deleting events

Entries can be removed with these methods:

- `delete_events_for_topic`
- `delete_events_for_partition`
- `delete_events_for_ledger`
- `delete_events_for_message`
- `delete_events_for_message_ref`
- `delete_events_before`

## Ledgers

`pubsub_broker.model.ledger.Ledger` holds published messages. A message stays in the ledger until it has received `subscriber_count` acknowledgements.

- `allocate_message_id()` hands out increasing ids. It returns `None` once the 32-bit id space is exhausted.
- `publish_message()` stores a message in the ledger.
- `ack()` returns `False` for a message the ledger does not hold.
- `stats()` returns a `LedgerStats` snapshot.
- `Ledger.from_persistence(...)` builds a ledger from its stored record.

## Subscriptions

`pubsub_broker.model.subscription.create_subscription(persistence, topic_id, subscription_id)` reads the stored subscription record and returns one of two types:

- **`SharedSubscription`** gives each message to whichever consumer asks next.
- **`KeySharedSubscription`** never has two messages with the same key in flight with different consumers at the same time.

Both types provide these operations:

- `connect_consumer()` allocates an id from the persisted counter.
- `push(message)`
- `pop(consumer_id)`
- `ack(consumer_id, message_ref_key)`
- `nack(consumer_id, message_ref_key)`
- `disconnect_consumer(consumer_id)`
- `stats()`

Messages are `SubscribedMessage` values, usually made with `SubscribedMessage.from_published(...)`.

## Nodes

`pubsub_broker.model.node.Node(persistence, node_id)` is built from a stored `Node` record. Calling `refresh(persistence)` reloads the record and returns a `RefreshStatus`:

| Status | Meaning |
| --- | --- |
| `UPDATED` | The record was reloaded. |
| `DELETED` | The record no longer exists. |
| `STALE` | The record could not be read. |

## Metrics

```python
from pubsub_broker.observability import Metrics

with Metrics("127.0.0.1", 8125, "pulsar") as metrics:
    metrics.incr(Metrics.METRIC_HTTP_ADMIN_COUNT)
    lines = metrics.flush()   # ["pulsar.http.request.admin.count:1|c"]
```

Methods:

- `incr`, `decr` and `count` update counters in memory.
- `flush()` sends the counters as StatsD count lines and resets them.
- `run(stop_event, interval)` is a coroutine. It calls `flush()` every `interval` seconds until the `threading.Event` `stop_event` is set.

## What this package does not do

- **Storage.** Everything is kept in process memory. `PersistenceScheme.FILE_SYSTEM` is recognised, but `PersistenceLayer` raises `ValueError` for it.
- **Network API.** There is no HTTP or binary API. The package does not listen for publishers or consumers.
- **Cluster coordination.** There is no synchronisation between nodes.
- **Command line.** The package provides no command. Use it as a library.