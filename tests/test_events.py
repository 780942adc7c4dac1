import pytest

from pubsub_broker.events import (
    AckEvent,
    DropConsumerEvent,
    KeyAffinityEvent,
    LogEntry,
    NackEvent,
    NewConsumerEvent,
    PublishEvent,
)
from pubsub_broker.messages import MessageRef, PublishedMessage

REF = MessageRef(1, 16, 12, 544)


def _publish() -> PublishEvent:
    return PublishEvent(
        PublishedMessage(
            message_ref=REF,
            key="",
            timestamp=8773873,
            published=9839845,
            attributes={"origin": "tests"},
            subscriber_count=1,
            ack_count=0,
        )
    )


ALL_EVENTS = [
    _publish(),
    AckEvent(REF, 1, 10),
    NackEvent(REF, 2, 11),
    NewConsumerEvent(1, 2, 3),
    DropConsumerEvent(1, 2, 3),
    KeyAffinityEvent(1, 2, 3, "customer"),
]


@pytest.mark.parametrize(
    "event, type_name",
    [
        (_publish(), "Publish"),
        (AckEvent(REF, 1, 10), "Ack"),
        (NackEvent(REF, 2, 11), "Nack"),
        (NewConsumerEvent(1, 2, 3), "NewConsumer"),
        (DropConsumerEvent(1, 2, 3), "DropConsumer"),
        (KeyAffinityEvent(1, 2, 3, "customer"), "KeyAffinity"),
    ],
)
def test_type_names(event, type_name):
    assert event.type_name == type_name


@pytest.mark.parametrize("event", [_publish(), AckEvent(REF, 1, 10), NackEvent(REF, 3, 12)])
def test_message_events_are_keyed_by_message_ref(event):
    assert event.key == "1:16:12:544"


@pytest.mark.parametrize(
    "event",
    [NewConsumerEvent(4, 5, 6), DropConsumerEvent(4, 5, 6), KeyAffinityEvent(4, 5, 6, "k")],
)
def test_consumer_events_are_keyed_by_consumer(event):
    assert event.key == "4:5:6"


def test_from_event_sets_metadata():
    entry = LogEntry.from_event(NackEvent(REF, 2, 11), 3)
    assert entry.timestamp == 3
    assert entry.type_name == "Nack"
    assert entry.key == "1:16:12:544"
    assert entry.serialization


@pytest.mark.parametrize("event", ALL_EVENTS)
def test_log_entry_round_trip(event):
    entry = LogEntry.from_event(event, 1)
    assert entry.deserialize() == event
    assert entry.type_name == event.type_name


def test_deserialize_without_serialization_is_none():
    entry = LogEntry.from_event(AckEvent(REF, 1, 10), 2)
    entry.serialization = None
    assert entry.deserialize() is None


def test_deserialize_unknown_type_is_none():
    entry = LogEntry.from_event(AckEvent(REF, 1, 10), 2)
    entry.type_name = "Unknown"
    assert entry.deserialize() is None


def test_deserialize_mismatched_payload_raises():
    entry = LogEntry.from_event(NewConsumerEvent(1, 2, 3), 2)
    entry.type_name = LogEntry.ACK_TYPE_NAME
    with pytest.raises(ValueError):
        entry.deserialize()


def test_from_event_rejects_non_events():
    with pytest.raises((TypeError, AttributeError)):
        LogEntry.from_event(REF, 1)