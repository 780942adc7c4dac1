import msgpack
import pytest

from pubsub_broker.messages import MessageRef, PublishedMessage, SubscribedMessage


def _message() -> PublishedMessage:
    return PublishedMessage(
        message_ref=MessageRef(1, 16, 12, 544),
        key="customer",
        timestamp=8773873,
        published=9839845,
        attributes={"colour": "blue"},
        subscriber_count=1,
        ack_count=0,
    )


def test_to_key_joins_ids_with_colons():
    assert MessageRef(1, 16, 12, 544).to_key() == "1:16:12:544"


def test_from_key_parses_all_parts():
    ref = MessageRef.from_key("1:16:12:544")
    assert ref == MessageRef(topic_id=1, partition_id=16, ledger_id=12, message_id=544)


def test_key_round_trip():
    ref = MessageRef(7, 3, 2, 99)
    assert MessageRef.from_key(ref.to_key()) == ref


def test_default_ref_is_all_zero():
    assert MessageRef().to_key() == "0:0:0:0"


@pytest.mark.parametrize("key", ["", "1:2:3", "a:b:c:d", "1:2:x:4"])
def test_from_key_rejects_malformed_keys(key):
    with pytest.raises(ValueError):
        MessageRef.from_key(key)


def test_message_ref_record_round_trip():
    ref = MessageRef(1, 16, 12, 544)
    assert MessageRef.from_record(ref.to_record()) == ref


def test_message_ref_record_missing_field():
    with pytest.raises(ValueError):
        MessageRef.from_record({"topic_id": 1})


def test_published_message_round_trips_through_msgpack():
    message = _message()
    packed = msgpack.packb(message.to_record(), use_bin_type=True)
    restored = PublishedMessage.from_record(msgpack.unpackb(packed, raw=False))
    assert restored == message


def test_published_message_record_is_independent_copy():
    message = _message()
    record = message.to_record()
    record["attributes"]["colour"] = "red"
    assert message.attributes["colour"] == "blue"


def test_published_message_record_missing_field():
    record = _message().to_record()
    del record["key"]
    with pytest.raises(ValueError):
        PublishedMessage.from_record(record)


def test_subscribed_message_from_published():
    message = _message()
    subscribed = SubscribedMessage.from_published(message)
    assert subscribed.message_ref_key == "1:16:12:544"
    assert subscribed.key == message.key
    assert subscribed.consumer_id is None
    assert subscribed.delivered_timestamp is None
    assert subscribed.delivery_count == 0


def test_subscribed_message_key_parses_back_to_ref():
    message = _message()
    subscribed = SubscribedMessage.from_published(message)
    assert MessageRef.from_key(subscribed.message_ref_key) == message.message_ref