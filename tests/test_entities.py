import pytest

from pubsub_broker.entities import Cluster, Ledger, Node, Partition, Subscription, Topic
from pubsub_broker.keys import Key


SAMPLE_ARGS = [
    (Cluster, ("local", [1, 2], [3], 3, 4)),
    (Node, (99, "127.0.0.1", 8000, 8001, 8002)),
    (Topic, (1, "topic1", [1], [1, 2], 2, 3)),
    (Partition, (1, 1, [1, 2], 3, 1)),
    (Ledger, (1, 1, 1, 1)),
    (Subscription, (1, 1, "subscription1", True, 5)),
]


def test_new_entities_start_at_version_zero():
    node = Node(99, "127.0.0.1", 8000, 8001, 8002)
    assert node.version == 0
    assert node.ip_address == "127.0.0.1"


def test_static_keys_match_source_formats():
    assert Ledger.key_for(1, 1, 1) == Key("Ledger", "1:1:1")
    assert Partition.key_for(1, 1) == Key("Partition", "1:1")
    assert Subscription.key_for(1, 1) == Key("Subscription", "1:1")
    assert Topic.key_for(1) == Key("Topic", "1")
    assert Cluster.key_for("local") == Key("Cluster", "local")


def test_node_key_type_name():
    assert Node.key_for(2).type_name == "Node"
    assert Node(2, "10.0.22.2", 8000, 8001, 8002).type_name == "Node"


@pytest.mark.parametrize(
    "entity, key",
    [
        (Cluster("local", [1, 2], [3], 3, 4), Cluster.key_for("local")),
        (Node(99, "127.0.0.1", 8000, 8001, 8002), Node.key_for(99)),
        (Topic(1, "topic1", [1], [1, 2], 2, 3), Topic.key_for(1)),
        (Partition(1, 1, [1, 2], 3, 1), Partition.key_for(1, 1)),
        (Ledger(1, 1, 1, 1), Ledger.key_for(1, 1, 1)),
        (Subscription(1, 1, "subscription1", True, 5), Subscription.key_for(1, 1)),
    ],
)
def test_instance_key_matches_static_key(entity, key):
    assert Key(entity.type_name, entity.key) == key


@pytest.mark.parametrize("entity_type, args", SAMPLE_ARGS)
def test_record_round_trip(entity_type, args):
    entity = entity_type(*args)
    record = entity.to_record()
    restored = entity_type.from_record(record)
    assert restored == entity
    assert record["version"] == entity.version
    assert Key(restored.type_name, restored.key) == Key(entity.type_name, entity.key)
    assert restored.type_name == entity_type.__name__


def test_record_lists_are_copies():
    topic = Topic(1, "topic1", [1], [1, 2], 2, 3)
    record = topic.to_record()
    record["partition_ids"].append(7)
    assert topic.partition_ids == [1]


def test_from_record_with_missing_field_raises():
    record = Node(99, "127.0.0.1", 8000, 8001, 8002).to_record()
    del record["ip_address"]
    with pytest.raises(ValueError, match="ip_address"):
        Node.from_record(record)


def test_equality_includes_version():
    first = Ledger(1, 1, 1, 1)
    second = Ledger(1, 1, 1, 1)
    assert first == second
    second.version = 1
    assert first != second