import dataclasses

import pytest

from pubsub_broker.keys import Key, Keyed, PersistenceScheme, Versioned


def test_scheme_names_match_configuration_values():
    assert PersistenceScheme.IN_MEMORY.as_string() == "in-memory"
    assert PersistenceScheme.FILE_SYSTEM.as_string() == "file-system"


@pytest.mark.parametrize("scheme", list(PersistenceScheme))
def test_scheme_round_trips_through_string(scheme):
    assert PersistenceScheme.from_string(scheme.as_string()) is scheme


def test_from_string_parses_known_names():
    assert PersistenceScheme.from_string("in-memory") is PersistenceScheme.IN_MEMORY
    assert PersistenceScheme.from_string("file-system") is PersistenceScheme.FILE_SYSTEM


def test_unknown_scheme_raises_value_error():
    with pytest.raises(ValueError, match="Unknown persistence scheme database"):
        PersistenceScheme.from_string("database")


def test_key_exposes_type_name_and_key():
    key = Key("Ledger", "1:1:1")
    assert key.type_name == "Ledger"
    assert key.key == "1:1:1"
    assert isinstance(key, Keyed)
    assert not isinstance(key, Versioned)


def test_keys_compare_by_value_and_hash():
    lookup = {Key("Node", "1"): "first"}
    assert Key("Node", "1") == Key("Node", "1")
    assert Key("Node", "1") != Key("Topic", "1")
    assert lookup[Key("Node", "1")] == "first"


def test_key_is_immutable():
    key = Key("Topic", "1")
    with pytest.raises(dataclasses.FrozenInstanceError):
        key.key = "2"
    assert key.key == "1"