"""
Tests for Context, KeyValue and KeyValues.
"""

import gc

import pytest

from spanwise.observation import Context, Event, KeyValue, KeyValues


def test_key_values_from_flat_pairs():
    kvs = KeyValues.of("userType", "userType2", "region", "eu")
    assert kvs == (KeyValue("userType", "userType2"), KeyValue("region", "eu"))


def test_key_values_from_mapping_stringifies_values():
    kvs = KeyValues.of({"status": 200})
    assert kvs == (KeyValue("status", "200"),)


def test_key_values_odd_length_rejected():
    with pytest.raises(ValueError):
        KeyValues.of("userType", "userType2", "dangling")


def test_put_overwrites_and_keeps_insertion_order():
    ctx = Context("op")
    ctx.put_low_cardinality("a", "1")
    ctx.put_low_cardinality("b", "2")
    ctx.put_low_cardinality("a", "3")

    assert [(kv.key, kv.value) for kv in ctx.low_cardinality_key_values] == [("a", "3"), ("b", "2")]


def test_first_matching_tag_lookup():
    ctx = Context("user.name")
    ctx.add_low_cardinality_key_values(KeyValues.of("class", "UserService", "userType", "userType2"))

    value = next((kv.value for kv in ctx.low_cardinality_key_values if kv.key == "userType"), "UNKNOWN")
    assert value == "userType2"


def test_low_and_high_cardinality_kept_separate():
    ctx = Context("op")
    ctx.put_low_cardinality("method", "GET")
    ctx.put_high_cardinality("http.url", "http://testserver/user/1")

    assert ctx.get_low_cardinality_key_value("http.url") is None
    assert ctx.get_high_cardinality_key_value("http.url").value == "http://testserver/user/1"
    assert [kv.key for kv in ctx.all_key_values()] == ["method", "http.url"]


def test_key_value_iterator_is_a_snapshot():
    ctx = Context("op")
    ctx.put_low_cardinality("a", "1")
    it = ctx.low_cardinality_key_values
    ctx.put_low_cardinality("b", "2")

    assert [kv.key for kv in it] == ["a"]


def test_parent_is_a_weak_reference():
    parent = Context("parent")
    child = Context("child")
    child.parent = parent
    assert child.parent is parent

    del parent
    gc.collect()
    assert child.parent is None


def test_attributes_for_handler_state():
    ctx = Context("op")
    ctx.put("span", 42)
    assert ctx.get("span") == 42
    assert ctx.get_or_default("missing", "x") == "x"
    assert ctx.remove("span") == 42
    assert ctx.get("span") is None


def test_event_contextual_name_defaults_to_name():
    assert Event("cache.miss").contextual_name == "cache.miss"
    assert Event("cache.miss", "cache miss").contextual_name == "cache miss"
