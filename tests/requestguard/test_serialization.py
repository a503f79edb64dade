"""Canonical serialization used for request identity."""

from __future__ import annotations

import pytest

from RequestGuard.serialization import stable_stringify


def test_mapping_key_order_does_not_matter():
    first = {"b": 2, "a": 1, "c": {"y": True, "x": None}}
    second = {"c": {"x": None, "y": True}, "a": 1, "b": 2}

    assert stable_stringify(first) == stable_stringify(second)
    assert stable_stringify(first) == '{"a":1,"b":2,"c":{"x":,"y":true}}'


def test_sequence_order_is_significant():
    assert stable_stringify([1, 2, 3]) == "[1,2,3]"
    assert stable_stringify([1, 2, 3]) != stable_stringify([3, 2, 1])
    assert stable_stringify((1, "a")) == '[1,"a"]'


def test_none_is_empty_string():
    assert stable_stringify(None) == ""


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("text", '"text"'),
        (3, "3"),
        (1.5, "1.5"),
        (False, "false"),
        ("héllo", '"héllo"'),
    ],
)
def test_scalars_use_json_literals(value, expected):
    assert stable_stringify(value) == expected


def test_nested_lists_of_mappings_are_canonical():
    payload = [{"z": 1, "a": [2, {"k": "v", "b": 0}]}]
    assert stable_stringify(payload) == '[{"a":[2,{"b":0,"k":"v"}],"z":1}]'


def test_shared_but_acyclic_references_are_allowed():
    shared = {"x": 1}
    assert stable_stringify({"a": shared, "b": shared}) == '{"a":{"x":1},"b":{"x":1}}'


def test_cyclic_structure_raises():
    data: dict = {"a": 1}
    data["self"] = data
    with pytest.raises(ValueError, match="cyclic"):
        stable_stringify(data)

    items: list = [1]
    items.append(items)
    with pytest.raises(ValueError):
        stable_stringify(items)
