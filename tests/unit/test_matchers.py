from __future__ import annotations

import json
from typing import Any

import pytest

from eventprobe.network.matchers import (
    contains_pattern,
    find_key_value_in_tree,
    find_matching_item,
    iter_items,
    json_kind,
    leaf_content,
    match_json_element,
)


@pytest.mark.parametrize(
    ("value", "kind"),
    [
        (None, "null"),
        (True, "bool"),
        (0, "number"),
        (1.5, "number"),
        ("x", "string"),
        ([1], "array"),
        ({"a": 1}, "object"),
    ],
)
def test_json_kind(value: Any, kind: str) -> None:
    assert json_kind(value) == kind


def test_json_kind_rejects_non_json_values() -> None:
    with pytest.raises(TypeError):
        json_kind({1, 2})


def test_leaf_content_uses_compact_json_for_non_strings() -> None:
    assert leaf_content("abc") == "abc"
    assert leaf_content(3) == "3"
    assert leaf_content(1.5) == "1.5"
    assert leaf_content(True) == "true"
    assert leaf_content(None) == "null"


@pytest.mark.parametrize("leaf", ["", "abc", 0, 12.5, True, False, None])
def test_wildcard_matches_any_leaf(leaf: Any) -> None:
    assert match_json_element(leaf, "*")


def test_empty_pattern_matches_only_empty_string() -> None:
    assert match_json_element("", "")
    assert not match_json_element("a", "")
    assert not match_json_element(" ", "")
    # null content is "null", not empty
    assert not match_json_element(None, "")


@pytest.mark.parametrize(
    ("actual", "needle", "expected"),
    [
        ("price=120 EUR", "120", True),
        ("abc", "abc", True),
        ("abc", "", True),
        ("abc", "abd", False),
        ("", "a", False),
    ],
)
def test_substring_pattern(actual: str, needle: str, expected: bool) -> None:
    assert match_json_element(actual, "~" + needle) is expected


def test_exact_match_on_raw_content() -> None:
    assert match_json_element("CR", "CR")
    assert not match_json_element("CR ", "CR")
    assert not match_json_element("cr", "CR")


def test_numeric_leaf_matches_string_pattern_and_back() -> None:
    # Leaves are compared by content: 3 -> "3"
    assert match_json_element(3, "3")
    assert match_json_element("3", 3)
    assert not match_json_element(3.0, "3")
    assert match_json_element(True, "true")
    assert match_json_element(120, "~12")


@pytest.mark.parametrize("literal", ["^ab", "$ab", "#1", "<5", ">5"])
def test_documented_extra_operators_are_plain_literals(literal: str) -> None:
    assert match_json_element(literal, literal)
    assert not match_json_element("ab", literal)
    assert not match_json_element(1, literal)


def test_object_pattern_is_structural_subset() -> None:
    event = {"loc": "MAB", "loc_way": "CR", "extra": 1}
    assert match_json_element(event, {"loc": "MAB"})
    assert match_json_element(event, {"loc": "MAB", "loc_way": "~C"})
    assert not match_json_element(event, {"missing": "*"})
    assert not match_json_element(event, {"loc": "XXX"})


def test_array_pattern_is_multiset_containment_without_positions() -> None:
    event = [{"id": 1}, {"id": 2}, {"id": 3}]
    assert match_json_element(event, [{"id": 3}, {"id": 1}])
    assert match_json_element(event, [])
    assert not match_json_element(event, [{"id": 4}])


def test_type_mismatch_does_not_match() -> None:
    assert not match_json_element({"a": 1}, [{"a": 1}])
    assert not match_json_element([1], {"0": 1})
    assert not match_json_element({"a": 1}, "*")
    assert not match_json_element(5, {"a": 1})


def test_embedded_json_string_is_decoded() -> None:
    event = json.dumps({"tail_object": {"loc": "MAB"}})
    assert match_json_element(event, {"tail_object": {"loc": "MAB"}})
    assert not match_json_element(event, {"tail_object": {"loc": "XXX"}})


def test_embedded_string_that_is_not_json_is_no_match() -> None:
    assert not match_json_element("{not json", {"a": 1})
    assert not match_json_element("plain", ["plain"])


def test_embedded_string_nested_too_deeply_is_no_match() -> None:
    deep = "[" * 100000 + "]" * 100000
    assert not match_json_element(deep, {"a": 1})
    assert not contains_pattern({"data": deep}, {"data": ["x"]})
    assert not contains_pattern(deep, {"a": 1})


def test_find_key_value_in_tree_searches_all_depths() -> None:
    tree = {"a": {"b": [{"c": {"price": "120"}}]}}
    assert find_key_value_in_tree(tree, "price", "120")
    assert find_key_value_in_tree(tree, "c", {"price": "~12"})
    assert not find_key_value_in_tree(tree, "price", "121")
    assert not find_key_value_in_tree("price", "price", "*")


def test_contains_pattern_searches_each_key_independently() -> None:
    payload = {
        "meta": {"locale": "en-ES"},
        "event": {"data": {"items": [{"price": "120", "name": "Shoes"}]}},
    }
    assert contains_pattern(payload, {"price": "~120"})
    assert contains_pattern(payload, {"locale": "en-ES", "name": "Shoes"})
    assert not contains_pattern(payload, {"locale": "en-ES", "name": "Hat"})
    assert contains_pattern(payload, {})


def test_contains_pattern_decodes_string_payload() -> None:
    payload = json.dumps({"event": {"data": {"qty": 3}}})
    assert contains_pattern(payload, {"qty": "3"})
    assert not contains_pattern("not json at all", {"qty": "3"})


def test_iter_items_and_find_matching_item() -> None:
    payload = {
        "meta": {},
        "event": {
            "data": {
                "items": [
                    {"name": "First", "list_id": "A"},
                    {"name": "Second", "list_id": "CR", "tail_object": {"loc": "MAB"}},
                ]
            }
        },
    }
    assert [it["name"] for it in iter_items(payload)] == ["First", "Second"]

    item = find_matching_item(payload, {"list_id": "CR", "loc": "MAB"})
    assert item is not None and item["name"] == "Second"
    assert find_matching_item(payload, {"list_id": "ZZ"}) is None
