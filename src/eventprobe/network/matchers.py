from __future__ import annotations

import json
from collections.abc import Iterator, Mapping
from typing import Any, Literal, assert_never

# ---------- JSON value kinds ----------

JsonKind = Literal["null", "bool", "number", "string", "array", "object"]

_LEAF_KINDS: frozenset[str] = frozenset({"null", "bool", "number", "string"})


def json_kind(value: Any) -> JsonKind:
    """
    Classify a decoded JSON value.

    bool is checked before number because bool is a subclass of int in Python.

    Raises:
        TypeError: if the value is not something json.loads could have produced.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int | float):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list | tuple):
        return "array"
    if isinstance(value, Mapping):
        return "object"
    raise TypeError(f"Not a JSON value: {type(value).__name__}")


def leaf_content(value: Any) -> str:
    """
    Raw content of a leaf used by every leaf comparison.

    Strings are taken as-is; numbers, booleans and null use their compact JSON form
    (3 -> "3", 1.5 -> "1.5", True -> "true", None -> "null").
    """
    kind = json_kind(value)
    if kind == "string":
        return value
    if kind == "null" or kind == "bool" or kind == "number":
        return json.dumps(value)
    if kind == "array" or kind == "object":
        raise TypeError(f"Not a JSON leaf: {kind}")
    assert_never(kind)


# ---------- Structural nested match ----------


def match_leaf(event_leaf: Any, search_leaf: Any) -> bool:
    """
    Compare two leaves.

    Pattern leaf grammar:
      - "*"       - any value matches
      - ""        - only an empty string matches
      - "~value"  - the event leaf content contains `value`
      - anything else - exact equality of leaf contents

    No other prefix has a special meaning: "^abc", "$abc", "#1", "<5", ">5" are literals.
    """
    expected = leaf_content(search_leaf)
    actual = leaf_content(event_leaf)
    if isinstance(search_leaf, str):
        if search_leaf == "*":
            return True
        if search_leaf == "":
            return actual == ""
        if search_leaf.startswith("~"):
            return search_leaf[1:] in actual
    return actual == expected


def match_json_element(event_element: Any, search_element: Any) -> bool:
    """
    Recursively match an event value against a pattern value.

    Rules, in order:
      1. leaf vs leaf -> match_leaf
      2. event string vs container pattern -> the string is decoded as JSON and matched
         again; a string that is not JSON simply does not match
      3. object vs object -> every pattern key exists in the event and its value matches;
         extra event keys are ignored
      4. array vs array -> every pattern element matches some event element (any position)
      5. anything else -> no match
    """
    event_kind = json_kind(event_element)
    search_kind = json_kind(search_element)

    if event_kind in _LEAF_KINDS and search_kind in _LEAF_KINDS:
        return match_leaf(event_element, search_element)

    if event_kind == "string":
        try:
            parsed = json.loads(event_element)
        except (ValueError, RecursionError):
            return False
        return match_json_element(parsed, search_element)

    if event_kind == "object" and search_kind == "object":
        for k, sv in search_element.items():
            if k not in event_element:
                return False
            if not match_json_element(event_element[k], sv):
                return False
        return True

    if event_kind == "array" and search_kind == "array":
        for se in search_element:
            if not any(match_json_element(ee, se) for ee in event_element):
                return False
        return True

    return False


# ---------- Deep key-existence search ----------


def find_key_value_in_tree(element: Any, key: str, search_value: Any) -> bool:
    """Depth-first search for a field `key` whose value matches `search_value`, at any depth."""
    kind = json_kind(element)
    if kind == "object":
        for k, v in element.items():
            if (k == key and match_json_element(v, search_value)) or find_key_value_in_tree(
                v, key, search_value
            ):
                return True
        return False
    if kind == "array":
        return any(find_key_value_in_tree(it, key, search_value) for it in element)
    return False


def decode_payload(payload: Any) -> Any:
    """Decode a payload that arrived as a JSON string; other values are returned unchanged."""
    if isinstance(payload, str):
        try:
            return json.loads(payload)
        except (ValueError, RecursionError):
            return payload
    return payload


def contains_pattern(payload: Any, pattern: Mapping[str, Any]) -> bool:
    """
    Check that every (key, value) of the pattern is found somewhere in the payload.

    Each key is searched independently across the whole tree (objects and arrays),
    so pattern keys may live at different depths and in unrelated branches.
    """
    root = decode_payload(payload)
    return all(find_key_value_in_tree(root, key, value) for key, value in pattern.items())


# ---------- Item lookup (locator building) ----------


def iter_items(element: Any, field: str = "items") -> Iterator[dict[str, Any]]:
    """Yield every object found in any `field` array, at any depth, in document order."""
    kind = json_kind(element)
    if kind == "object":
        for k, v in element.items():
            if k == field and isinstance(v, list):
                for it in v:
                    if isinstance(it, dict):
                        yield it
            yield from iter_items(v, field)
    elif kind == "array":
        for it in element:
            yield from iter_items(it, field)


def find_matching_item(payload: Any, pattern: Mapping[str, Any]) -> dict[str, Any] | None:
    """Return the first item in which every pattern key is found (deep search of the item)."""
    for item in iter_items(decode_payload(payload)):
        if all(find_key_value_in_tree(item, k, sv) for k, sv in pattern.items()):
            return item
    return None
