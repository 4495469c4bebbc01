# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Unit tests for the recursive document merge."""

from __future__ import annotations

from typing import Any

from merge_gateway.domain.entities.json_value import JsonValue
from merge_gateway.domain.services.merger import merge


def _merge(base: Any, overlay: Any) -> Any:
    return merge(JsonValue.from_python(base), JsonValue.from_python(overlay)).to_python()


def test_disjoint_keys_are_unioned() -> None:
    assert _merge({"a": 1}, {"b": 2}) == {"a": 1, "b": 2}


def test_overlay_wins_shared_scalar() -> None:
    assert _merge({"k": "base"}, {"k": "overlay"}) == {"k": "overlay"}


def test_arrays_concatenate_base_first() -> None:
    # Primary ["p"] overlays secondary ["s1", "s2"].
    assert _merge({"list": ["s1", "s2"]}, {"list": ["p"]}) == {"list": ["s1", "s2", "p"]}


def test_nested_objects_recurse_at_every_level() -> None:
    base = {"o": {"keep": 1, "k": "b", "arr": [1], "deep": {"x": 1}}}
    overlay = {"o": {"k": "o", "arr": [2], "deep": {"y": 2}}}
    assert _merge(base, overlay) == {
        "o": {"keep": 1, "k": "o", "arr": [1, 2], "deep": {"x": 1, "y": 2}}
    }


def test_primary_over_secondary_example() -> None:
    primary = {"a": 1, "b": {"x": 1}}
    secondary = {"b": {"y": 2}, "c": [1, 2]}
    merged = _merge(secondary, primary)
    assert merged == {"a": 1, "b": {"x": 1, "y": 2}, "c": [1, 2]}


def test_mismatched_shapes_take_overlay() -> None:
    assert _merge({"k": {"x": 1}}, {"k": [1]}) == {"k": [1]}
    assert _merge({"k": [1]}, {"k": None}) == {"k": None}
    assert _merge({"k": 1}, {"k": {"x": 1}}) == {"k": {"x": 1}}


def test_null_overlay_replaces_value() -> None:
    assert _merge({"k": {"x": 1}}, {"k": None}) == {"k": None}


def test_base_keys_keep_position_and_new_keys_append() -> None:
    merged = _merge({"b": 1, "a": 2}, {"c": 3, "a": 4})
    assert list(merged) == ["b", "a", "c"]
    assert merged == {"b": 1, "a": 4, "c": 3}


def test_top_level_non_objects_follow_the_same_rules() -> None:
    assert _merge([1], [2]) == [1, 2]
    assert _merge({"a": 1}, "scalar") == "scalar"


def test_empty_documents_are_identity() -> None:
    doc = {"a": [1], "b": {"c": True}}
    assert _merge({}, doc) == doc
    assert _merge(doc, {}) == doc


def test_inputs_are_not_mutated() -> None:
    base = JsonValue.from_python({"a": [1], "o": {"x": 1}})
    overlay = JsonValue.from_python({"a": [2], "o": {"y": 2}})
    before = (base.to_python(), overlay.to_python())
    merge(base, overlay)
    assert (base.to_python(), overlay.to_python()) == before


def _chain(depth: int, leaf: dict[str, Any]) -> dict[str, Any]:
    doc: dict[str, Any] = leaf
    for _ in range(depth):
        doc = {"n": doc}
    return doc


def test_deeply_nested_objects_merge_to_the_bottom() -> None:
    merged = _merge(_chain(800, {"s": 1}), _chain(800, {"p": 2}))

    for _ in range(800):
        assert list(merged) == ["n"]
        merged = merged["n"]
    assert merged == {"s": 1, "p": 2}
