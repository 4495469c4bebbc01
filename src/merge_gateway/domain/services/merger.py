# src/merge_gateway/domain/services/merger.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Deep merge of two JSON documents.

Purpose:
    Layer an *overlay* document on top of a *base* document. The gateway calls
    ``merge(secondary_doc, primary_doc)`` so the primary backend wins conflicts
    while the secondary contributes everything the primary does not override.

Rules (applied per key of the overlay, in overlay order):
    1. Both values are objects: merge them recursively.
    2. Both values are arrays: concatenate, base elements first.
    3. Anything else (absent in base, or mismatched/scalar shapes): the
       overlay value replaces the base value.

    Keys present only in the base keep their original position; keys new in
    the overlay are appended after them. The merge is total and never mutates
    its inputs. It is not commutative.

Layer:
    domain/services

Notes:
    Pure domain logic: no logging, no I/O. Nested objects are merged with an
    explicit stack, so document depth is not limited by the recursion limit.
"""

from __future__ import annotations

from collections.abc import Iterator

from merge_gateway.domain.entities.json_value import JsonValue

__all__ = ["merge"]


def merge(base: JsonValue, overlay: JsonValue) -> JsonValue:
    """Return ``overlay`` layered on top of ``base``.

    Args:
        base:
            Lower-precedence document (the secondary backend's body).
        overlay:
            Higher-precedence document (the primary backend's body).

    Returns:
        A new :class:`JsonValue`. For two objects, the recursive union; for two
        arrays, their concatenation; otherwise ``overlay``.

    Examples:
        >>> a = JsonValue.from_python({"list": ["s1", "s2"], "k": 1})
        >>> b = JsonValue.from_python({"list": ["p"], "k": 2})
        >>> merge(a, b).to_python()
        {'list': ['s1', 's2', 'p'], 'k': 2}
    """
    if base.is_object and overlay.is_object:
        return _merge_objects(base, overlay)
    return _merge_flat(base, overlay)


def _merge_flat(base: JsonValue, overlay: JsonValue) -> JsonValue:
    if base.is_array and overlay.is_array:
        return JsonValue.from_items(base.items() + overlay.items())
    return overlay


class _ObjectMerge:
    """One object pair being merged; ``key`` names the member awaiting a nested result."""

    __slots__ = ("merged", "remaining", "key")

    def __init__(self, base: JsonValue, overlay: JsonValue) -> None:
        self.merged: dict[str, JsonValue] = dict(base.members())
        self.remaining: Iterator[tuple[str, JsonValue]] = iter(overlay.members())
        self.key: str | None = None


def _merge_objects(base: JsonValue, overlay: JsonValue) -> JsonValue:
    stack = [_ObjectMerge(base, overlay)]
    while True:
        top = stack[-1]
        step = next(top.remaining, None)
        if step is None:
            stack.pop()
            node = JsonValue.from_members(top.merged)
            if not stack:
                return node
            parent = stack[-1]
            parent.merged[parent.key] = node  # type: ignore[index]
            continue

        key, value = step
        existing = top.merged.get(key)
        if existing is None:
            top.merged[key] = value
        elif existing.is_object and value.is_object:
            top.key = key
            stack.append(_ObjectMerge(existing, value))
        else:
            top.merged[key] = _merge_flat(existing, value)
