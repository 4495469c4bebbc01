# src/merge_gateway/domain/entities/json_value.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""JSON Value (Domain Entity).

Synopsis:
    Immutable, explicitly tagged representation of an arbitrary JSON document.
    Every node carries a :class:`JsonKind` tag so consumers (notably the merge
    service) dispatch on the tag of paired values instead of inspecting Python
    runtime types.

Design:
    * Frozen + slotted dataclass; arrays and objects are stored as tuples so a
      decoded document can never be mutated in place.
    * Objects keep insertion order and unique keys (later duplicates win, as
      with ``json.loads``).
    * ``decode_document`` is strict: the constants ``NaN``/``Infinity`` are
      rejected and the top-level value must be an object.

Layer:
    domain/entities
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from merge_gateway.domain.exceptions.gateway import DocumentDecodeError
from merge_gateway.types import JsonObject, JsonPrimitive, JsonValue as PyJsonValue

__all__ = ["JsonKind", "JsonValue", "decode_document"]


class JsonKind(str, Enum):
    """Variant tag of a :class:`JsonValue` node."""

    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"

    def __str__(self) -> str:  # pragma: no cover - trivial
        """Return the tag name."""
        return self.value


type _Payload = JsonPrimitive | tuple[JsonValue, ...] | tuple[tuple[str, JsonValue], ...]


@dataclass(frozen=True, slots=True)
class JsonValue:
    """A single JSON node.

    Attributes:
        kind:
            Variant tag.
        payload:
            ``None`` for NULL, ``bool`` for BOOL, ``int``/``float`` for NUMBER,
            ``str`` for STRING, a tuple of nodes for ARRAY and a tuple of
            ``(key, node)`` pairs for OBJECT.
    """

    kind: JsonKind
    payload: _Payload = None

    # ------------------------------------------------------------------ #
    # Constructors
    # ------------------------------------------------------------------ #
    @classmethod
    def null(cls) -> JsonValue:
        return _NULL

    @classmethod
    def boolean(cls, value: bool) -> JsonValue:
        return cls(JsonKind.BOOL, bool(value))

    @classmethod
    def number(cls, value: int | float) -> JsonValue:
        if isinstance(value, bool) or not isinstance(value, int | float):
            raise TypeError(f"not a JSON number: {value!r}")
        return cls(JsonKind.NUMBER, value)

    @classmethod
    def string(cls, value: str) -> JsonValue:
        return cls(JsonKind.STRING, str(value))

    @classmethod
    def from_items(cls, items: Iterable[JsonValue]) -> JsonValue:
        return cls(JsonKind.ARRAY, tuple(items))

    @classmethod
    def from_members(
        cls,
        members: Mapping[str, JsonValue] | Iterable[tuple[str, JsonValue]],
    ) -> JsonValue:
        """Build an OBJECT node; later duplicate keys replace earlier values in place."""
        pairs = members.items() if isinstance(members, Mapping) else members
        ordered: dict[str, JsonValue] = {}
        for key, value in pairs:
            ordered[str(key)] = value
        return cls(JsonKind.OBJECT, tuple(ordered.items()))

    @classmethod
    def empty_object(cls) -> JsonValue:
        """Return the ``{}`` document used as the degraded-fetch fallback."""
        return _EMPTY_OBJECT

    @classmethod
    def from_python(cls, obj: Any) -> JsonValue:
        """Convert plain Python JSON data into a tagged tree.

        The walk uses an explicit stack, so nesting depth is bounded by memory
        rather than by the interpreter's recursion limit.

        Args:
            obj: ``None``, ``bool``, ``int``, ``float``, ``str``, ``list``/``tuple``
                or ``dict`` with string keys, recursively.

        Returns:
            The equivalent :class:`JsonValue`.

        Raises:
            TypeError: If ``obj`` (or any nested value) is not JSON data.
        """
        node = _scalar(obj)
        if node is not None:
            return node

        stack = [_Builder(obj)]
        while True:
            top = stack[-1]
            child = next(top.pending, _DONE)
            if child is _DONE:
                stack.pop()
                node = top.build()
                if not stack:
                    return node
                stack[-1].built.append(node)
                continue
            node = _scalar(child)
            if node is None:
                stack.append(_Builder(child))
            else:
                top.built.append(node)

    # ------------------------------------------------------------------ #
    # Accessors
    # ------------------------------------------------------------------ #
    @property
    def is_object(self) -> bool:
        return self.kind is JsonKind.OBJECT

    @property
    def is_array(self) -> bool:
        return self.kind is JsonKind.ARRAY

    def items(self) -> tuple[JsonValue, ...]:
        """Return the elements of an ARRAY node."""
        if self.kind is not JsonKind.ARRAY:
            raise TypeError(f"items() on a {self.kind} node")
        return self.payload  # type: ignore[return-value]

    def members(self) -> tuple[tuple[str, JsonValue], ...]:
        """Return the ``(key, value)`` pairs of an OBJECT node in insertion order."""
        if self.kind is not JsonKind.OBJECT:
            raise TypeError(f"members() on a {self.kind} node")
        return self.payload  # type: ignore[return-value]

    def get(self, key: str) -> JsonValue | None:
        """Return the member ``key`` of an OBJECT node, or ``None`` if absent."""
        for name, value in self.members():
            if name == key:
                return value
        return None

    def to_python(self) -> PyJsonValue:
        """Convert back to plain Python JSON data (dicts keep member order)."""
        if self.kind not in _CONTAINERS:
            return self.payload  # type: ignore[return-value]

        root = _empty_container(self)
        stack: list[tuple[JsonValue, list[PyJsonValue] | JsonObject]] = [(self, root)]
        while stack:
            node, out = stack.pop()
            pairs = node.members() if node.is_object else enumerate(node.items())
            for key, value in pairs:
                if value.kind in _CONTAINERS:
                    converted = _empty_container(value)
                    stack.append((value, converted))
                else:
                    converted = value.payload  # type: ignore[assignment]
                if isinstance(out, list):
                    out.append(converted)
                else:
                    out[key] = converted  # type: ignore[index]
        return root


_NULL: Final[JsonValue] = JsonValue(JsonKind.NULL, None)
_EMPTY_OBJECT: Final[JsonValue] = JsonValue(JsonKind.OBJECT, ())
_CONTAINERS: Final[frozenset[JsonKind]] = frozenset({JsonKind.ARRAY, JsonKind.OBJECT})
_DONE: Final[object] = object()


def _scalar(obj: Any) -> JsonValue | None:
    """Return the node for a scalar, ``None`` for a container, or raise."""
    if obj is None:
        return _NULL
    # bool is a subclass of int; classify it first.
    if isinstance(obj, bool):
        return JsonValue.boolean(obj)
    if isinstance(obj, int | float):
        return JsonValue.number(obj)
    if isinstance(obj, str):
        return JsonValue.string(obj)
    if isinstance(obj, list | tuple | dict):
        return None
    raise TypeError(f"not JSON data: {type(obj).__name__}")


class _Builder:
    """One open array or object during :meth:`JsonValue.from_python`."""

    __slots__ = ("keys", "pending", "built")

    def __init__(self, obj: list[Any] | tuple[Any, ...] | dict[str, Any]) -> None:
        if isinstance(obj, dict):
            for key in obj:
                if not isinstance(key, str):
                    raise TypeError(f"JSON object keys must be strings, got {type(key).__name__}")
            self.keys: list[str] | None = list(obj)
            self.pending: Iterator[Any] = iter(obj.values())
        else:
            self.keys = None
            self.pending = iter(obj)
        self.built: list[JsonValue] = []

    def build(self) -> JsonValue:
        if self.keys is None:
            return JsonValue.from_items(self.built)
        return JsonValue.from_members(zip(self.keys, self.built, strict=True))


def _empty_container(node: JsonValue) -> list[PyJsonValue] | JsonObject:
    return {} if node.is_object else []


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def decode_document(raw: bytes | str) -> JsonValue:
    """Decode a backend body into an OBJECT node.

    Args:
        raw: Response body bytes (UTF-8/16/32 detected by ``json.loads``) or text.

    Returns:
        The decoded document.

    Raises:
        DocumentDecodeError: If the body is not strict JSON, nests deeper than
            the JSON parser supports, or its top-level value is not an object.
    """
    try:
        data = json.loads(raw, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError) as exc:
        raise DocumentDecodeError("invalid JSON", details={"error": str(exc)}) from exc
    except RecursionError as exc:
        raise DocumentDecodeError(
            "JSON nesting too deep", details={"error": type(exc).__name__}
        ) from exc

    if not isinstance(data, dict):
        raise DocumentDecodeError(
            "top-level JSON value is not an object",
            details={"got": type(data).__name__},
        )
    return JsonValue.from_python(data)
