# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Unit tests for the tagged JSON value and strict document decoding."""

from __future__ import annotations

import pytest

from merge_gateway.domain.entities.json_value import JsonKind, JsonValue, decode_document
from merge_gateway.domain.exceptions.gateway import DocumentDecodeError


def test_from_python_tags_every_kind() -> None:
    doc = JsonValue.from_python(
        {"n": None, "b": True, "i": 3, "f": 1.5, "s": "x", "a": [1], "o": {}}
    )
    kinds = {key: value.kind for key, value in doc.members()}
    assert kinds == {
        "n": JsonKind.NULL,
        "b": JsonKind.BOOL,
        "i": JsonKind.NUMBER,
        "f": JsonKind.NUMBER,
        "s": JsonKind.STRING,
        "a": JsonKind.ARRAY,
        "o": JsonKind.OBJECT,
    }


def test_bool_is_not_a_number() -> None:
    assert JsonValue.from_python(False).kind is JsonKind.BOOL
    with pytest.raises(TypeError):
        JsonValue.number(True)


def test_to_python_preserves_member_order() -> None:
    doc = JsonValue.from_python({"z": 1, "a": [True, None], "m": {"k": "v"}})
    out = doc.to_python()
    assert out == {"z": 1, "a": [True, None], "m": {"k": "v"}}
    assert isinstance(out, dict)
    assert list(out) == ["z", "a", "m"]


def test_from_members_later_duplicate_wins_in_place() -> None:
    doc = JsonValue.from_members(
        [("a", JsonValue.number(1)), ("b", JsonValue.null()), ("a", JsonValue.number(2))]
    )
    assert [key for key, _ in doc.members()] == ["a", "b"]
    assert doc.get("a") == JsonValue.number(2)
    assert doc.get("missing") is None


def test_accessors_reject_wrong_kind() -> None:
    with pytest.raises(TypeError):
        JsonValue.string("x").members()
    with pytest.raises(TypeError):
        JsonValue.empty_object().items()


def test_from_python_rejects_non_json_data() -> None:
    with pytest.raises(TypeError):
        JsonValue.from_python({1: "int key"})
    with pytest.raises(TypeError):
        JsonValue.from_python({"when": object()})


def test_decode_document_accepts_object_bytes() -> None:
    doc = decode_document(b'{"a": 1, "b": {"x": [1, 2]}}')
    assert doc.is_object
    assert doc.to_python() == {"a": 1, "b": {"x": [1, 2]}}


@pytest.mark.parametrize("body", [b"", b"{not json", b'{"a": 1} trailing', b'{"a": NaN}'])
def test_decode_document_rejects_invalid_json(body: bytes) -> None:
    with pytest.raises(DocumentDecodeError) as excinfo:
        decode_document(body)
    assert excinfo.value.code == "DOCUMENT_DECODE_ERROR"
    assert "error" in excinfo.value.details


@pytest.mark.parametrize(
    ("body", "got"),
    [(b"[1, 2]", "list"), (b'"text"', "str"), (b"42", "int"), (b"null", "NoneType")],
)
def test_decode_document_rejects_non_object_top_level(body: bytes, got: str) -> None:
    with pytest.raises(DocumentDecodeError) as excinfo:
        decode_document(body)
    assert excinfo.value.details == {"got": got}


def _nested_lists(depth: int) -> str:
    return '{"k":' + "[" * depth + "]" * depth + "}"


def test_deeply_nested_document_round_trips() -> None:
    doc = decode_document(_nested_lists(600))

    value = doc.to_python()["k"]  # type: ignore[index]
    depth = 0
    while value:
        value = value[0]
        depth += 1
    assert depth == 599


def test_nesting_beyond_the_parser_limit_is_a_decode_error() -> None:
    with pytest.raises(DocumentDecodeError) as excinfo:
        decode_document(_nested_lists(100_000))
    assert excinfo.value.details == {"error": "RecursionError"}
