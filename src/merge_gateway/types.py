"""Project-wide JSON typing helpers.

These aliases model plain Python JSON data (what ``json.loads`` produces and
``json.dumps`` accepts) at the edges of the service. The tagged domain tree
lives in :mod:`merge_gateway.domain.entities.json_value`.
"""

from __future__ import annotations

type JsonPrimitive = None | bool | int | float | str
type JsonValue = JsonPrimitive | list[JsonValue] | dict[str, JsonValue]
type JsonObject = dict[str, JsonValue]

__all__ = ["JsonObject", "JsonPrimitive", "JsonValue"]
