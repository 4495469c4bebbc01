# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Application Port: backend document fetcher.

The read path depends on this capability only; the concrete transport lives in
``infrastructure/external_apis/backend``.

Contract:
    ``fetch`` never raises. A backend that cannot be reached, or that returns
    something other than a JSON object, contributes the empty object ``{}``.
"""

from __future__ import annotations

from typing import Protocol

from merge_gateway.domain.entities.json_value import JsonValue


class DocumentFetcher(Protocol):
    """Protocol for fetching one backend's JSON document."""

    async def fetch(self, url: str) -> JsonValue:
        """Return the document served at ``url``, or ``{}`` on any failure."""
        ...
