# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""Use Case: Get the merged document.

Fetches the primary and secondary backend documents concurrently and layers
the primary on top of the secondary, so the primary wins conflicts and array
values are concatenated secondary-first.

Layer:
    application/use_cases
"""

from __future__ import annotations

import asyncio

from merge_gateway.application.interfaces.document_fetcher import DocumentFetcher
from merge_gateway.domain.entities.json_value import JsonValue
from merge_gateway.domain.services.merger import merge
from merge_gateway.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)


class GetMergedDocument:
    """Produce the merged read-path document."""

    def __init__(
        self,
        *,
        primary: DocumentFetcher,
        primary_url: str,
        secondary: DocumentFetcher,
        secondary_url: str,
    ) -> None:
        """Bind fetchers to their backend URLs.

        Args:
            primary: Fetcher for the read-only backend (overlay).
            primary_url: URL of the read-only backend.
            secondary: Fetcher for the read-write backend (base).
            secondary_url: URL of the read-write backend.
        """
        self._primary = primary
        self._primary_url = primary_url
        self._secondary = secondary
        self._secondary_url = secondary_url

    async def execute(self) -> JsonValue:
        """Fetch both backends concurrently and return ``merge(secondary, primary)``."""
        primary_doc, secondary_doc = await asyncio.gather(
            self._primary.fetch(self._primary_url),
            self._secondary.fetch(self._secondary_url),
        )
        merged = merge(secondary_doc, primary_doc)
        logger.debug(
            "merge.completed",
            extra={
                "extra": {
                    "primary_keys": _key_count(primary_doc),
                    "secondary_keys": _key_count(secondary_doc),
                    "merged_keys": _key_count(merged),
                }
            },
        )
        return merged


def _key_count(doc: JsonValue) -> int | None:
    return len(doc.members()) if doc.is_object else None
