# src/merge_gateway/adapters/controllers/dispatcher.py
# Copyright (c) Merge Gateway.
# SPDX-License-Identifier: MIT
"""
Gateway Dispatcher.

Summary:
    Thin adapter that routes each inbound request on the gateway path to one
    of two flows, decided by the HTTP method alone:

    * ``GET``  → READ: run :class:`GetMergedDocument` and present the result.
    * others  → WRITE: relay to the secondary backend via :class:`ProxyForwarder`.

    Method matching is case-sensitive; ``HEAD`` is a write-path method.

Layer:
    adapters/controllers
"""
from __future__ import annotations

from collections.abc import Callable
from enum import Enum

from fastapi import Request
from starlette.responses import Response

from merge_gateway.adapters.presenters.merged_document_presenter import present_merged_document
from merge_gateway.application.use_cases.get_merged_document import GetMergedDocument
from merge_gateway.domain.entities.json_value import JsonValue
from merge_gateway.infrastructure.proxy.forwarder import ProxyForwarder

type Presenter = Callable[[JsonValue, Request | None], Response]


class DispatchMode(str, Enum):
    """Flow selected for a request."""

    READ = "read"
    WRITE = "write"


class Dispatcher:
    """Controller dispatching gateway requests to the read or write flow."""

    __slots__ = ("_forwarder", "_presenter", "_uc")

    def __init__(
        self,
        merged_document: GetMergedDocument,
        forwarder: ProxyForwarder,
        presenter: Presenter = present_merged_document,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            merged_document: Use-case producing the merged document.
            forwarder: Proxy to the secondary backend.
            presenter: Serializer for the merged document.
        """
        self._uc = merged_document
        self._forwarder = forwarder
        self._presenter = presenter

    @staticmethod
    def classify(method: str) -> DispatchMode:
        return DispatchMode.READ if method == "GET" else DispatchMode.WRITE

    async def handle(self, request: Request) -> Response:
        """Serve ``request`` through the flow chosen by :meth:`classify`."""
        if self.classify(request.method) is DispatchMode.READ:
            document = await self._uc.execute()
            return self._presenter(document, request)
        return await self._forwarder.forward(request)
