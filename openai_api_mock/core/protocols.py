"""Handler contracts — the data passed between the interceptor and handlers.

Every route handler, built-in or custom, receives an ``InterceptedRequest``
and answers with a ``HandlerResult``: either a ``JSONResult`` (status plus a
body to serialize) or a ``StreamResult`` (a live SSE byte stream). The
registry turns either variant into an ``httpx.Response``.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Any, Protocol, Union, runtime_checkable

import httpx

# ─── Data Structures ──────────────────────────────────────────────────────────


@dataclass(frozen=True)
class InterceptedRequest:
    """A request captured on its way to the emulated API."""

    method: str  # upper-case
    url: str     # full URI as sent by the client
    path: str
    body: Any = None  # decoded JSON, raw text, or None when empty
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    async def from_httpx(cls, request: httpx.Request) -> InterceptedRequest:
        """Build from a request sent by an async client."""
        return cls.from_raw(request, await request.aread())

    @classmethod
    def from_httpx_sync(cls, request: httpx.Request) -> InterceptedRequest:
        """Build from a request sent by a sync client."""
        return cls.from_raw(request, request.read())

    @classmethod
    def from_raw(cls, request: httpx.Request, raw: bytes) -> InterceptedRequest:
        """Build from ``request`` and its body bytes, decoding JSON when present."""
        body: Any = None
        if raw:
            text = raw.decode("utf-8", errors="replace")
            try:
                body = json.loads(text)
            except json.JSONDecodeError:
                body = text
        return cls(
            method=request.method.upper(),
            url=str(request.url),
            path=request.url.path,
            body=body,
            headers=dict(request.headers),
        )


@dataclass(frozen=True)
class JSONResult:
    """A complete response: status code plus a body."""

    status: int
    body: Any  # JSON-serializable value, or str / bytes sent as-is

    def to_response(self) -> httpx.Response:
        if isinstance(self.body, bytes):
            return httpx.Response(self.status, content=self.body)
        if isinstance(self.body, str):
            return httpx.Response(self.status, text=self.body)
        return httpx.Response(self.status, json=self.body)


@dataclass(frozen=True)
class StreamResult:
    """A live Server-Sent-Events response."""

    stream: httpx.AsyncByteStream | httpx.SyncByteStream
    status: int = 200

    def to_response(self) -> httpx.Response:
        return httpx.Response(
            self.status,
            headers={"content-type": "text/event-stream", "cache-control": "no-cache"},
            stream=self.stream,
        )


HandlerResult = Union[JSONResult, StreamResult]


def error_result(status: int, message: str) -> JSONResult:
    """Wrap ``message`` in the API's ``{"error": {"message": ...}}`` envelope."""
    return JSONResult(status, {"error": {"message": message}})


# ─── Protocols ────────────────────────────────────────────────────────────────


@runtime_checkable
class RouteHandler(Protocol):
    """Anything the registry can dispatch an intercepted request to."""

    def __call__(self, request: InterceptedRequest) -> HandlerResult | Awaitable[HandlerResult]:
        ...


@dataclass(eq=False)
class RouteRegistration:
    """One method+path binding owned by a RouteRegistry."""

    method: str
    path: str
    handler: RouteHandler
    persistent: bool = True
    custom: bool = False
    name: str | None = None

    def matches(self, method: str, path: str) -> bool:
        return self.method == method.upper() and self.path == path
