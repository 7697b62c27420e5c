"""Route registry — intercepts outbound httpx traffic to the emulated API.

The registry maps (method, path) on one origin to a handler. While started,
a respx router patches httpx's transport layer process-wide with a single
catch-all route whose side effect decides per request:

    matching origin + method + path → answered by the registered handler
    anything else                   → returned as-is, which respx treats
                                      as pass-through to the real network

Async clients are answered on their own event loop. Sync clients get the
same handlers run to completion on a private loop, so ``httpx.Client`` and
``openai.OpenAI`` are served as well as their async counterparts.

Usage:
    registry = RouteRegistry("https://api.openai.com")
    registry.register("POST", "/v1/chat/completions", handler)
    registry.start()
    ...
    registry.teardown()
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Coroutine
from concurrent.futures import ThreadPoolExecutor
from contextvars import ContextVar
from typing import Any, TypeVar

import httpx
import respx
import structlog

from openai_api_mock.core.protocols import (
    HandlerResult,
    InterceptedRequest,
    JSONResult,
    RouteHandler,
    RouteRegistration,
    StreamResult,
    error_result,
)

logger = logging.getLogger(__name__)
event_logger = structlog.get_logger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error in mock"
INTERCEPT_ROUTE_NAME = "openai-mock"

# (uri, body) -> (status, body), or an awaitable of that tuple
CustomHandler = Callable[[str, Any], Any]

T = TypeVar("T")

# True while respx resolves a request sent by a sync client.
_sync_resolution: ContextVar[bool] = ContextVar("openai_mock_sync_resolution", default=False)


class InterceptingRouter(respx.MockRouter):
    """MockRouter that tells side effects which kind of client is waiting."""

    def resolve(self, request: httpx.Request):
        marker = _sync_resolution.set(True)
        try:
            return super().resolve(request)
        finally:
            _sync_resolution.reset(marker)


def run_blocking(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` to completion from synchronous code.

    Uses a fresh event loop, or a worker thread with its own loop when the
    calling thread is already running one.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="openai-mock") as pool:
        return pool.submit(asyncio.run, coro).result()


def _origin(url: httpx.URL) -> tuple[str, str, int | None]:
    return (url.scheme, url.host, url.port)


def adapt_custom_handler(handler: CustomHandler) -> RouteHandler:
    """Wrap a ``(uri, body) -> (status, body)`` callable as a RouteHandler.

    The callable may return the tuple directly or an awaitable of it.
    """

    async def _handle(request: InterceptedRequest) -> HandlerResult:
        result = handler(request.url, request.body)
        if inspect.isawaitable(result):
            result = await result
        status, body = result
        return JSONResult(int(status), body)

    return _handle


class RouteRegistry:
    """Owns the route table for one mock session."""

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")
        self._origin = _origin(httpx.URL(self.base_url))
        self._routes: list[RouteRegistration] = []
        self._router: respx.MockRouter | None = None

    # ─── Registration ─────────────────────────────────────────────────────

    @property
    def routes(self) -> list[RouteRegistration]:
        return list(self._routes)

    @property
    def custom_routes(self) -> list[RouteRegistration]:
        return [route for route in self._routes if route.custom]

    @property
    def is_started(self) -> bool:
        return self._router is not None

    def register(
        self,
        method: str,
        path: str,
        handler: RouteHandler,
        *,
        persistent: bool = True,
        custom: bool = False,
        name: str | None = None,
    ) -> RouteRegistration:
        """Bind ``handler`` to ``method`` + ``path`` on the emulated origin.

        Args:
            method: HTTP method, any case.
            path: Exact request path, e.g. ``/v1/chat/completions``.
            handler: Callable receiving an InterceptedRequest.
            persistent: False makes the registration one-shot.
            custom: Marks user-added endpoints.
            name: Optional label used in logs.

        Raises:
            ValueError: If ``path`` is not an absolute path.
        """
        if not path.startswith("/"):
            raise ValueError(f"Route path must start with '/': {path!r}")

        registration = RouteRegistration(
            method=method.upper(),
            path=path,
            handler=handler,
            persistent=persistent,
            custom=custom,
            name=name or f"{method.upper()} {path}",
        )
        self._routes.append(registration)
        logger.debug("Registered route %s (persistent=%s)", registration.name, persistent)
        return registration

    def add_custom_endpoint(self, method: str, path: str, handler: CustomHandler) -> RouteRegistration:
        """Register a user-defined ``(uri, body) -> (status, body)`` handler."""
        return self.register(method, path, adapt_custom_handler(handler), custom=True)

    # ─── Dispatch ─────────────────────────────────────────────────────────

    def match(self, method: str, url: httpx.URL | str) -> RouteRegistration | None:
        """Find the registration for a request, or None if it is not ours.

        The most recently registered route wins when several share
        method + path. The query string is ignored.
        """
        url = httpx.URL(url)
        if _origin(url) != self._origin:
            return None
        for registration in reversed(self._routes):
            if registration.matches(method, url.path):
                return registration
        return None

    async def invoke(self, registration: RouteRegistration, request: InterceptedRequest) -> HandlerResult:
        """Run a handler, converting any exception into the mock's 500 envelope."""
        if not registration.persistent:
            self._routes = [route for route in self._routes if route is not registration]

        try:
            result = registration.handler(request)
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            event_logger.exception(
                "mock_handler_error",
                route=registration.name,
                error=str(exc),
            )
            return error_result(500, INTERNAL_ERROR_MESSAGE)

        if not isinstance(result, (JSONResult, StreamResult)):
            event_logger.error(
                "mock_handler_bad_result",
                route=registration.name,
                result_type=type(result).__name__,
            )
            return error_result(500, INTERNAL_ERROR_MESSAGE)
        return result

    async def dispatch(self, request: InterceptedRequest) -> HandlerResult | None:
        """Dispatch an intercepted request; None means it is not intercepted."""
        registration = self.match(request.method, request.url)
        if registration is None:
            return None
        return await self.invoke(registration, request)

    def _intercept(self, request: httpx.Request) -> httpx.Response | httpx.Request | Awaitable[httpx.Response]:
        # Returning the request itself tells respx to pass it through.
        registration = self.match(request.method, request.url)
        if registration is None:
            return request
        if _sync_resolution.get():
            return run_blocking(self._respond(registration, InterceptedRequest.from_httpx_sync(request)))
        return self._respond_async(registration, request)

    async def _respond_async(self, registration: RouteRegistration, request: httpx.Request) -> httpx.Response:
        return await self._respond(registration, await InterceptedRequest.from_httpx(request))

    async def _respond(self, registration: RouteRegistration, request: InterceptedRequest) -> httpx.Response:
        result = await self.invoke(registration, request)
        return result.to_response()

    # ─── Lifecycle ────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start intercepting. Calling it twice is a no-op."""
        if self._router is not None:
            return
        router = InterceptingRouter(assert_all_called=False, assert_all_mocked=True)
        router.route(name=INTERCEPT_ROUTE_NAME).mock(side_effect=self._intercept)
        router.start()
        self._router = router
        logger.info("Intercepting %s (%d routes)", self.base_url, len(self._routes))

    def teardown(self) -> None:
        """Stop intercepting and drop every registration, built-in and custom."""
        if self._router is not None:
            self._router.stop()
            self._router = None
        self._routes.clear()
        logger.info("Route registry for %s torn down", self.base_url)
