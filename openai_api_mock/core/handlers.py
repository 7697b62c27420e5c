"""handlers.py — Built-in endpoints of the emulated API.

Implements request validation and response construction for:
    POST /v1/chat/completions   → chat completion, tool/function call, or SSE stream
    POST /v1/images/generations → generated image descriptor

Handlers receive everything they need through an explicit ``MockContext``
owned by the session, so independent sessions never share RNG, clock or
stream state.

Called by: core/registry.py (via the routes session.py registers)
Depends on: mock/factory.py, mock/templates.py, core/streaming.py
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial
from typing import Any

import structlog
from faker import Faker

from openai_api_mock.config import MockOptions
from openai_api_mock.core.protocols import (
    HandlerResult,
    InterceptedRequest,
    JSONResult,
    StreamResult,
    error_result,
)
from openai_api_mock.core.scheduling import Clock, Scheduler, unix_now
from openai_api_mock.core.streaming import ChatStream, StreamingEmulator
from openai_api_mock.mock import templates
from openai_api_mock.mock.factory import create_chat_response, create_image_response

logger = structlog.get_logger(__name__)

CHAT_COMPLETIONS_PATH = "/v1/chat/completions"
IMAGE_GENERATIONS_PATH = "/v1/images/generations"

MISSING_FIELDS_MESSAGE = "Invalid request. Missing required fields."
MISSING_PROMPT_MESSAGE = "Invalid request. Missing prompt."
RATE_LIMIT_MESSAGE = "Rate limit exceeded"
SAFETY_REJECTION_MESSAGE = "Your request was rejected as a result of our safety system."


@dataclass
class MockContext:
    """Session-owned state threaded into every built-in handler."""

    options: MockOptions  # resolved: no None defaults left
    rng: Faker
    clock: Clock
    scheduler: Scheduler
    streams: StreamingEmulator

    def now(self) -> int:
        return unix_now(self.clock)

    def inject_error(self) -> bool:
        """Draw once from the session RNG against the configured error rate."""
        if not self.options.include_errors:
            return False
        return self.rng.random.random() < (self.options.error_rate or 0.0)


# ─── Shared Steps ─────────────────────────────────────────────────────────────


async def _before_handling(event: str, request: InterceptedRequest, context: MockContext) -> None:
    """Log the request body (if enabled), then apply artificial latency."""
    if context.options.log_requests:
        logger.info(event, path=request.path, body=json.dumps(request.body, indent=2, default=str))
    if context.options.latency:
        await context.scheduler.sleep(context.options.latency / 1000)


def _is_valid_chat_request(body: Any) -> bool:
    if not isinstance(body, dict):
        return False
    messages = body.get("messages")
    return bool(body.get("model")) and isinstance(messages, list) and len(messages) > 0


# ─── Chat Completions ─────────────────────────────────────────────────────────


async def handle_chat_completions(request: InterceptedRequest, *, context: MockContext) -> HandlerResult:
    """Answer ``POST /v1/chat/completions``.

    Order of checks: validation → error injection → streaming → fixed
    templates → synthesized response.

    Args:
        request: The intercepted request; ``body`` is the decoded JSON.
        context: The owning session's context.

    Returns:
        A JSONResult (completion or error envelope) or a StreamResult when
        the request asked for ``stream: true``.
    """
    await _before_handling("chat_request", request, context)

    body = request.body
    if not _is_valid_chat_request(body):
        return error_result(400, MISSING_FIELDS_MESSAGE)

    if context.inject_error():
        return error_result(429, RATE_LIMIT_MESSAGE)

    if body.get("stream") is True:
        stream = ChatStream(
            context.streams,
            body["messages"],
            scheduler=context.scheduler,
            interval=(context.options.stream_interval or 0) / 1000,
        )
        return StreamResult(stream)

    if context.options.use_fixed_responses:
        if body.get("tools"):
            return JSONResult(200, templates.get_template(templates.TOOL_CALL))
        if body.get("functions"):
            return JSONResult(200, templates.get_template(templates.FUNCTION_CALL))
        return JSONResult(200, templates.get_template(templates.SIMPLE_CHAT))

    return JSONResult(200, create_chat_response(body, created=context.now(), rng=context.rng))


# ─── Image Generations ────────────────────────────────────────────────────────


async def handle_image_generations(request: InterceptedRequest, *, context: MockContext) -> HandlerResult:
    """Answer ``POST /v1/images/generations``."""
    await _before_handling("image_request", request, context)

    body = request.body
    if not isinstance(body, dict) or not body.get("prompt"):
        return error_result(400, MISSING_PROMPT_MESSAGE)

    if context.inject_error():
        return error_result(400, SAFETY_REJECTION_MESSAGE)

    if context.options.use_fixed_responses:
        return JSONResult(200, templates.get_template(templates.IMAGE_GENERATION))

    return JSONResult(200, create_image_response(created=context.now(), rng=context.rng))


# ─── Route Table ──────────────────────────────────────────────────────────────

BUILTIN_ROUTES: tuple[tuple[str, str, str, Callable[..., Any]], ...] = (
    ("chat_completions", "POST", CHAT_COMPLETIONS_PATH, handle_chat_completions),
    ("image_generations", "POST", IMAGE_GENERATIONS_PATH, handle_image_generations),
)


def bind(handler: Callable[..., Any], context: MockContext) -> Callable[[InterceptedRequest], Any]:
    """Close a built-in handler over its session context."""
    return partial(handler, context=context)
