"""factory.py — Builders for OpenAI-shaped response payloads.

Generates fresh chat completion, function/tool call, streaming chunk and
image generation objects per call. Unlike templates.py, which holds fixed
shapes, everything here is drawn from the session RNG and clock, so output
is reproducible for a given seed.

Called by: core/handlers.py, core/streaming.py
Depends on: samples.py, fake_data.py
"""

from __future__ import annotations

import string
from collections.abc import Mapping, Sequence
from typing import Any

from faker import Faker

from openai_api_mock.mock.fake_data import generate_arguments
from openai_api_mock.mock.samples import detect_content_type, get_content_sample, message_text

MOCK_MODEL = "gpt-3.5-mock"
ID_LENGTH = 30

_ALPHANUMERIC = string.ascii_letters + string.digits


# ─── Helpers ──────────────────────────────────────────────────────────────────


def random_id(prefix: str, rng: Faker) -> str:
    """Return ``prefix`` followed by 30 random alphanumerics."""
    return prefix + rng.lexify("?" * ID_LENGTH, letters=_ALPHANUMERIC)


def count_tokens(text: str) -> int:
    """Approximate token count: one token per four characters."""
    return len(text) // 4


def prompt_text(messages: Sequence[Any] | None) -> str:
    return "\n".join(message_text(message) for message in messages or ())


# ─── Chat Completions ─────────────────────────────────────────────────────────


def create_default_response(messages: Sequence[Any], *, created: int, rng: Faker) -> dict[str, Any]:
    """Build a plain chat completion whose content matches the requested format.

    Args:
        messages: The request's messages; the latest one drives classification.
        created: Unix timestamp for the ``created`` field.
        rng: The session's Faker instance.

    Returns:
        Dict shaped like a ``chat.completion`` object. The message carries an
        extra ``contentType`` tag naming the sample family used.
    """
    content_type = detect_content_type(messages)
    content = get_content_sample(content_type, rng)
    prompt_tokens = count_tokens(prompt_text(messages))
    completion_tokens = count_tokens(content)

    return {
        "choices": [
            {
                "finish_reason": "stop",
                "index": 0,
                "message": {
                    "content": content,
                    "role": "assistant",
                    "contentType": content_type,
                },
                "logprobs": None,
            },
        ],
        "created": created,
        "id": random_id("chatcmpl-", rng),
        "model": MOCK_MODEL,
        "object": "chat.completion",
        "usage": {
            "completion_tokens": completion_tokens,
            "prompt_tokens": prompt_tokens,
            "total_tokens": completion_tokens + prompt_tokens,
        },
    }


def _select_function(declared: Sequence[Mapping[str, Any]], wanted: str | None) -> Mapping[str, Any]:
    """Pick the declared function named ``wanted``, else the first one."""
    if wanted:
        for function in declared:
            if function.get("name") == wanted:
                return function
    return declared[0]


def _forced_name(choice: Any) -> str | None:
    """Read a function name out of ``tool_choice`` / ``function_call``."""
    if not isinstance(choice, Mapping):
        return None
    nested = choice.get("function")
    if isinstance(nested, Mapping):
        return nested.get("name")
    return choice.get("name")


def create_tool_call_object(body: Mapping[str, Any], rng: Faker) -> dict[str, Any]:
    functions = [tool.get("function") or {} for tool in body["tools"]]
    function = _select_function(functions, _forced_name(body.get("tool_choice")))
    return {
        "id": random_id("call_", rng),
        "type": "function",
        "function": {
            "name": str(function.get("name", "")),
            "arguments": generate_arguments(function.get("parameters"), rng),
        },
    }


def create_function_call_object(body: Mapping[str, Any], rng: Faker) -> dict[str, Any]:
    function = _select_function(body["functions"], _forced_name(body.get("function_call")))
    return {
        "name": str(function.get("name", "")),
        "arguments": generate_arguments(function.get("parameters"), rng),
    }


def create_function_calling_response(body: Mapping[str, Any], *, created: int, rng: Faker) -> dict[str, Any]:
    """Build a completion whose message calls one of the declared tools/functions.

    ``tools`` produces a ``tool_calls`` list; legacy ``functions`` produces a
    single ``function_call``. The arguments are synthesized from the chosen
    function's parameter schema.
    """
    is_tool = bool(body.get("tools"))
    call_field = "tool_calls" if is_tool else "function_call"
    call = [create_tool_call_object(body, rng)] if is_tool else create_function_call_object(body, rng)

    return {
        "id": random_id("chatcmpl-", rng),
        "object": "chat.completion",
        "created": created,
        "model": MOCK_MODEL,
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": None,
                    call_field: call,
                },
                "finish_reason": call_field,
            },
        ],
        "usage": {
            "prompt_tokens": 81,
            "completion_tokens": 19,
            "total_tokens": 100,
        },
    }


def create_chat_response(body: Mapping[str, Any], *, created: int, rng: Faker) -> dict[str, Any]:
    """Dispatch to the function-calling or plain completion builder."""
    if body.get("functions") or body.get("tools"):
        return create_function_calling_response(body, created=created, rng=rng)
    return create_default_response(body["messages"], created=created, rng=rng)


# ─── Streaming ────────────────────────────────────────────────────────────────


def create_stream_chunk(
    stream_id: str,
    *,
    content: str,
    created: int,
    finished: bool,
    content_type: str | None = None,
    first: bool = False,
) -> dict[str, Any]:
    """Build one ``chat.completion.chunk`` event payload."""
    delta: dict[str, Any] = {}
    if first:
        delta["role"] = "assistant"
    delta["content"] = content
    if content_type is not None:
        delta["contentType"] = content_type

    return {
        "id": stream_id,
        "object": "chat.completion.chunk",
        "created": created,
        "model": MOCK_MODEL,
        "system_fingerprint": None,
        "choices": [
            {
                "index": 0,
                "delta": delta,
                "logprobs": None,
                "finish_reason": "stop" if finished else None,
            },
        ],
    }


# ─── Images ───────────────────────────────────────────────────────────────────


def create_image_response(*, created: int, rng: Faker) -> dict[str, Any]:
    """Build an image generation result holding one generated image URL."""
    return {
        "created": created,
        "data": [
            {"url": rng.image_url()},
        ],
    }
