"""templates.py — Fixed response templates for deterministic testing.

Canonical response shapes (simple chat, function call, tool call, image
generation) that the mock returns when ``use_fixed_responses`` is on, and
that test code can customize through ``create_response_template()``.

The stored templates are never handed out directly. Callers always receive
a fresh copy, with any overrides deep-merged in.

Called by: core/handlers.py, session.py
Depends on: Nothing
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

SIMPLE_CHAT = "SIMPLE_CHAT"
FUNCTION_CALL = "FUNCTION_CALL"
TOOL_CALL = "TOOL_CALL"
IMAGE_GENERATION = "IMAGE_GENERATION"


class UnknownTemplateError(ValueError):
    """Raised when a template name is not one of ``RESPONSE_TEMPLATES``."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown template type: {name}")


# ─── Templates ────────────────────────────────────────────────────────────────

_FIXED_CREATED = 1640995200
_FIXED_ID = "chatcmpl-test123456789"
_FIXED_ARGUMENTS = '{"param1": "test_value", "param2": 42}'

_TEMPLATES: dict[str, dict[str, Any]] = {
    SIMPLE_CHAT: {
        "choices": [
            {
                "finish_reason": "stop",
                "index": 0,
                "message": {
                    "content": "This is a consistent test response.",
                    "role": "assistant",
                },
                "logprobs": None,
            },
        ],
        "created": _FIXED_CREATED,
        "id": _FIXED_ID,
        "model": "gpt-3.5-mock",
        "object": "chat.completion",
        "usage": {
            "completion_tokens": 10,
            "prompt_tokens": 20,
            "total_tokens": 30,
        },
    },
    FUNCTION_CALL: {
        "id": _FIXED_ID,
        "object": "chat.completion",
        "created": _FIXED_CREATED,
        "model": "gpt-3.5-mock",
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": None,
                    "function_call": {
                        "name": "test_function",
                        "arguments": _FIXED_ARGUMENTS,
                    },
                },
                "finish_reason": "function_call",
            },
        ],
        "usage": {
            "prompt_tokens": 81,
            "completion_tokens": 19,
            "total_tokens": 100,
        },
    },
    TOOL_CALL: {
        "id": _FIXED_ID,
        "object": "chat.completion",
        "created": _FIXED_CREATED,
        "model": "gpt-3.5-mock",
        "choices": [
            {
                "index": 0,
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [
                        {
                            "id": "call_test123456789",
                            "type": "function",
                            "function": {
                                "name": "test_function",
                                "arguments": _FIXED_ARGUMENTS,
                            },
                        },
                    ],
                },
                "finish_reason": "tool_calls",
            },
        ],
        "usage": {
            "prompt_tokens": 81,
            "completion_tokens": 19,
            "total_tokens": 100,
        },
    },
    IMAGE_GENERATION: {
        "created": _FIXED_CREATED,
        "data": [
            {"url": "https://example.com/test-image.png"},
        ],
    },
}

# Read-only view; the nested graphs are only ever copied out.
RESPONSE_TEMPLATES: Mapping[str, Mapping[str, Any]] = MappingProxyType(_TEMPLATES)


# ─── Merge ────────────────────────────────────────────────────────────────────


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new dict with ``overrides`` recursively merged over ``base``.

    Nested mappings merge key-by-key. Lists and scalars replace the base
    value wholesale. Neither input is mutated, and the result shares no
    mutable state with them.
    """
    result = copy.deepcopy(dict(base))
    for key, value in overrides.items():
        if isinstance(value, Mapping):
            current = result.get(key)
            result[key] = deep_merge(current if isinstance(current, Mapping) else {}, value)
        else:
            result[key] = copy.deepcopy(value)
    return result


# ─── Public API ───────────────────────────────────────────────────────────────


def get_template(name: str) -> dict[str, Any]:
    """Return a deep copy of the named template.

    Raises:
        UnknownTemplateError: If ``name`` is not a known template.
    """
    template = RESPONSE_TEMPLATES.get(name)
    if template is None:
        raise UnknownTemplateError(name)
    return copy.deepcopy(dict(template))


def create_response_template(name: str, overrides: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Build a response from the named template with ``overrides`` applied.

    Args:
        name: One of ``SIMPLE_CHAT``, ``FUNCTION_CALL``, ``TOOL_CALL``,
            ``IMAGE_GENERATION``.
        overrides: Values to deep-merge over the template.

    Returns:
        A new response dict; the stored template is left untouched.

    Raises:
        UnknownTemplateError: If ``name`` is not a known template.
    """
    template = RESPONSE_TEMPLATES.get(name)
    if template is None:
        raise UnknownTemplateError(name)
    return deep_merge(template, overrides or {})


def get_response_templates() -> dict[str, dict[str, Any]]:
    """Return deep copies of every template, keyed by name."""
    return {name: copy.deepcopy(dict(template)) for name, template in RESPONSE_TEMPLATES.items()}
