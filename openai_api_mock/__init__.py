"""openai-api-mock — Local emulation of the OpenAI HTTP API.

Intercepts httpx traffic to the OpenAI origin and answers chat completion
(plain, tool-calling and streamed) and image generation requests with
synthesized, seedable responses. Everything else passes through.

Usage:
    from openai_api_mock import mock_openai_response

    with mock_openai_response(force=True, seed=1234) as mock:
        client = openai.AsyncOpenAI(api_key="test-key")
        ...
"""

from __future__ import annotations

__version__ = "0.1.0"

from openai_api_mock.config import MockOptions, Settings, get_settings  # noqa: E402
from openai_api_mock.mock.templates import RESPONSE_TEMPLATES, UnknownTemplateError  # noqa: E402
from openai_api_mock.session import (  # noqa: E402
    MockSession,
    get_active_session,
    mock_openai_response,
    stop_mocking,
)

__all__ = [
    "RESPONSE_TEMPLATES",
    "MockOptions",
    "MockSession",
    "Settings",
    "UnknownTemplateError",
    "__version__",
    "get_active_session",
    "get_settings",
    "mock_openai_response",
    "stop_mocking",
]
