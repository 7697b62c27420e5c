"""pytest plugin exposing an ``openai_mock`` fixture.

Registered through the ``pytest11`` entry point, so installing the package
is enough:

    @pytest.mark.anyio
    async def test_reply(openai_mock):
        client = openai.AsyncOpenAI(api_key="test-key")
        reply = await client.chat.completions.create(...)

The fixture is a forced session seeded from ``--openai-mock-seed`` (default
1234) that never sleeps, and is stopped after the test. Mark a test with
``@pytest.mark.openai_mock(use_fixed_responses=True)`` to pass extra options.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from openai_api_mock.core.scheduling import ImmediateScheduler
from openai_api_mock.session import MockSession, mock_openai_response

DEFAULT_SEED = 1234


def parse_seed(raw: str) -> int | str:
    """Integers (negative included) become ints; anything else stays a string."""
    try:
        return int(raw)
    except ValueError:
        return raw


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("openai-mock")
    group.addoption(
        "--openai-mock-seed",
        action="store",
        default=str(DEFAULT_SEED),
        help="Seed for the openai_mock fixture (default: %(default)s).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "openai_mock(**options): options passed to the openai_mock fixture's session",
    )


@pytest.fixture
def openai_mock(request: pytest.FixtureRequest) -> Iterator[MockSession]:
    """Active OpenAI mock session for one test."""
    raw_seed = request.config.getoption("--openai-mock-seed")
    options: dict[str, object] = {"seed": parse_seed(raw_seed)}

    marker = request.node.get_closest_marker("openai_mock")
    if marker is not None:
        options.update(marker.kwargs)

    session = mock_openai_response(True, options, scheduler=ImmediateScheduler())
    try:
        yield session
    finally:
        session.stop_mocking()
