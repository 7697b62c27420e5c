"""Global pytest fixtures."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Iterator
from typing import Any

import httpx
import pytest
from faker import Faker

from openai_api_mock.config import Settings
from openai_api_mock.core.scheduling import ImmediateScheduler
from openai_api_mock.session import MockSession, mock_openai_response, stop_mocking

OPENAI_ORIGIN = "https://api.openai.com"
FIXED_NOW = 1_700_000_000.0


def fixed_clock() -> float:
    return FIXED_NOW


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _no_active_session() -> Iterator[None]:
    """Make sure no test leaves interception running for the next one."""
    yield
    stop_mocking()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the developer's .env and environment."""
    return Settings(_env_file=None, app_env="test")


@pytest.fixture
def scheduler() -> ImmediateScheduler:
    return ImmediateScheduler()


@pytest.fixture
def rng() -> Faker:
    """A seeded Faker instance for direct unit tests."""
    fake = Faker()
    fake.seed_instance(4321)
    return fake


@pytest.fixture
def start_mock(settings: Settings, scheduler: ImmediateScheduler) -> Iterator[Callable[..., MockSession]]:
    """Factory that starts forced sessions with a fixed clock and no real sleeps."""
    sessions: list[MockSession] = []

    def _start(options: dict[str, Any] | None = None, *, force: bool = True, **overrides: Any) -> MockSession:
        session = mock_openai_response(
            force,
            options,
            clock=fixed_clock,
            scheduler=scheduler,
            settings=settings,
            **overrides,
        )
        sessions.append(session)
        return session

    yield _start
    for session in sessions:
        session.stop_mocking()


@pytest.fixture
async def client() -> AsyncIterator[httpx.AsyncClient]:
    """Plain httpx client pointed at the emulated origin."""
    async with httpx.AsyncClient(base_url=OPENAI_ORIGIN) as ac:
        yield ac
