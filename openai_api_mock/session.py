"""session.py — Entry point that turns OpenAI API mocking on and off.

``mock_openai_response(force, options)`` builds a ``MockSession``, decides
whether it should be active (see environment.py), registers the built-in
endpoints and starts intercepting. The returned session is the control
handle: seed management, template access, custom endpoints and teardown.

Only one session intercepts at a time. Activating a new one stops the
previous session first, so its routes and live streams never leak into the
next test.

Usage:
    from openai_api_mock import mock_openai_response

    mock = mock_openai_response(force=True, options={"seed": 42})
    ...  # openai.AsyncOpenAI() calls are answered locally
    mock.stop_mocking()

Called by: test suites, openai_api_mock.pytest_plugin
Depends on: config.py, environment.py, core/*, mock/*
"""

from __future__ import annotations

import logging
import time
from collections.abc import Mapping
from typing import Any

from faker import Faker

from openai_api_mock.config import MockOptions, Settings, get_settings
from openai_api_mock.core.handlers import BUILTIN_ROUTES, MockContext, bind
from openai_api_mock.core.protocols import RouteRegistration
from openai_api_mock.core.registry import CustomHandler, RouteRegistry
from openai_api_mock.core.scheduling import AsyncioScheduler, Clock, Scheduler
from openai_api_mock.core.streaming import StreamingEmulator
from openai_api_mock.environment import EnvironmentInfo, get_environment_info, should_activate, to_dict
from openai_api_mock.log import ensure_logging
from openai_api_mock.mock import templates

logger = logging.getLogger(__name__)

_active_session: MockSession | None = None


class MockSession:
    """Control handle for one mocking session.

    Owns the route registry, the streaming emulator and the RNG. Nothing
    here is process-global except the pointer to the active session.
    """

    def __init__(
        self,
        options: MockOptions,
        settings: Settings,
        *,
        clock: Clock | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self.options = options.resolved(settings)
        self.settings = settings
        self.rng = Faker()
        self.rng.seed_instance(self.options.seed)

        clock = clock or time.time
        self.streams = StreamingEmulator(self.rng, clock, max_chunks=self.options.max_stream_chunks)
        self.context = MockContext(
            options=self.options,
            rng=self.rng,
            clock=clock,
            scheduler=scheduler or AsyncioScheduler(),
            streams=self.streams,
        )
        self.registry = RouteRegistry(self.options.base_url)
        self._active = False
        self.environment: EnvironmentInfo = get_environment_info(settings)

    # ─── State ────────────────────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def registered_routes(self) -> list[RouteRegistration]:
        return self.registry.routes

    @property
    def custom_routes(self) -> list[RouteRegistration]:
        return self.registry.custom_routes

    def __repr__(self) -> str:
        return (
            f"MockSession(active={self._active}, base_url={self.options.base_url!r}, "
            f"routes={len(self.registry.routes)})"
        )

    # ─── Lifecycle ────────────────────────────────────────────────────────

    def activate(self) -> MockSession:
        """Register the built-in endpoints and start intercepting."""
        if self._active:
            return self
        for name, method, path, handler in BUILTIN_ROUTES:
            self.registry.register(method, path, bind(handler, self.context), name=name)
        self.registry.start()
        self._active = True
        return self

    def stop_mocking(self) -> None:
        """Remove every route, cancel live streams and stop intercepting."""
        global _active_session

        self.streams.cancel_all()
        self.registry.teardown()
        if self._active:
            logger.info("OpenAI API mocking stopped")
        self._active = False
        if _active_session is self:
            _active_session = None

    def __enter__(self) -> MockSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop_mocking()

    # ─── Determinism ──────────────────────────────────────────────────────

    def set_seed(self, seed: int | str) -> None:
        """Reseed the session RNG; subsequent responses replay from this seed."""
        self.rng.seed_instance(seed)
        if self.options.log_requests:
            logger.info("Seed updated to: %s", seed)

    def reset_seed(self) -> None:
        """Drop deterministic behavior by reseeding from system entropy."""
        self.rng.seed_instance(None)
        if self.options.log_requests:
            logger.info("Seed reset - using random values")

    # ─── Templates ────────────────────────────────────────────────────────

    def get_response_templates(self) -> dict[str, dict[str, Any]]:
        """Return copies of every fixed response template."""
        return templates.get_response_templates()

    def create_response_template(
        self,
        template_type: str,
        overrides: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Return the named template with ``overrides`` deep-merged in.

        Raises:
            UnknownTemplateError: If ``template_type`` is not a known template.
        """
        return templates.create_response_template(template_type, overrides)

    # ─── Extension ────────────────────────────────────────────────────────

    def add_custom_endpoint(self, method: str, path: str, handler: CustomHandler) -> RouteRegistration:
        """Serve ``method`` + ``path`` on the emulated origin with ``handler``.

        ``handler(uri, body)`` returns ``(status, body)`` or an awaitable of
        it. The endpoint stays registered until the session is stopped.
        """
        registration = self.registry.add_custom_endpoint(method, path, handler)
        if self.options.log_requests:
            logger.info("Custom endpoint added: %s %s", registration.method, path)
        return registration


def _coerce_options(options: MockOptions | Mapping[str, Any] | None, overrides: dict[str, Any]) -> MockOptions:
    if isinstance(options, MockOptions):
        if not overrides:
            return options
        data = options.model_dump()
    else:
        data = dict(options or {})
    data.update(overrides)
    return MockOptions.model_validate(data)


def mock_openai_response(
    force: bool = False,
    options: MockOptions | Mapping[str, Any] | None = None,
    *,
    clock: Clock | None = None,
    scheduler: Scheduler | None = None,
    settings: Settings | None = None,
    **overrides: Any,
) -> MockSession:
    """Mock the OpenAI API for the current process.

    Args:
        force: Activate regardless of APP_ENV / NODE_ENV.
        options: ``MockOptions`` or a mapping (snake_case or camelCase keys).
        clock: Time source for ``created`` fields (defaults to ``time.time``).
        scheduler: Delay provider for latency and stream pacing.
        settings: Settings override (defaults to ``get_settings()``).
        **overrides: Individual option values, e.g. ``seed=42``.

    Returns:
        The session handle. When the activation rule does not hold it is
        inactive (``is_active`` False) with no routes installed.

    Raises:
        pydantic.ValidationError: If the options are invalid.
    """
    global _active_session

    settings = settings or get_settings()
    resolved = _coerce_options(options, overrides)
    session = MockSession(resolved, settings, clock=clock, scheduler=scheduler)

    if resolved.log_requests:
        ensure_logging(settings.log_level)
        if resolved.seed is not None:
            logger.info("Using seed for consistent outputs: %s", resolved.seed)

    if not should_activate(force, settings):
        return session

    if _active_session is not None:
        logger.info("Replacing the active mock session")
        _active_session.stop_mocking()

    session.activate()
    _active_session = session
    logger.info(
        "OpenAI API mocking active for %s (%s)",
        session.options.base_url,
        to_dict(session.environment),
    )
    return session


def get_active_session() -> MockSession | None:
    """Return the session currently intercepting, if any."""
    return _active_session


def stop_mocking() -> None:
    """Stop whichever session is active. Safe to call when none is."""
    if _active_session is not None:
        _active_session.stop_mocking()
