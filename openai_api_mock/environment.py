"""environment.py — Execution mode detection for the mock engine.

Reads APP_ENV (or NODE_ENV) from settings and decides whether
``mock_openai_response()`` may activate without ``force=True``.

Mode overview:
    development → mocking activates on its own.
    test        → mocking only with force=True (test suites pass it).
    staging     → mocking only with force=True.
    production  → mocking only with force=True.

Called by: session.py
Depends on: config.py (Settings)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from openai_api_mock.config import Settings, get_settings

logger = logging.getLogger(__name__)

# ─── Known Modes ──────────────────────────────────────────────────────────────

ENV_DEVELOPMENT = "development"
ENV_TEST = "test"
ENV_STAGING = "staging"
ENV_PRODUCTION = "production"

VALID_ENVS = frozenset({ENV_DEVELOPMENT, ENV_TEST, ENV_STAGING, ENV_PRODUCTION})


# ─── Environment Info ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class EnvironmentInfo:
    """Immutable snapshot of the mock engine's ambient configuration."""

    app_env: str            # "development" | "test" | "staging" | "production"
    base_url: str           # Origin whose routes are intercepted
    version: str
    mocking_default: bool   # True when mocking activates without force


def get_environment_info(settings: Settings | None = None) -> EnvironmentInfo:
    """Build an EnvironmentInfo snapshot from current settings."""
    from openai_api_mock import __version__

    settings = settings or get_settings()
    return EnvironmentInfo(
        app_env=settings.app_env,
        base_url=settings.normalized_base_url,
        version=__version__,
        mocking_default=settings.is_development,
    )


def should_activate(force: bool, settings: Settings | None = None) -> bool:
    """Apply the activation rule.

    Mocking is active when ``force`` is true, or when the execution mode is
    ``development``. Unknown modes are treated like production and logged.

    Args:
        force: Caller asked for mocking regardless of mode.
        settings: Settings to read the mode from (defaults to ``get_settings()``).

    Returns:
        True when a session should install its routes.
    """
    settings = settings or get_settings()
    env = settings.app_env.strip().lower()

    if env not in VALID_ENVS:
        logger.warning(
            "Unrecognized APP_ENV='%s' (expected one of %s); mocking requires force=True.",
            settings.app_env,
            sorted(VALID_ENVS),
        )

    if force:
        return True
    if env == ENV_DEVELOPMENT:
        return True

    logger.debug("Mocking skipped: APP_ENV=%s and force=False", settings.app_env)
    return False


def to_dict(info: EnvironmentInfo) -> dict[str, Any]:
    """Serialize EnvironmentInfo to a JSON-safe dict."""
    return {
        "app_env": info.app_env,
        "base_url": info.base_url,
        "version": info.version,
        "mocking_default": info.mocking_default,
    }
