"""Mock settings via pydantic-settings.

# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#  DEVELOPER QUICK-START  — Which env vars matter?
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
#
#  APP_ENV (or NODE_ENV) decides whether mocking turns on by itself:
#
#    development → mock_openai_response() activates without force=True.
#    anything else (test, staging, production)
#                → only activates with force=True.
#
# ─── Engine Defaults ──────────────────────────────────────────────────────────
#
#   Setting                     Env Var                          Default
#   ───────                     ───────                          ───────
#   Emulated origin             OPENAI_MOCK_BASE_URL             https://api.openai.com
#   Error injection rate        OPENAI_MOCK_ERROR_RATE           0.05
#   Stream pacing (ms)          OPENAI_MOCK_STREAM_INTERVAL_MS   50
#   Stream safety cap (chunks)  OPENAI_MOCK_STREAM_MAX_CHUNKS    500
#
#   Per-session switches (errors, latency, logging, seed, fixed responses)
#   are passed as MockOptions to mock_openai_response(), not read from env.
#
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed configuration loaded from environment variables.

    Called by: session.py, environment.py (via ``get_settings()``).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ─── Execution Mode ───────────────────────────────────────────────────────
    # Accept NODE_ENV too so projects that already export it keep working.
    app_env: str = Field(
        default="development",
        validation_alias=AliasChoices("APP_ENV", "NODE_ENV"),
    )
    log_level: str = "INFO"

    # ─── Emulated API ─────────────────────────────────────────────────────────
    openai_base_url: str = Field(
        default="https://api.openai.com",
        validation_alias=AliasChoices("OPENAI_MOCK_BASE_URL"),
    )
    mock_error_rate: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        validation_alias=AliasChoices("OPENAI_MOCK_ERROR_RATE"),
    )
    mock_stream_interval_ms: float = Field(
        default=50.0,
        ge=0.0,
        validation_alias=AliasChoices("OPENAI_MOCK_STREAM_INTERVAL_MS"),
    )
    mock_stream_max_chunks: int = Field(
        default=500,
        ge=1,
        validation_alias=AliasChoices("OPENAI_MOCK_STREAM_MAX_CHUNKS"),
    )

    # ─── Computed Properties ──────────────────────────────────────────────────

    @property
    def is_development(self) -> bool:
        """True when the execution mode lets mocking activate without force."""
        return self.app_env.strip().lower() == "development"

    @property
    def normalized_base_url(self) -> str:
        """Return OPENAI_MOCK_BASE_URL without a trailing slash."""
        return self.openai_base_url.rstrip("/")


class MockOptions(BaseModel):
    """Per-session switches for ``mock_openai_response()``.

    Accepts snake_case names or their camelCase spellings
    (``includeErrors``, ``logRequests``, ``useFixedResponses``).
    Fields left as ``None`` fall back to ``Settings`` when the session starts.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    include_errors: bool = False
    latency: float = Field(default=0, ge=0)  # milliseconds
    log_requests: bool = False
    seed: int | str | None = None
    use_fixed_responses: bool = False

    error_rate: float | None = Field(default=None, ge=0.0, le=1.0)
    base_url: str | None = None
    stream_interval: float | None = Field(default=None, ge=0)  # milliseconds
    max_stream_chunks: int | None = Field(default=None, ge=1)

    def resolved(self, settings: Settings) -> MockOptions:
        """Return a copy with every ``None`` default filled in from settings."""
        return self.model_copy(
            update={
                "error_rate": settings.mock_error_rate if self.error_rate is None else self.error_rate,
                "base_url": (self.base_url or settings.normalized_base_url).rstrip("/"),
                "stream_interval": (
                    settings.mock_stream_interval_ms if self.stream_interval is None else self.stream_interval
                ),
                "max_stream_chunks": self.max_stream_chunks or settings.mock_stream_max_chunks,
            }
        )


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
