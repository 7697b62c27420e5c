"""Tests for structlog configuration."""

from __future__ import annotations

from unittest.mock import patch

import structlog

from openai_api_mock.log import configure_logging, ensure_logging


def test_configure_logging_installs_chain():
    with patch("openai_api_mock.log.structlog.configure") as configure:
        configure_logging("DEBUG", json=True)

    kwargs = configure.call_args.kwargs
    assert isinstance(kwargs["processors"][-1], structlog.processors.JSONRenderer)
    assert kwargs["cache_logger_on_first_use"] is True


def test_console_renderer_by_default():
    with patch("openai_api_mock.log.structlog.configure") as configure:
        configure_logging()

    assert isinstance(configure.call_args.kwargs["processors"][-1], structlog.dev.ConsoleRenderer)


def test_ensure_logging_respects_existing_config():
    with (
        patch("openai_api_mock.log.structlog.is_configured", return_value=True),
        patch("openai_api_mock.log.configure_logging") as configure,
    ):
        ensure_logging("INFO")

    configure.assert_not_called()


def test_ensure_logging_configures_once():
    with (
        patch("openai_api_mock.log.structlog.is_configured", return_value=False),
        patch("openai_api_mock.log.configure_logging") as configure,
    ):
        ensure_logging("WARNING")

    configure.assert_called_once_with("WARNING")
