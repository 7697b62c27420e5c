"""Mock data package for openai-api-mock.

Provides the content, fake data and fixed templates every response is
built from.

Contents:
    samples.py   — Static content sample pools + content-type classifier
    fake_data.py — Schema-driven fake data for function/tool call arguments
    templates.py — Fixed response templates + deep-merge overrides
    factory.py   — Builders for OpenAI-shaped response payloads

Called by: core/handlers.py, core/streaming.py, session.py
"""
