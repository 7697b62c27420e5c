"""Interception engine: route registry, handlers, streaming and scheduling."""
