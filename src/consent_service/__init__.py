"""Contextual consent service: consent-scoped token authentication."""

__version__ = "0.1.0"
