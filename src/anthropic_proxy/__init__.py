"""Resilient adapter between an internal completion contract and the Anthropic Messages API."""

__version__ = "0.1.0"
