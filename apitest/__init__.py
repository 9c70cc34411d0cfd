"""Declarative HTTP API test runner."""

__version__ = "0.1.0"
