"""Logging utilities for slicewise."""

from .logging import LogManager  # noqa: F401

__all__ = [
    "LogManager",
]
