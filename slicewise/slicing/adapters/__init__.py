"""In-process probe implementations."""

from .memory import InMemoryIndex

__all__ = ["InMemoryIndex"]
