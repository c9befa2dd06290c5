"""Identifier alphabets, key paths and cursor partitioning."""

from __future__ import annotations

import string
from enum import Enum
from typing import Sequence

from .spec import SlicerConfigurationError

HEXADECIMAL: tuple[str, ...] = tuple("0123456789abcdef")
BASE64URL: tuple[str, ...] = tuple(
    string.ascii_uppercase + string.ascii_lowercase + string.digits + "-_"
)


class KeyType(str, Enum):
    HEXADECIMAL = "hexadecimal"
    BASE64URL = "base64url"

    @property
    def alphabet(self) -> tuple[str, ...]:
        if self is KeyType.BASE64URL:
            return BASE64URL
        return HEXADECIMAL


def key_expression(path: str, type_name: str | None = None) -> str:
    """Render a key path as the prefix filter, e.g. ``events-#a0*``."""

    if type_name:
        return f"{type_name}#{path}*"
    return f"{path}*"


def decode_key(key: str, type_name: str | None = None) -> str:
    """Inverse of :func:`key_expression`."""

    path = key
    if type_name and path.startswith(f"{type_name}#"):
        path = path[len(type_name) + 1:]
    elif "#" in path:
        path = path.split("#", 1)[1]
    return path.rstrip("*")


def top_level_symbols(key_type: KeyType, key_range: Sequence[str] | None) -> tuple[str, ...]:
    if key_range:
        return tuple(key_range)
    return key_type.alphabet


def validate_cursor_count(
    key_type: KeyType, key_range: Sequence[str] | None, cursors: int
) -> None:
    if key_range:
        if cursors > len(key_range):
            raise SlicerConfigurationError(
                "The number of slicers specified on the job cannot be more the length of key_range"
            )
        return
    limit = len(key_type.alphabet)
    if cursors > limit:
        raise SlicerConfigurationError(
            f"The number of slicers specified on the job cannot be more than {limit}"
        )


def partition_symbols(symbols: Sequence[str], cursors: int) -> list[tuple[str, ...]]:
    """Split ``symbols`` into ``cursors`` contiguous, near-equal runs."""

    if cursors <= 0:
        raise ValueError("cursors must be positive")
    if cursors > len(symbols):
        raise SlicerConfigurationError(
            f"cannot divide {len(symbols)} key symbols across {cursors} slicers"
        )
    base, extra = divmod(len(symbols), cursors)
    parts: list[tuple[str, ...]] = []
    offset = 0
    for index in range(cursors):
        width = base + (1 if index < extra else 0)
        parts.append(tuple(symbols[offset:offset + width]))
        offset += width
    return parts
