"""Identifier-space slicer: prefix ranges refined by live counts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Mapping, Sequence

from .events import NullSlicerEvents, SlicerEvents, notify
from .keys import decode_key, key_expression, top_level_symbols
from .retry import ProbeRetrier
from .spec import CountRequest, KeySlice, SliceProbe, SlicerConfigurationError

if TYPE_CHECKING:
    from .config import SlicerConfig

logger = logging.getLogger(__name__)


@dataclass
class _Level:
    """Siblings still to visit under ``prefix``."""

    prefix: str
    symbols: tuple[str, ...]
    index: int = 0


class KeySpaceSlicer:
    """
    Depth-first walk over key prefixes.

    Each node ``prefix`` stands for the filter ``prefix*``. Empty prefixes are
    skipped, prefixes within ``size`` are emitted, and oversized prefixes are
    replaced by their children. The walk keeps an explicit stack of levels,
    so depth is bounded by memory rather than the interpreter's call stack.
    """

    def __init__(
        self,
        probe: SliceProbe,
        config: "SlicerConfig",
        *,
        cursor_id: int = 0,
        symbols: Sequence[str] | None = None,
        events: SlicerEvents | None = None,
        retrier: ProbeRetrier | None = None,
        last_slice: Mapping[str, Any] | KeySlice | None = None,
    ) -> None:
        self.cursor_id = cursor_id
        self._probe = probe
        self._config = config
        self._alphabet = config.key_type.alphabet
        self._symbols = tuple(symbols) if symbols is not None else top_level_symbols(
            config.key_type, config.key_range
        )
        if not self._symbols:
            raise SlicerConfigurationError("key slicer needs at least one top-level symbol")
        self._events = events or NullSlicerEvents()
        self._retrier = retrier or ProbeRetrier(max_retries=config.max_retries)
        self._stack: list[_Level] = [_Level("", self._symbols)]
        if last_slice is not None:
            self._resume(last_slice)

    @property
    def symbols(self) -> tuple[str, ...]:
        return self._symbols

    @property
    def exhausted(self) -> bool:
        return not any(level.index < len(level.symbols) for level in self._stack)

    async def initialize(self) -> None:
        """Key cursors are ready at construction; kept for a uniform interface."""

    async def next_slice(self) -> KeySlice | None:
        while True:
            path = self._next_path()
            if path is None:
                return None
            key = key_expression(path, self._config.type)
            count = await self._count(path, key)
            if count == 0:
                continue
            if count <= self._config.size:
                return KeySlice(count=count, key=key)
            notify(self._events, "recursion", self.cursor_id, key)
            self._stack.append(_Level(path, self._alphabet))

    def _next_path(self) -> str | None:
        while self._stack:
            level = self._stack[-1]
            if level.index >= len(level.symbols):
                self._stack.pop()
                continue
            path = level.prefix + level.symbols[level.index]
            level.index += 1
            if len(path) < self._config.starting_key_depth:
                self._stack.append(_Level(path, self._alphabet))
                continue
            return path
        return None

    def _resume(self, last_slice: Mapping[str, Any] | KeySlice) -> None:
        if not isinstance(last_slice, KeySlice):
            last_slice = KeySlice.from_dict(last_slice)
        path = decode_key(last_slice.key, self._config.type)
        if not path or path[0] not in self._symbols:
            raise SlicerConfigurationError(
                f"checkpoint key {last_slice.key!r} is outside this slicer's key range {list(self._symbols)}"
            )
        unknown = [symbol for symbol in path[1:] if symbol not in self._alphabet]
        if unknown:
            raise SlicerConfigurationError(
                f"checkpoint key {last_slice.key!r} contains symbols outside the {self._config.key_type.value} alphabet"
            )
        # Rebuild the stack as it stood right after ``path`` was emitted.
        stack = [_Level("", self._symbols, self._symbols.index(path[0]) + 1)]
        for depth in range(1, len(path)):
            stack.append(_Level(path[:depth], self._alphabet, self._alphabet.index(path[depth]) + 1))
        self._stack = stack
        logger.info("key cursor %s resuming after %s", self.cursor_id, last_slice.key)

    async def _count(self, path: str, key: str) -> int:
        request = CountRequest(
            date_field=self._config.date_field_name,
            key_prefix=path,
            key=key,
            type_name=self._config.type,
            query=self._config.query,
        )
        return await self._retrier.call(f"{self.cursor_id}:{key}", self._probe.probe_count, request)
