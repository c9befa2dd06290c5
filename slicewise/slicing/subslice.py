"""Key-prefix fallback for time windows that cannot shrink any further."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .events import NullSlicerEvents, SlicerEvents, notify
from .keys import key_expression
from .retry import ProbeRetrier
from .spec import CountRequest, DateSlice, RangeDescriptor, SliceProbe, SlicerConfigurationError

if TYPE_CHECKING:
    from .config import SlicerConfig

logger = logging.getLogger(__name__)


class SubsliceBridge:
    """Splits one irreducible window into one slice per key symbol.

    The partition is flat unless ``subslice_key_threshold`` is set, in which
    case a symbol whose count is above the threshold is replaced by its
    children, one level at a time.
    """

    def __init__(
        self,
        probe: SliceProbe,
        config: "SlicerConfig",
        *,
        cursor_id: int = 0,
        events: SlicerEvents | None = None,
        retrier: ProbeRetrier | None = None,
    ) -> None:
        if not config.type:
            raise SlicerConfigurationError(
                "If subslice_by_key is set to true, the type parameter of the documents must also be set"
            )
        self._probe = probe
        self._config = config
        self._cursor_id = cursor_id
        self._events = events or NullSlicerEvents()
        self._retrier = retrier or ProbeRetrier(max_retries=config.max_retries)

    async def subslice(self, window: RangeDescriptor) -> list[DateSlice]:
        alphabet = self._config.key_type.alphabet
        threshold = self._config.subslice_key_threshold
        slices: list[DateSlice] = []
        pending = list(reversed(alphabet))
        while pending:
            path = pending.pop()
            key = key_expression(path, self._config.type)
            count = await self._count(window, path, key)
            if threshold is not None and count > threshold:
                notify(self._events, "recursion", self._cursor_id, key)
                pending.extend(path + symbol for symbol in reversed(alphabet))
                continue
            slices.append(
                DateSlice(window.start, window.end, count, key=key, resolution=window.resolution)
            )
        logger.debug(
            "subsliced window %s into %d key slices", window.format(), len(slices)
        )
        return slices

    async def _count(self, window: RangeDescriptor, path: str, key: str) -> int:
        start, end = window.format()
        request = CountRequest(
            date_field=self._config.date_field_name,
            range=window,
            key_prefix=path,
            key=key,
            type_name=self._config.type,
            query=self._config.query,
        )
        return await self._retrier.call(
            f"{self._cursor_id}:{start}:{end}:{key}", self._probe.probe_count, request
        )
