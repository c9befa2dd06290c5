"""
Date-Range Slicer
=================

Walks ``[start, end)`` with live count probes and hands out windows whose
document count stays at or below ``size``.

STEP
----

    candidate = [current, min(current + interval, end))

    count == 0 and candidate.end < end   -> EXPAND
        double the width until something matches or the end is reached;
        an empty tail is emitted once as a zero-count slice

    count > size                         -> REDUCE
        keep ``current`` fixed and bisect the end between the last end known
        to be empty and the oversized end; stop at one resolution unit

    still > size at one unit             -> SUBSLICE BY KEY (if enabled)
                                            otherwise emit the overflow

The cursor then moves to the end of the emitted window. Only ``current`` is
carried between calls, so a cursor resumed from the last emitted slice
continues with exactly the windows an uninterrupted cursor would produce.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Mapping

from .dates import align_interval, truncate
from .events import NullSlicerEvents, SlicerEvents, notify
from .retry import ProbeRetrier
from .spec import (
    CountRequest,
    DateSlice,
    RangeDescriptor,
    SliceProbe,
    SlicerConfigurationError,
    SlicerError,
)
from .subslice import SubsliceBridge

if TYPE_CHECKING:
    from .config import SlicerConfig

logger = logging.getLogger(__name__)


async def _ensure_date_field(
    probe: SliceProbe, config: "SlicerConfig", retrier: ProbeRetrier
) -> None:
    """Fail when documents match the query but none carries the date field."""

    field = config.date_field_name
    total = await retrier.call(
        f"bounds:{field}:total",
        probe.probe_count,
        CountRequest(date_field=field, query=config.query),
    )
    if total > 0:
        raise SlicerConfigurationError(
            f"date_field_name {field!r} does not exist on the documents matching the query"
        )


async def resolve_date_bounds(
    probe: SliceProbe,
    config: "SlicerConfig",
    retrier: ProbeRetrier,
    events: SlicerEvents,
    *,
    cursor_id: int | None = None,
) -> RangeDescriptor | None:
    """Fill missing bounds from the oldest and newest matching documents.

    Returns ``None`` when nothing matches. Raises
    :class:`SlicerConfigurationError` when documents match but none of them
    has ``date_field_name``, even if both bounds are configured.
    """

    resolution = config.time_resolution
    field = config.date_field_name
    start = config.start
    end = config.end

    first = await retrier.call(f"bounds:{field}:asc", probe.probe_extreme, field, "asc", config.query)
    if first is None:
        await _ensure_date_field(probe, config, retrier)
        logger.info("no documents matched %r; nothing to slice", config.query)
        return None
    if start is None:
        start = first
    if end is None:
        last = await retrier.call(f"bounds:{field}:desc", probe.probe_extreme, field, "desc", config.query)
        if last is None:
            logger.info("no documents matched %r; nothing to slice", config.query)
            return None
        # end is exclusive, step one unit past the newest document
        end = truncate(last, resolution) + resolution.unit

    start = truncate(start, resolution)
    end = truncate(end, resolution)
    if start >= end:
        logger.info("resolved range [%s, %s) is empty; nothing to slice", start, end)
        return None
    notify(events, "range_resolved", cursor_id, start, end)
    return RangeDescriptor(start, end, resolution)


def split_bounds(bounds: RangeDescriptor, parts: int) -> list[RangeDescriptor]:
    """Divide a range into contiguous pieces on resolution boundaries."""

    if parts <= 0:
        raise ValueError("parts must be positive")
    units = bounds.units()
    parts = min(parts, units)
    step, _ = divmod(units, parts)
    pieces: list[RangeDescriptor] = []
    cursor = bounds.start
    for index in range(parts):
        if index == parts - 1:
            piece_end = bounds.end
        else:
            piece_end = cursor + bounds.resolution.unit * step
        pieces.append(RangeDescriptor(cursor, piece_end, bounds.resolution))
        cursor = piece_end
    return pieces


class DateRangeSlicer:
    """Single cursor over a time axis."""

    def __init__(
        self,
        probe: SliceProbe,
        config: "SlicerConfig",
        *,
        cursor_id: int = 0,
        bounds: RangeDescriptor | None = None,
        events: SlicerEvents | None = None,
        retrier: ProbeRetrier | None = None,
        last_slice: Mapping[str, Any] | DateSlice | None = None,
    ) -> None:
        self.cursor_id = cursor_id
        self._probe = probe
        self._config = config
        self._resolution = config.time_resolution
        self._bounds = bounds
        self._events = events or NullSlicerEvents()
        self._retrier = retrier or ProbeRetrier(max_retries=config.max_retries)
        self._last_slice = last_slice
        self._bridge: SubsliceBridge | None = None
        if config.subslice_by_key:
            self._bridge = SubsliceBridge(
                probe,
                config,
                cursor_id=cursor_id,
                events=self._events,
                retrier=self._retrier,
            )
        self._interval: timedelta | None = None
        self._current_start: datetime | None = None
        self._initialized = False
        self._exhausted = False

    @property
    def bounds(self) -> RangeDescriptor | None:
        return self._bounds

    @property
    def interval(self) -> timedelta | None:
        return self._interval

    @property
    def current_start(self) -> datetime | None:
        return self._current_start

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    async def initialize(self) -> None:
        if self._initialized:
            return
        self._initialized = True

        if self._bounds is None:
            self._bounds = await resolve_date_bounds(
                self._probe, self._config, self._retrier, self._events, cursor_id=self.cursor_id
            )
            if self._bounds is None:
                self._exhausted = True
                return

        self._interval = await self._resolve_interval(self._bounds)
        if self._interval is None:
            self._exhausted = True
            return

        self._current_start = self._bounds.start
        if self._last_slice is not None:
            self._resume(self._last_slice)
        if self._current_start >= self._bounds.end:
            self._exhausted = True

    async def next_slice(self) -> DateSlice | list[DateSlice] | None:
        """Return the next slice, a batch of key subslices, or ``None``."""

        if not self._initialized:
            await self.initialize()
        if self._exhausted:
            return None

        bounds, interval, start = self._position()
        global_end = bounds.end
        window = RangeDescriptor(start, min(start + interval, global_end), self._resolution)
        count = await self._count(window)

        # [start, empty_end) is known to hold no documents
        empty_end = start
        if count == 0 and window.end < global_end:
            window, count, empty_end = await self._expand(window, interval, global_end)
        if count > self._config.size:
            window, count = await self._reduce(window, count, empty_end)

        result: DateSlice | list[DateSlice]
        if count > self._config.size and self._bridge is not None:
            result = await self._bridge.subslice(window)
        else:
            if count > self._config.size:
                start_text, end_text = window.format()
                logger.warning(
                    "window [%s, %s) holds %d documents (size %d) and cannot be split further",
                    start_text,
                    end_text,
                    count,
                    self._config.size,
                )
            result = DateSlice(window.start, window.end, count, resolution=self._resolution)

        self._current_start = window.end
        if self._current_start >= global_end:
            self._exhausted = True
        return result

    def _position(self) -> tuple[RangeDescriptor, timedelta, datetime]:
        if self._bounds is None or self._interval is None or self._current_start is None:
            raise SlicerError(f"date cursor {self.cursor_id} has no position; initialize() did not complete")
        return self._bounds, self._interval, self._current_start

    async def _expand(
        self, window: RangeDescriptor, interval: timedelta, global_end: datetime
    ) -> tuple[RangeDescriptor, int, datetime]:
        width = interval
        count = 0
        empty_end = window.start
        while count == 0 and window.end < global_end:
            empty_end = window.end
            width = width * 2
            window = RangeDescriptor(window.start, min(window.start + width, global_end), self._resolution)
            notify(self._events, "range_expansion", self.cursor_id, window)
            count = await self._count(window)
        return window, count, empty_end

    async def _reduce(
        self, window: RangeDescriptor, count: int, empty_end: datetime
    ) -> tuple[RangeDescriptor, int]:
        """Shrink ``window.end`` until the count fits, keeping the start.

        The end is searched between ``empty_end`` (documents only appear
        after it) and the oversized end. A probe that finds nothing moves the
        lower bound up instead of emitting an empty slice; only the earlier
        part is handed out, the rest is picked up by the next call.
        """

        search = RangeDescriptor(empty_end, window.end, self._resolution)
        while count > self._config.size and not search.is_minimal():
            earlier, later = search.split()
            candidate = RangeDescriptor(window.start, earlier.end, self._resolution)
            notify(self._events, "recursion", self.cursor_id, candidate)
            candidate_count = await self._count(candidate)
            if candidate_count > self._config.size:
                window, count, search = candidate, candidate_count, earlier
            elif candidate_count == 0:
                search = later
            else:
                window, count = candidate, candidate_count
        return window, count

    async def _resolve_interval(self, bounds: RangeDescriptor) -> timedelta | None:
        interval = self._config.interval_delta
        if interval is None:
            total = await self._count(bounds)
            if total == 0:
                logger.info("no documents between %s and %s", *bounds.format())
                return None
            interval = (bounds.end - bounds.start) * (self._config.size / total)
        return align_interval(interval, self._resolution)

    def _resume(self, last_slice: Mapping[str, Any] | DateSlice) -> None:
        if not isinstance(last_slice, DateSlice):
            last_slice = DateSlice.from_dict(last_slice, self._resolution)
        if self._bounds is None or self._current_start is None:
            raise SlicerError(f"date cursor {self.cursor_id} cannot resume before its bounds are known")
        resumed = truncate(last_slice.end, self._resolution)
        if resumed > self._current_start:
            self._current_start = resumed
        logger.info(
            "cursor %s resuming at %s", self.cursor_id, self._current_start.isoformat()
        )

    async def _count(self, window: RangeDescriptor) -> int:
        start, end = window.format()
        request = CountRequest(
            date_field=self._config.date_field_name,
            range=window,
            query=self._config.query,
        )
        return await self._retrier.call(
            f"{self.cursor_id}:{start}:{end}", self._probe.probe_count, request
        )
