"""Builds the set of independent cursors a slicing job runs with."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Sequence, Union

from .date_slicer import DateRangeSlicer, resolve_date_bounds, split_bounds
from .events import NullSlicerEvents, SlicerEvents
from .key_slicer import KeySpaceSlicer
from .keys import partition_symbols, top_level_symbols, validate_cursor_count
from .retry import ProbeRetrier
from .spec import SliceProbe

if TYPE_CHECKING:
    from .config import SlicerConfig

logger = logging.getLogger(__name__)

Slicer = Union[DateRangeSlicer, KeySpaceSlicer]
RetryData = Sequence[Mapping[str, Any] | None]


def slicer_count(config: "SlicerConfig") -> int:
    """Number of cursors this configuration creates."""

    if config.mode == "id":
        validate_cursor_count(config.key_type, config.key_range, config.slicers)
    return config.slicers


def _last_slice(retry_data: RetryData | None, index: int) -> Mapping[str, Any] | None:
    if not retry_data or index >= len(retry_data):
        return None
    entry = retry_data[index]
    if not entry:
        return None
    return entry.get("lastSlice")


async def build_slicers(
    probe: SliceProbe,
    config: "SlicerConfig",
    *,
    events: SlicerEvents | None = None,
    retry_data: RetryData | None = None,
) -> list[Slicer]:
    """Create and initialize every cursor for ``config``.

    ``retry_data`` holds one ``{"lastSlice": {...}}`` entry per cursor index
    and seeds each cursor from its checkpoint.

    In key mode the cursors together emit exactly the slices a single cursor
    would. In date mode the resolved range is cut into contiguous pieces, one
    per cursor; their slices jointly tile the range without gaps or overlap,
    but slice boundaries near the cut points differ from a single cursor's.
    """

    events = events or NullSlicerEvents()
    count = slicer_count(config)
    slicers: list[Slicer] = []

    if config.mode == "id":
        parts = partition_symbols(top_level_symbols(config.key_type, config.key_range), count)
        for index, symbols in enumerate(parts):
            slicers.append(
                KeySpaceSlicer(
                    probe,
                    config,
                    cursor_id=index,
                    symbols=symbols,
                    events=events,
                    retrier=ProbeRetrier(max_retries=config.max_retries),
                    last_slice=_last_slice(retry_data, index),
                )
            )
        logger.info("created %d key cursors over %s", len(slicers), [''.join(p) for p in parts])
        return slicers

    if count == 1:
        slicer = DateRangeSlicer(
            probe,
            config,
            events=events,
            retrier=ProbeRetrier(max_retries=config.max_retries),
            last_slice=_last_slice(retry_data, 0),
        )
        await slicer.initialize()
        return [slicer]

    bounds = await resolve_date_bounds(
        probe, config, ProbeRetrier(max_retries=config.max_retries), events
    )
    if bounds is None:
        logger.info("no documents to slice; no date cursors created")
        return []
    pieces = split_bounds(bounds, count)
    if len(pieces) < count:
        logger.warning(
            "range %s is only %d units wide; running %d cursors instead of %d",
            bounds.format(),
            bounds.units(),
            len(pieces),
            count,
        )
    for index, piece in enumerate(pieces):
        slicer = DateRangeSlicer(
            probe,
            config,
            cursor_id=index,
            bounds=piece,
            events=events,
            retrier=ProbeRetrier(max_retries=config.max_retries),
            last_slice=_last_slice(retry_data, index),
        )
        await slicer.initialize()
        slicers.append(slicer)
    return slicers
