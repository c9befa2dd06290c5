"""Observer interface for slicer notifications."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Protocol

from .spec import RangeDescriptor

logger = logging.getLogger(__name__)


class SlicerEvents(Protocol):
    """Receives best-effort notifications from a cursor."""

    def range_resolved(self, cursor_id: int | None, start: datetime, end: datetime) -> None:
        ...

    def recursion(self, cursor_id: int, target: RangeDescriptor | str) -> None:
        ...

    def range_expansion(self, cursor_id: int, target: RangeDescriptor) -> None:
        ...


class NullSlicerEvents(SlicerEvents):
    """Default observer used when nobody is listening."""

    def range_resolved(self, cursor_id: int | None, start: datetime, end: datetime) -> None:
        pass

    def recursion(self, cursor_id: int, target: RangeDescriptor | str) -> None:
        pass

    def range_expansion(self, cursor_id: int, target: RangeDescriptor) -> None:
        pass


class LoggingSlicerEvents(SlicerEvents):
    """Forwards every event to the module logger."""

    def __init__(self, level: int = logging.DEBUG) -> None:
        self._level = level

    def range_resolved(self, cursor_id: int | None, start: datetime, end: datetime) -> None:
        logger.info(
            "slicer range resolved start=%s end=%s",
            start.isoformat(),
            end.isoformat(),
            extra={"cursor_id": cursor_id},
        )

    def recursion(self, cursor_id: int, target: RangeDescriptor | str) -> None:
        logger.log(self._level, "slicer recursion cursor=%s target=%s", cursor_id, _describe(target))

    def range_expansion(self, cursor_id: int, target: RangeDescriptor) -> None:
        logger.log(self._level, "slicer range expansion cursor=%s target=%s", cursor_id, _describe(target))


class RecordingSlicerEvents(SlicerEvents):
    """Keeps every event in memory; handy for tests and dry runs."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def range_resolved(self, cursor_id: int | None, start: datetime, end: datetime) -> None:
        self.events.append(("range_resolved", {"cursor_id": cursor_id, "start": start, "end": end}))

    def recursion(self, cursor_id: int, target: RangeDescriptor | str) -> None:
        self.events.append(("recursion", {"cursor_id": cursor_id, "target": target}))

    def range_expansion(self, cursor_id: int, target: RangeDescriptor) -> None:
        self.events.append(("range_expansion", {"cursor_id": cursor_id, "target": target}))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def notify(events: SlicerEvents, name: str, *args: Any) -> None:
    """Deliver an event; observer failures never interrupt slicing."""

    try:
        getattr(events, name)(*args)
    except Exception:
        logger.exception("slicer event observer failed for %s", name)


def _describe(target: RangeDescriptor | str) -> str:
    if isinstance(target, RangeDescriptor):
        start, end = target.format()
        return f"[{start}, {end})"
    return target
