"""Async runner driving slicing cursors and recording checkpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Sequence, Union

from .checkpoint import CheckpointStore, InMemoryCheckpointStore
from .coordinator import Slicer
from .spec import DateSlice, KeySlice

logger = logging.getLogger(__name__)

SliceRecord = Union[DateSlice, KeySlice]
SliceConsumer = Callable[[int, SliceRecord], Union[Awaitable[None], None]]
MetricEmitter = Callable[[str, int, Mapping[str, Any]], None]


class SliceRunner:
    """Pulls slices from every cursor and hands them to a consumer.

    Calls on one cursor are strictly sequential; cursors run concurrently.
    A slice is checkpointed only after the consumer returns, so a crash can
    replay the last slice but never skip one.
    """

    def __init__(
        self,
        slicers: Sequence[Slicer],
        consumer: SliceConsumer,
        *,
        checkpoints: CheckpointStore | None = None,
        metrics: MetricEmitter | None = None,
    ) -> None:
        self._slicers = list(slicers)
        self._consumer = consumer
        self._checkpoints = checkpoints or InMemoryCheckpointStore()
        self._metrics = metrics

    @property
    def checkpoints(self) -> CheckpointStore:
        return self._checkpoints

    async def run(self) -> list[int]:
        """Drain every cursor; returns the number of slices each emitted."""

        tasks = [asyncio.create_task(self._drive(slicer)) for slicer in self._slicers]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        if failures:
            raise failures[0]
        return [int(outcome) for outcome in outcomes]

    async def _drive(self, slicer: Slicer) -> int:
        cursor_id = slicer.cursor_id
        emitted = 0
        self._emit("cursor.started", cursor_id, {})
        try:
            while True:
                result = await slicer.next_slice()
                if result is None:
                    break
                batch: list[SliceRecord] = list(result) if isinstance(result, list) else [result]
                for item in batch:
                    outcome = self._consumer(cursor_id, item)
                    if asyncio.iscoroutine(outcome):
                        await outcome
                    emitted += 1
                sequence = await self._checkpoints.save(cursor_id, batch[-1].to_dict())
                self._emit("cursor.slice", cursor_id, {"slices": len(batch), "sequence": sequence})
        except Exception as exc:
            logger.error("cursor %s failed after %d slices: %s", cursor_id, emitted, exc)
            self._emit("cursor.failed", cursor_id, {"slices": emitted, "error": str(exc)})
            raise
        self._emit("cursor.finished", cursor_id, {"slices": emitted})
        return emitted

    def _emit(self, name: str, cursor_id: int, payload: Mapping[str, Any]) -> None:
        if self._metrics is None:
            return
        self._metrics(name, cursor_id, payload)
