"""Slice value types, probe contracts and the slicer error taxonomy."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Mapping, Protocol, runtime_checkable

from .dates import Resolution, format_timestamp, parse_timestamp

SortOrder = Literal["asc", "desc"]


class SlicerError(RuntimeError):
    """Base class for partitioning failures."""


class SlicerConfigurationError(SlicerError, ValueError):
    """Raised for invalid option combinations; never retried."""


class ProbeError(SlicerError):
    """A count or extreme probe failed outright."""


class RetryableProbeError(ProbeError):
    """Transient probe failure, e.g. a shard-level partial failure."""


class MaxRetriesExceeded(SlicerError):
    """A probe kept failing for the same step identity."""

    def __init__(self, key: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"max_retries met for slice, key: {key}")
        self.key = key
        self.attempts = attempts
        self.last_error = last_error


@dataclass(frozen=True)
class RangeDescriptor:
    """End-exclusive time window ``[start, end)`` at a given resolution."""

    start: datetime
    end: datetime
    resolution: Resolution = Resolution.SECONDS

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"range start {self.start} must be before end {self.end}")

    def units(self) -> int:
        return (self.end - self.start) // self.resolution.unit

    def is_minimal(self) -> bool:
        return self.units() <= 1

    def split(self) -> tuple["RangeDescriptor", "RangeDescriptor"]:
        """Bisect on whole resolution units, earlier half first."""

        units = self.units()
        if units < 2:
            raise ValueError("cannot split a range below its resolution")
        middle = self.start + self.resolution.unit * (units // 2)
        return (
            RangeDescriptor(self.start, middle, self.resolution),
            RangeDescriptor(middle, self.end, self.resolution),
        )

    def format(self) -> tuple[str, str]:
        return (
            format_timestamp(self.start, self.resolution),
            format_timestamp(self.end, self.resolution),
        )


@dataclass(frozen=True)
class DateSlice:
    """A time window (optionally narrowed by a key prefix) and its count."""

    start: datetime
    end: datetime
    count: int
    key: str | None = None
    resolution: Resolution = field(default=Resolution.SECONDS, compare=False)

    @property
    def range(self) -> RangeDescriptor:
        return RangeDescriptor(self.start, self.end, self.resolution)

    def to_dict(self) -> dict[str, Any]:
        start, end = self.range.format()
        payload: dict[str, Any] = {"start": start, "end": end, "count": self.count}
        if self.key is not None:
            payload["key"] = self.key
        return payload

    @classmethod
    def from_dict(
        cls, data: Mapping[str, Any], resolution: Resolution = Resolution.SECONDS
    ) -> "DateSlice":
        return cls(
            start=parse_timestamp(data["start"]),
            end=parse_timestamp(data["end"]),
            count=int(data.get("count", 0)),
            key=data.get("key"),
            resolution=resolution,
        )


@dataclass(frozen=True)
class KeySlice:
    """An identifier-prefix slice produced in id-reader mode."""

    count: int
    key: str

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "key": self.key}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "KeySlice":
        return cls(count=int(data.get("count", 0)), key=str(data["key"]))


@dataclass(frozen=True)
class CountRequest:
    """Everything a probe needs to count one candidate slice."""

    date_field: str
    range: RangeDescriptor | None = None
    key_prefix: str | None = None
    key: str | None = None
    type_name: str | None = None
    query: str | None = None


@runtime_checkable
class SliceProbe(Protocol):
    """Count capability supplied by the search-engine client."""

    async def probe_extreme(
        self, field: str, order: SortOrder, query: str | None
    ) -> datetime | None:
        ...

    async def probe_count(self, request: CountRequest) -> int:
        ...
