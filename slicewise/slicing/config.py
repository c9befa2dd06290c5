"""
Slicer Configuration
====================

One explicit, validated configuration object shared by every cursor.
Invalid option combinations are rejected here, before any cursor exists.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .dates import Resolution, parse_interval, parse_timestamp
from .keys import KeyType, validate_cursor_count


class SlicerConfig(BaseModel):
    """Options consumed by the date-range and key-space slicers."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    mode: Literal["date", "id"] = Field(
        default="date",
        description="date: walk the time axis; id: partition the identifier space"
    )
    index: Optional[str] = Field(default=None, description="Index the slices are read from")
    date_field_name: str = Field(default="date", description="Timestamp field of the documents")
    query: Optional[str] = Field(default=None, description="Free-text base filter applied to every probe")
    start: Optional[datetime] = Field(default=None, description="Inclusive start; discovered when unset")
    end: Optional[datetime] = Field(default=None, description="Exclusive end; discovered when unset")
    interval: str = Field(default="auto", description="Nominal window width, e.g. 2hrs, 5m or auto")
    size: int = Field(default=5000, ge=1, description="Maximum documents per slice")
    time_resolution: Resolution = Field(default=Resolution.SECONDS, description="s or ms")
    subslice_by_key: bool = Field(
        default=False,
        description="Split irreducible windows by key prefix instead of accepting overflow"
    )
    subslice_key_threshold: Optional[int] = Field(
        default=None,
        ge=1,
        description="Key subslices above this count are split one level deeper"
    )
    key_type: KeyType = Field(default=KeyType.HEXADECIMAL, description="hexadecimal or base64url")
    key_range: Optional[List[str]] = Field(
        default=None,
        description="Explicit top-level key symbols, in order"
    )
    starting_key_depth: int = Field(default=1, ge=1, description="Initial key prefix length")
    type: Optional[str] = Field(default=None, description="Document type used in key expressions")
    slicers: int = Field(default=1, ge=1, description="Number of parallel cursors")
    max_retries: int = Field(default=3, ge=0, description="Probe retries per step")

    @field_validator("start", "end", mode="before")
    @classmethod
    def parse_bound(cls, value):
        if value is None:
            return value
        return parse_timestamp(value)

    @field_validator("interval")
    @classmethod
    def validate_interval(cls, value: str) -> str:
        parse_interval(value)
        return value

    @field_validator("key_range")
    @classmethod
    def validate_key_range_not_empty(cls, value):
        if value is not None and len(value) == 0:
            raise ValueError("key_range must contain at least one symbol")
        return value

    @model_validator(mode="after")
    def validate_combinations(self) -> "SlicerConfig":
        """Reject combinations no cursor could honour."""
        if self.subslice_by_key and not self.type:
            raise ValueError(
                "If subslice_by_key is set to true, the type parameter of the documents must also be set"
            )
        if self.start is not None and self.end is not None and self.start >= self.end:
            raise ValueError(f"start ({self.start}) must be before end ({self.end})")
        if self.key_range is not None:
            alphabet = self.key_type.alphabet
            unknown = [symbol for symbol in self.key_range if symbol not in alphabet]
            if unknown:
                raise ValueError(f"key_range symbols {unknown} are not part of the {self.key_type.value} alphabet")
            if len(set(self.key_range)) != len(self.key_range):
                raise ValueError("key_range symbols must be unique")
        if self.mode == "id":
            validate_cursor_count(self.key_type, self.key_range, self.slicers)
        return self

    @property
    def interval_delta(self) -> Optional[timedelta]:
        """Configured window width, or ``None`` for ``auto``."""
        return parse_interval(self.interval)
