"""Adaptive partitioning of a search index into bounded slices."""

from .adapters.memory import InMemoryIndex
from .checkpoint import CheckpointStore, InMemoryCheckpointStore, RedisCheckpointStore
from .config import SlicerConfig
from .coordinator import Slicer, build_slicers, slicer_count
from .date_slicer import DateRangeSlicer, resolve_date_bounds, split_bounds
from .dates import Resolution, parse_interval
from .events import LoggingSlicerEvents, NullSlicerEvents, RecordingSlicerEvents, SlicerEvents
from .key_slicer import KeySpaceSlicer
from .keys import BASE64URL, HEXADECIMAL, KeyType
from .retry import ProbeRetrier
from .runner import SliceRunner
from .spec import (
    CountRequest,
    DateSlice,
    KeySlice,
    MaxRetriesExceeded,
    ProbeError,
    RangeDescriptor,
    RetryableProbeError,
    SliceProbe,
    SlicerConfigurationError,
    SlicerError,
)
from .subslice import SubsliceBridge

__all__ = [
    "BASE64URL",
    "HEXADECIMAL",
    "CheckpointStore",
    "CountRequest",
    "DateRangeSlicer",
    "DateSlice",
    "InMemoryCheckpointStore",
    "InMemoryIndex",
    "KeySlice",
    "KeySpaceSlicer",
    "KeyType",
    "LoggingSlicerEvents",
    "MaxRetriesExceeded",
    "NullSlicerEvents",
    "ProbeError",
    "ProbeRetrier",
    "RangeDescriptor",
    "RecordingSlicerEvents",
    "RedisCheckpointStore",
    "Resolution",
    "RetryableProbeError",
    "SliceProbe",
    "SliceRunner",
    "Slicer",
    "SlicerConfig",
    "SlicerConfigurationError",
    "SlicerError",
    "SlicerEvents",
    "SubsliceBridge",
    "build_slicers",
    "parse_interval",
    "resolve_date_bounds",
    "slicer_count",
    "split_bounds",
]
