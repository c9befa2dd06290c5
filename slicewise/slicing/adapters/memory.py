"""In-memory index implementing the slice probe contract."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Mapping

from ..dates import parse_timestamp
from ..spec import CountRequest, SortOrder


def _matches_query(record: Mapping[str, Any], query: str | None) -> bool:
    """Evaluate a minimal ``field:value AND field:value`` filter."""

    if not query or query.strip() == "*":
        return True
    for clause in query.split(" AND "):
        clause = clause.strip().strip("()")
        if not clause or clause == "*":
            continue
        if ":" not in clause:
            raise ValueError(f"unsupported query clause: {clause!r}")
        name, expected = clause.split(":", 1)
        expected = expected.strip().strip('"')
        actual = record.get(name.strip())
        if expected == "*":
            if actual is None:
                return False
        elif str(actual) != expected:
            return False
    return True


@dataclass(slots=True)
class InMemoryIndex:
    """Answers count and extreme probes over a list of documents."""

    records: list[Mapping[str, Any]] = field(default_factory=list)
    key_field: str = "_key"
    type_field: str = "_type"

    @classmethod
    def from_jsonl(cls, path: str | Path, **kwargs: Any) -> "InMemoryIndex":
        records: list[Mapping[str, Any]] = []
        with open(path, "r") as handle:
            for line in handle:
                line = line.strip()
                if line:
                    records.append(json.loads(line))
        return cls(records=records, **kwargs)

    def extend(self, records: Iterable[Mapping[str, Any]]) -> None:
        self.records.extend(records)

    async def probe_extreme(
        self, field: str, order: SortOrder, query: str | None
    ) -> datetime | None:
        values = [
            parse_timestamp(record[field])
            for record in self.records
            if record.get(field) is not None and _matches_query(record, query)
        ]
        if not values:
            return None
        return min(values) if order == "asc" else max(values)

    async def probe_count(self, request: CountRequest) -> int:
        return sum(1 for record in self.records if self._matches(record, request))

    def _matches(self, record: Mapping[str, Any], request: CountRequest) -> bool:
        if not _matches_query(record, request.query):
            return False
        if request.range is not None:
            raw = record.get(request.date_field)
            if raw is None:
                return False
            stamp = parse_timestamp(raw)
            if not (request.range.start <= stamp < request.range.end):
                return False
        if request.key_prefix is not None:
            if request.type_name and record.get(self.type_field) != request.type_name:
                return False
            if not str(record.get(self.key_field, "")).startswith(request.key_prefix):
                return False
        return True
