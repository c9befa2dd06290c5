"""Per-cursor ``lastSlice`` checkpoints used to resume a slicing job."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

import redis


@dataclass
class CheckpointRecord:
    cursor_id: int
    last_slice: Mapping[str, Any]
    sequence: int = 0


class CheckpointStore(Protocol):
    """Abstracts persistence of the last slice each cursor handed out."""

    async def save(self, cursor_id: int, last_slice: Mapping[str, Any]) -> int:
        ...

    async def load(self, cursor_id: int) -> CheckpointRecord | None:
        ...

    async def load_all(self) -> list[dict[str, Any]]:
        ...

    async def clear(self) -> None:
        ...


def _as_retry_data(records: Mapping[int, CheckpointRecord]) -> list[dict[str, Any]]:
    if not records:
        return []
    size = max(records) + 1
    retry_data: list[dict[str, Any]] = [{} for _ in range(size)]
    for cursor_id, record in records.items():
        retry_data[cursor_id] = {"lastSlice": dict(record.last_slice)}
    return retry_data


class InMemoryCheckpointStore(CheckpointStore):
    """Checkpoint store suitable for tests and local runs."""

    def __init__(self) -> None:
        self._records: dict[int, CheckpointRecord] = {}
        self._lock = asyncio.Lock()

    async def save(self, cursor_id: int, last_slice: Mapping[str, Any]) -> int:
        async with self._lock:
            previous = self._records.get(cursor_id)
            sequence = (previous.sequence if previous else 0) + 1
            self._records[cursor_id] = CheckpointRecord(cursor_id, dict(last_slice), sequence)
            return sequence

    async def load(self, cursor_id: int) -> CheckpointRecord | None:
        async with self._lock:
            return self._records.get(cursor_id)

    async def load_all(self) -> list[dict[str, Any]]:
        async with self._lock:
            return _as_retry_data(self._records)

    async def clear(self) -> None:
        async with self._lock:
            self._records.clear()


class RedisCheckpointStore(CheckpointStore):
    """Durable checkpoint store keeping one Redis hash per job."""

    def __init__(
        self,
        *,
        socket_path: Optional[str] = None,
        url: Optional[str] = None,
        namespace: str = "slicewise:checkpoint",
        job_id: str = "default",
    ) -> None:
        if socket_path:
            self._client = redis.Redis(unix_socket_path=socket_path, decode_responses=True)
        elif url:
            self._client = redis.Redis.from_url(url, decode_responses=True)
        else:
            raise ValueError("RedisCheckpointStore needs a socket_path or url")
        self._key = f"{namespace}:{job_id}"
        # slice payload and sequence number change together or not at all
        self._save_script = self._client.register_script(
            """
            local key = KEYS[1]
            local cursor = ARGV[1]
            local payload = ARGV[2]
            local sequence = redis.call('HINCRBY', key, 'seq:' .. cursor, 1)
            redis.call('HSET', key, 'slice:' .. cursor, payload)
            return sequence
            """
        )

    async def save(self, cursor_id: int, last_slice: Mapping[str, Any]) -> int:
        payload = json.dumps(dict(last_slice), default=str)
        sequence = await asyncio.to_thread(
            self._save_script,
            keys=[self._key],
            args=[cursor_id, payload],
        )
        return int(sequence)

    async def load(self, cursor_id: int) -> CheckpointRecord | None:
        def _fetch() -> CheckpointRecord | None:
            payload, sequence = self._client.hmget(
                self._key, f"slice:{cursor_id}", f"seq:{cursor_id}"
            )
            if not payload:
                return None
            return CheckpointRecord(cursor_id, json.loads(payload), int(sequence or 0))

        return await asyncio.to_thread(_fetch)

    async def load_all(self) -> list[dict[str, Any]]:
        def _fetch() -> dict[int, CheckpointRecord]:
            data = self._client.hgetall(self._key)
            records: dict[int, CheckpointRecord] = {}
            for field, payload in data.items():
                if not field.startswith("slice:"):
                    continue
                cursor_id = int(field.split(":", 1)[1])
                sequence = int(data.get(f"seq:{cursor_id}") or 0)
                records[cursor_id] = CheckpointRecord(cursor_id, json.loads(payload), sequence)
            return records

        return _as_retry_data(await asyncio.to_thread(_fetch))

    async def clear(self) -> None:
        await asyncio.to_thread(self._client.delete, self._key)

    def close(self) -> None:
        self._client.close()
