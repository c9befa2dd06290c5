"""Command-line entry for running a slicing job."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
import sys
from typing import Any, Mapping

from slicewise.config import Config, ConfigManager
from slicewise.logging import LogManager

from .adapters.memory import InMemoryIndex
from .checkpoint import CheckpointStore, InMemoryCheckpointStore, RedisCheckpointStore
from .coordinator import build_slicers
from .events import LoggingSlicerEvents
from .runner import SliceRecord, SliceRunner
from .spec import SliceProbe, SlicerConfigurationError

logger = logging.getLogger(__name__)


def _load_object(path: str) -> Any:
    if ":" not in path:
        raise ValueError("component path must be module:object")
    module_name, attr = path.split(":", 1)
    module = importlib.import_module(module_name)
    return getattr(module, attr)


def _parse_kv(payload: str) -> dict[str, Any]:
    if not payload:
        return {}
    try:
        return json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ValueError("invalid JSON configuration") from exc


def _build_probe(args: argparse.Namespace) -> SliceProbe:
    if args.records:
        return InMemoryIndex.from_jsonl(args.records)
    if not args.probe:
        raise ValueError("either --probe or --records is required")
    component = _load_object(args.probe)
    probe = component(**_parse_kv(args.probe_config or "")) if isinstance(component, type) else component
    if not isinstance(probe, SliceProbe):
        raise TypeError("probe must implement probe_extreme and probe_count")
    return probe


def _checkpoint_store_from_uri(uri: str, job_id: str) -> CheckpointStore:
    if uri in ("", "memory://"):
        return InMemoryCheckpointStore()
    if uri.startswith("redis+unix://"):
        return RedisCheckpointStore(socket_path=uri[len("redis+unix://"):], job_id=job_id)
    if uri.startswith(("redis://", "rediss://")):
        return RedisCheckpointStore(url=uri, job_id=job_id)
    raise NotImplementedError(f"unsupported checkpoint store: {uri}")


async def _run_async(args: argparse.Namespace, config: Config) -> list[int]:
    probe = _build_probe(args)
    checkpoints = _checkpoint_store_from_uri(config.checkpoint_store, config.job_id)
    retry_data = await checkpoints.load_all() if args.resume else None

    slicers = await build_slicers(
        probe, config.slicer, events=LoggingSlicerEvents(), retry_data=retry_data
    )

    def emit_slice(cursor_id: int, item: SliceRecord) -> None:
        sys.stdout.write(json.dumps({"slicer": cursor_id, **item.to_dict()}) + "\n")

    def emit_metric(name: str, cursor_id: int, payload: Mapping[str, Any]) -> None:
        logger.info("%s %s %s", name, cursor_id, dict(payload))

    runner = SliceRunner(slicers, emit_slice, checkpoints=checkpoints, metrics=emit_metric)
    return await runner.run()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Partition an index into bounded slices")
    parser.add_argument("--config", help="YAML job configuration")
    parser.add_argument("--override", help="JSON overrides merged over the configuration")
    parser.add_argument("--probe", help="Probe path module:Class or module:object")
    parser.add_argument("--probe-config", help="JSON keyword arguments for the probe class")
    parser.add_argument("--records", help="JSON lines file served by an in-memory index")
    parser.add_argument("--resume", action="store_true", help="Resume cursors from stored checkpoints")
    parser.add_argument("--log-level", default=None)

    args = parser.parse_args(argv)

    try:
        config = ConfigManager.load(args.config, _parse_kv(args.override or ""))
    except (ValueError, OSError) as exc:
        logging.basicConfig(level=logging.ERROR)
        logger.error("invalid configuration: %s", exc)
        return 2

    LogManager.setup(log_level=args.log_level or config.logging_level, log_dir=config.log_dir)
    run_logger = LogManager.get_logger("slicewise.cli", config.job_id)

    try:
        counts = asyncio.run(_run_async(args, config))
    except SlicerConfigurationError as exc:
        run_logger.error("invalid_configuration", error=str(exc))
        return 2
    except Exception as exc:  # pragma: no cover - CLI guardrail
        run_logger.error("slicing_failed", error=str(exc))
        return 1
    run_logger.info("slicing_completed", slices=sum(counts), cursors=len(counts))
    return 0


if __name__ == "__main__":  # pragma: no cover - module entry point
    raise SystemExit(main())
