import pytest

from slicewise.slicing.checkpoint import InMemoryCheckpointStore
from slicewise.slicing.config import SlicerConfig
from slicewise.slicing.coordinator import build_slicers
from slicewise.slicing.runner import SliceRunner
from slicewise.slicing.spec import ProbeError


class PrefixCountProbe:
    def __init__(self, counts=None, default=0, broken=()):
        self.counts = dict(counts or {})
        self.default = default
        self.broken = set(broken)

    async def probe_extreme(self, field, order, query):
        return None

    async def probe_count(self, request):
        if request.key_prefix in self.broken:
            raise ProbeError(f"index rejected prefix {request.key_prefix}")
        return self.counts.get(request.key_prefix, self.default)


class DummyMetrics:
    def __init__(self):
        self.events = []

    def __call__(self, name, cursor_id, payload):
        self.events.append((name, cursor_id, dict(payload)))

    def names(self, cursor_id):
        return [name for name, cursor, _ in self.events if cursor == cursor_id]


@pytest.mark.asyncio
async def test_runner_drains_every_cursor():
    config = SlicerConfig(mode="id", key_range=["a", "b"], slicers=2, type="events-", size=200)
    slicers = await build_slicers(PrefixCountProbe({"a": 100, "b": 100}), config)
    seen = []
    metrics = DummyMetrics()
    store = InMemoryCheckpointStore()

    runner = SliceRunner(
        slicers, lambda cursor, item: seen.append((cursor, item.key)), checkpoints=store, metrics=metrics
    )
    counts = await runner.run()

    assert counts == [1, 1]
    assert sorted(seen) == [(0, "events-#a*"), (1, "events-#b*")]
    assert await store.load_all() == [
        {"lastSlice": {"count": 100, "key": "events-#a*"}},
        {"lastSlice": {"count": 100, "key": "events-#b*"}},
    ]
    assert metrics.names(0) == ["cursor.started", "cursor.slice", "cursor.finished"]
    assert runner.checkpoints is store


@pytest.mark.asyncio
async def test_runner_awaits_async_consumers():
    config = SlicerConfig(mode="id", size=10)
    slicers = await build_slicers(PrefixCountProbe(default=1), config)
    seen = []

    async def consume(cursor, item):
        seen.append(item.key)

    assert await SliceRunner(slicers, consume).run() == [16]
    assert seen == [f"{symbol}*" for symbol in "0123456789abcdef"]


@pytest.mark.asyncio
async def test_failing_cursor_does_not_stop_others():
    config = SlicerConfig(mode="id", key_range=["a", "b"], slicers=2, size=200)
    slicers = await build_slicers(PrefixCountProbe(default=5, broken={"b"}), config)
    seen = []
    metrics = DummyMetrics()

    runner = SliceRunner(slicers, lambda cursor, item: seen.append(item.key), metrics=metrics)
    with pytest.raises(ProbeError):
        await runner.run()

    assert seen == ["a*"]
    assert "cursor.finished" in metrics.names(0)
    assert "cursor.failed" in metrics.names(1)


@pytest.mark.asyncio
async def test_restart_replays_unconsumed_slice():
    probe = PrefixCountProbe(default=1)
    config = SlicerConfig(mode="id", size=10)
    store = InMemoryCheckpointStore()

    def crash_on_third(cursor, item):
        if item.key == "2*":
            raise RuntimeError("consumer crashed")

    with pytest.raises(RuntimeError):
        await SliceRunner(await build_slicers(probe, config), crash_on_third, checkpoints=store).run()

    record = await store.load(0)
    assert record.last_slice == {"count": 1, "key": "1*"}
    assert record.sequence == 2

    seen = []
    slicers = await build_slicers(probe, config, retry_data=await store.load_all())
    await SliceRunner(slicers, lambda cursor, item: seen.append(item.key), checkpoints=store).run()

    assert seen == [f"{symbol}*" for symbol in "23456789abcdef"]
