import pytest

from slicewise.slicing.checkpoint import InMemoryCheckpointStore


@pytest.mark.asyncio
async def test_in_memory_store_tracks_sequence():
    store = InMemoryCheckpointStore()

    assert await store.save(0, {"count": 5, "key": "a*"}) == 1
    assert await store.save(0, {"count": 7, "key": "b*"}) == 2
    assert await store.save(2, {"count": 1, "key": "e*"}) == 1

    record = await store.load(0)
    assert record.last_slice == {"count": 7, "key": "b*"}
    assert record.sequence == 2
    assert await store.load(1) is None

    assert await store.load_all() == [
        {"lastSlice": {"count": 7, "key": "b*"}},
        {},
        {"lastSlice": {"count": 1, "key": "e*"}},
    ]

    await store.clear()
    assert await store.load_all() == []
