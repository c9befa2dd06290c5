import pytest

from slicewise.slicing.retry import ProbeRetrier
from slicewise.slicing.spec import MaxRetriesExceeded, ProbeError, RetryableProbeError


class Sleeper:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


def _failing(times, error=RetryableProbeError, result=42):
    calls = {"count": 0}

    async def probe():
        calls["count"] += 1
        if calls["count"] <= times:
            raise error("partial shard failure")
        return result

    return probe, calls


@pytest.mark.asyncio
async def test_recovers_from_transient_failures():
    sleeper = Sleeper()
    retrier = ProbeRetrier(max_retries=3, base_delay=1.0, max_delay=4.0, sleep=sleeper)
    probe, calls = _failing(2)

    assert await retrier.call("0:a*", probe) == 42
    assert calls["count"] == 3
    assert len(sleeper.delays) == 2
    assert 0.5 <= sleeper.delays[0] <= 1.5
    assert 1.0 <= sleeper.delays[1] <= 3.0
    assert retrier.attempts("0:a*") == 0


@pytest.mark.asyncio
async def test_connection_errors_are_transient():
    retrier = ProbeRetrier(max_retries=1, base_delay=0.0)
    probe, calls = _failing(1, error=ConnectionError)

    assert await retrier.call("k", probe) == 42
    assert calls["count"] == 2


@pytest.mark.asyncio
async def test_gives_up_after_max_retries():
    sleeper = Sleeper()
    retrier = ProbeRetrier(max_retries=2, base_delay=10.0, max_delay=12.0, sleep=sleeper)
    probe, calls = _failing(5)

    with pytest.raises(MaxRetriesExceeded, match="max_retries met for slice, key: 0:a\\*") as excinfo:
        await retrier.call("0:a*", probe)

    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.__cause__, RetryableProbeError)
    assert calls["count"] == 3
    assert all(delay <= 18.0 for delay in sleeper.delays)


@pytest.mark.asyncio
async def test_fatal_errors_propagate_immediately():
    retrier = ProbeRetrier(max_retries=5, base_delay=0.0)
    probe, calls = _failing(1, error=ProbeError)

    with pytest.raises(ProbeError):
        await retrier.call("k", probe)

    assert calls["count"] == 1
    assert retrier.attempts("k") == 0


@pytest.mark.asyncio
async def test_budgets_are_per_key():
    retrier = ProbeRetrier(max_retries=1, base_delay=0.0)
    first, _ = _failing(1)
    second, _ = _failing(1)

    assert await retrier.call("0:a*", first) == 42
    assert await retrier.call("0:b*", second) == 42


def test_negative_retries_rejected():
    with pytest.raises(ValueError):
        ProbeRetrier(max_retries=-1)
