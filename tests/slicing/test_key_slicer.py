import pytest

from slicewise.slicing.config import SlicerConfig
from slicewise.slicing.events import RecordingSlicerEvents
from slicewise.slicing.key_slicer import KeySpaceSlicer
from slicewise.slicing.keys import BASE64URL
from slicewise.slicing.retry import ProbeRetrier
from slicewise.slicing.spec import KeySlice, RetryableProbeError, SlicerConfigurationError


HEX = "0123456789abcdef"


class PrefixCountProbe:
    """Answers count probes from a prefix -> count table."""

    def __init__(self, counts=None, default=0):
        self.counts = dict(counts or {})
        self.default = default
        self.requests = []
        self.failures = 0

    async def probe_extreme(self, field, order, query):
        return None

    async def probe_count(self, request):
        if self.failures:
            self.failures -= 1
            raise RetryableProbeError("partial shard failure")
        self.requests.append(request)
        return self.counts.get(request.key_prefix, self.default)


async def _drain(slicer):
    slices = []
    while True:
        item = await slicer.next_slice()
        if item is None:
            return slices
        slices.append(item)


def _events_config(**overrides):
    options = {"mode": "id", "key_range": ["a", "b"], "type": "events-", "size": 200}
    options.update(overrides)
    return SlicerConfig(**options)


@pytest.mark.asyncio
async def test_emits_each_prefix_within_size():
    probe = PrefixCountProbe({"a": 100, "b": 100})
    slicer = KeySpaceSlicer(probe, _events_config())

    assert await slicer.next_slice() == KeySlice(100, "events-#a*")
    assert await slicer.next_slice() == KeySlice(100, "events-#b*")
    assert await slicer.next_slice() is None
    assert await slicer.next_slice() is None
    assert slicer.exhausted
    assert probe.requests[0].key == "events-#a*"
    assert probe.requests[0].type_name == "events-"


@pytest.mark.asyncio
async def test_oversized_prefix_descends_into_children():
    counts = {"a": 500, "b": 100}
    counts.update({f"a{symbol}": 20 for symbol in HEX})
    events = RecordingSlicerEvents()
    slicer = KeySpaceSlicer(PrefixCountProbe(counts), _events_config(), events=events)

    slices = await _drain(slicer)

    assert [item.key for item in slices] == [f"events-#a{symbol}*" for symbol in HEX] + ["events-#b*"]
    assert all(item.count <= 200 for item in slices)
    assert events.events == [("recursion", {"cursor_id": 0, "target": "events-#a*"})]


@pytest.mark.asyncio
async def test_empty_prefixes_are_skipped():
    probe = PrefixCountProbe({"a": 100, "b": 500, "b0": 200, "b1": 200, "b2": 100})

    slices = await _drain(KeySpaceSlicer(probe, _events_config()))

    assert slices == [
        KeySlice(100, "events-#a*"),
        KeySlice(200, "events-#b0*"),
        KeySlice(200, "events-#b1*"),
        KeySlice(100, "events-#b2*"),
    ]


@pytest.mark.asyncio
async def test_starting_key_depth():
    slicer = KeySpaceSlicer(
        PrefixCountProbe(default=100),
        _events_config(key_range=["a", "b", "c", "d"], starting_key_depth=3),
    )

    assert await slicer.next_slice() == KeySlice(100, "events-#a00*")
    assert await slicer.next_slice() == KeySlice(100, "events-#a01*")
    assert await slicer.next_slice() == KeySlice(100, "events-#a02*")


@pytest.mark.asyncio
async def test_resume_from_last_slice():
    slicer = KeySpaceSlicer(
        PrefixCountProbe(default=100),
        _events_config(),
        last_slice={"count": 100, "key": "events-#a6*"},
    )

    slices = await _drain(slicer)

    assert [item.key for item in slices] == [f"events-#a{symbol}*" for symbol in "789abcdef"] + [
        "events-#b*"
    ]


@pytest.mark.asyncio
async def test_resume_matches_uninterrupted_run():
    counts = {"a": 500, "b": 100}
    counts.update({f"a{symbol}": 20 for symbol in HEX})
    counts["a4"] = 300
    probe = PrefixCountProbe(counts, default=1)
    uninterrupted = await _drain(KeySpaceSlicer(probe, _events_config()))

    for position in range(len(uninterrupted) - 1):
        resumed = KeySpaceSlicer(probe, _events_config(), last_slice=uninterrupted[position])
        assert await _drain(resumed) == uninterrupted[position + 1:]


def test_resume_outside_key_range_rejected():
    with pytest.raises(SlicerConfigurationError, match="outside this slicer's key range"):
        KeySpaceSlicer(
            PrefixCountProbe(),
            _events_config(),
            last_slice={"count": 1, "key": "events-#c0*"},
        )


def test_resume_with_foreign_symbols_rejected():
    with pytest.raises(SlicerConfigurationError, match="hexadecimal alphabet"):
        KeySpaceSlicer(
            PrefixCountProbe(),
            _events_config(),
            last_slice={"count": 1, "key": "events-#aZ*"},
        )


@pytest.mark.asyncio
async def test_full_base64url_alphabet_without_type():
    config = SlicerConfig(mode="id", key_type="base64url", size=10)
    slices = await _drain(KeySpaceSlicer(PrefixCountProbe(default=1), config))

    assert [item.key for item in slices] == [f"{symbol}*" for symbol in BASE64URL]


@pytest.mark.asyncio
async def test_transient_failure_is_retried():
    probe = PrefixCountProbe({"a": 100, "b": 100})
    probe.failures = 1
    slicer = KeySpaceSlicer(
        probe, _events_config(), retrier=ProbeRetrier(max_retries=1, base_delay=0.0)
    )

    assert await slicer.next_slice() == KeySlice(100, "events-#a*")


class BrokenObserver:
    def range_resolved(self, cursor_id, start, end):
        raise RuntimeError("observer down")

    def recursion(self, cursor_id, target):
        raise RuntimeError("observer down")

    def range_expansion(self, cursor_id, target):
        raise RuntimeError("observer down")


@pytest.mark.asyncio
async def test_observer_failures_do_not_interrupt_slicing():
    counts = {"a": 500, "b": 100}
    counts.update({f"a{symbol}": 20 for symbol in HEX})
    slicer = KeySpaceSlicer(PrefixCountProbe(counts), _events_config(), events=BrokenObserver())

    slices = await _drain(slicer)

    assert len(slices) == 17
